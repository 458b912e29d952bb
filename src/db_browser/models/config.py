"""Database configuration and credential models."""

from typing import Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from sqlalchemy.engine.url import URL, make_url


class DatabaseConfig(BaseModel):
    """Configuration for per-session engines and the session registry."""

    url: str = Field(
        ...,
        description=(
            "Server URL (e.g., mysql+aiomysql://host:3306). Credentials in the "
            "URL are only used as the default login for the server entry point."
        ),
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Connection pool size for each session",
    )
    max_overflow: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Maximum overflow connections for each session",
    )
    pool_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Pool checkout timeout in seconds",
    )
    statement_timeout: Optional[int] = Field(
        default=30,
        ge=1,
        le=3600,
        description="Statement execution timeout in seconds",
    )
    session_length: int = Field(
        default=30 * 60,
        ge=1,
        description="Seconds a session may stay idle before it is pruned",
    )
    prune_interval: Optional[int] = Field(
        default=None,
        ge=1,
        description="Seconds between prune sweeps (defaults to session_length)",
    )
    echo_sql: bool = Field(
        default=False,
        description="Echo SQL statements to stdout",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        try:
            url = make_url(v)
        except Exception as e:
            raise ValueError(f"Invalid database URL: {e}")

        dialect = url.drivername.split("+")[0]
        if dialect != "mysql":
            raise ValueError(
                f"Unsupported database dialect: {dialect}. Supported: mysql"
            )

        if "+" not in url.drivername:
            raise ValueError("Async driver required. Example: mysql+aiomysql://")

        return v

    @property
    def dialect(self) -> str:
        """Extract database dialect from URL."""
        return make_url(self.url).drivername.split("+")[0]

    @property
    def driver(self) -> str:
        """Extract driver name from URL."""
        parts = make_url(self.url).drivername.split("+")
        return parts[1] if len(parts) > 1 else ""

    @property
    def sweep_interval(self) -> int:
        """Seconds between two prune sweeps."""
        return self.prune_interval or self.session_length

    def default_credentials(self) -> Optional["ConnectionConf"]:
        """Credentials embedded in the URL, if any."""
        url = make_url(self.url)
        if not url.username:
            return None
        return ConnectionConf(
            user=url.username,
            password=url.password or "",
            host=url.host,
            port=url.port,
        )

    def url_for(self, conf: "ConnectionConf") -> URL:
        """Server URL with the given credentials and no default database."""
        url = make_url(self.url).set(
            username=conf.user,
            password=conf.password.get_secret_value(),
            database=None,
        )
        if conf.host:
            url = url.set(host=conf.host)
        if conf.port:
            url = url.set(port=conf.port)
        return url

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "url": "mysql+aiomysql://localhost:3306",
                    "pool_size": 5,
                    "max_overflow": 10,
                    "statement_timeout": 30,
                    "session_length": 1800,
                }
            ]
        }
    }


class ConnectionConf(BaseModel):
    """Credentials for one authenticated session."""

    user: str = Field(..., min_length=1, description="Database user")
    password: SecretStr = Field(default=SecretStr(""), description="Password")
    host: Optional[str] = Field(None, description="Overrides the configured host")
    port: Optional[int] = Field(None, ge=1, le=65535, description="Overrides port")
