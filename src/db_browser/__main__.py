"""Entry point for running db_browser as a module."""

from db_browser.server import cli_entry

if __name__ == "__main__":
    cli_entry()
