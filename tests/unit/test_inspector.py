"""Unit Tests for MetadataInspector

Tests table metadata assembly against the in-memory catalog:
- Schema and table listings with tiers and part tables
- Column headers with resolved default values
- Full table descriptions and missing schema/table errors
- Entity relationship diagrams
"""

import pytest

from db_browser.core import MetadataInspector
from db_browser.errors import NotFoundError
from db_browser.models import ColumnKind
from fakes import FakeAdapter, FakeHelper


@pytest.fixture
def inspector(fake_helper: FakeHelper, fake_adapter: FakeAdapter) -> MetadataInspector:
    return MetadataInspector(fake_helper, fake_adapter)


class TestSchemasAndTables:
    """Test schema and table listings."""

    async def test_schemas_skip_system_schemas(self, inspector: MetadataInspector):
        schemas = await inspector.schemas()

        assert schemas == ["helium_cross_schema_ref_test", "helium_sample"]

    async def test_tables_tiers(self, inspector: MetadataInspector):
        tables = {t.name.raw: t for t in await inspector.tables("helium_sample")}

        assert tables["customer"].tier == "manual"
        assert tables["#lookup"].tier == "lookup"
        assert tables["#lookup"].name.clean == "lookup"
        assert all(t.schema == "helium_sample" for t in tables.values())

    async def test_part_tables_hidden(self, inspector: MetadataInspector):
        tables = {t.name.raw: t for t in await inspector.tables("helium_sample")}

        part = tables["master__part"]
        assert part.tier == "hidden"
        assert part.master_name is not None
        assert part.master_name.raw == "master"
        assert tables["master"].master_name is None

    async def test_part_without_master_is_not_hidden(
        self, inspector: MetadataInspector
    ):
        tables = {t.name.raw: t for t in await inspector.tables("helium_sample")}

        orphan = tables["orphan__part"]
        assert orphan.tier == "manual"
        assert orphan.master_name is None

    async def test_unknown_schema(self, inspector: MetadataInspector):
        with pytest.raises(NotFoundError) as exc_info:
            await inspector.tables("unknown_schema")

        assert exc_info.value.kind == "schema"


class TestHeaders:
    """Test column descriptions and default values."""

    async def test_header_kinds(self, inspector: MetadataInspector):
        headers = await inspector.headers("helium_sample", "datatypeshowcase")
        kinds = {h.name: h.type for h in headers}

        assert kinds == {
            "pk": ColumnKind.INTEGER,
            "integer": ColumnKind.INTEGER,
            "float": ColumnKind.FLOAT,
            "boolean": ColumnKind.BOOLEAN,
            "date": ColumnKind.DATE,
            "time": ColumnKind.DATETIME,
            "blob": ColumnKind.BLOB,
            "enum": ColumnKind.ENUM,
            "string": ColumnKind.STRING,
        }
        assert [h.ordinal_position for h in headers] == list(range(1, 10))

    async def test_enum_values(self, inspector: MetadataInspector):
        headers = await inspector.headers("helium_sample", "datatypeshowcase")
        enum = next(h for h in headers if h.name == "enum")

        assert enum.enum_values == ["a", "b", "c"]

    async def test_defaults(self, inspector: MetadataInspector, fake_helper: FakeHelper):
        fake_helper.respond("COALESCE(MAX(`pk`), 0) + 1", [{"next_value": 8}])

        defaults = await inspector.defaults("helium_sample", "defaults_test")

        assert defaults == {
            "pk": 8,
            "int": 5,
            "float": 10.0,
            "date": "2017-01-01",
            "datetime": "2017-01-01 12:00:00",
            "datetime_now": "2024-03-01 09:30:15",
            "boolean": True,
            "enum": "a",
            "no_default": None,
        }

    async def test_auto_increment_on_empty_table(
        self, inspector: MetadataInspector, fake_helper: FakeHelper
    ):
        fake_helper.respond("COALESCE(MAX(`pk`), 0) + 1", [{"next_value": 1}])

        headers = await inspector.headers("helium_sample", "datatypeshowcase")
        pk = next(h for h in headers if h.name == "pk")

        assert pk.default_value == 1
        assert pk.auto_increment
        assert not pk.required

    async def test_unresolved_defaults_run_no_queries(
        self, inspector: MetadataInspector, fake_helper: FakeHelper
    ):
        headers = await inspector.headers(
            "helium_sample", "defaults_test", resolve_defaults=False
        )
        defaults = {h.name: h.default_value for h in headers}

        assert fake_helper.statements == []
        assert defaults["pk"] is None
        assert defaults["datetime_now"] is None
        assert defaults["int"] == 5
        assert next(h for h in headers if h.name == "datetime_now").has_default

    async def test_unknown_table(self, inspector: MetadataInspector):
        with pytest.raises(NotFoundError) as exc_info:
            await inspector.headers("helium_sample", "unknown_table")

        assert exc_info.value.kind == "table"


class TestMeta:
    """Test full table descriptions."""

    async def test_meta(self, inspector: MetadataInspector, fake_helper: FakeHelper):
        fake_helper.respond("FROM `helium_sample`.`shipment`", [{"n": 4}])

        meta = await inspector.meta("helium_sample", "shipment")

        assert meta.schema == "helium_sample"
        assert meta.name.raw == "shipment"
        assert meta.column_count == 4
        assert meta.total_rows == 4
        assert [c.name for c in meta.constraints] == ["PRIMARY", "shipment_ibfk_1"]
        assert meta.parts == []

        foreign = meta.constraints[1]
        assert [c.ref.table for c in foreign.constraints if c.ref] == [
            "order",
            "product",
        ]

    async def test_meta_parts(self, inspector: MetadataInspector):
        meta = await inspector.meta("helium_sample", "master")

        assert sorted(p.raw for p in meta.parts) == ["master__part", "master__part2"]
        assert meta.comment == "master table"
        assert meta.total_rows == 0

    async def test_meta_of_part_table(self, inspector: MetadataInspector):
        meta = await inspector.meta("helium_sample", "master__part")

        assert meta.parts == []
        assert meta.name.is_part_table
        assert meta.name.master_raw == "master"

    async def test_unknown_schema(self, inspector: MetadataInspector):
        with pytest.raises(NotFoundError) as exc_info:
            await inspector.meta("unknown_schema", "irrelevant")

        assert exc_info.value.kind == "schema"

    async def test_unknown_table(self, inspector: MetadataInspector):
        with pytest.raises(NotFoundError) as exc_info:
            await inspector.meta("helium_sample", "unknown_table")

        assert exc_info.value.kind == "table"


class TestErd:
    """Test entity relationship diagrams."""

    async def test_schema_erd(self, inspector: MetadataInspector):
        erd = await inspector.erd("helium_sample")

        names = {n.id: n.table.name.raw for n in erd.nodes}
        assert len(names) == 11

        edges = {(names[e.from_id], names[e.to_id]) for e in erd.edges}
        assert ("order", "customer") in edges
        assert ("order", "product") in edges
        assert ("master__part", "master") in edges
        # shipment's compound key resolves to two different tables
        assert ("shipment", "order") in edges
        assert ("shipment", "product") in edges

    async def test_cross_schema_edges_need_both_nodes(
        self, inspector: MetadataInspector
    ):
        single = await inspector.erd("helium_cross_schema_ref_test")
        assert len(single.nodes) == 1
        assert single.edges == []

        everything = await inspector.erd()
        names = {n.id: n.table.name.raw for n in everything.nodes}
        edges = {(names[e.from_id], names[e.to_id]) for e in everything.edges}
        assert ("cross_schema_ref_test", "customer") in edges

    async def test_unknown_schema(self, inspector: MetadataInspector):
        with pytest.raises(NotFoundError):
            await inspector.erd("unknown_schema")
