"""
Unit tests for DDL generation.
"""

from duckit.engine.adapter import ColumnInfo, TableInfo
from duckit.export.ddl_generator import DDLGenerator


def _table(name, *columns):
    return TableInfo(
        name=name,
        row_count=0,
        columns=tuple(ColumnInfo(n, t) for n, t in columns),
    )


class TestGenerateTableDDL:
    """Test CREATE TABLE rendering."""

    def test_basic_table(self):
        ddl = DDLGenerator().generate_table_ddl(
            _table("people", ("id", "BIGINT"), ("name", "VARCHAR")))

        assert ddl == 'CREATE TABLE "people" (\n  "id" BIGINT,\n  "name" VARCHAR\n);'

    def test_types_are_emitted_verbatim(self):
        """Engine types such as DECIMAL(18,3) should pass through unchanged."""
        ddl = DDLGenerator().generate_table_ddl(
            _table("t", ("amount", "DECIMAL(18,3)"), ("seen", "TIMESTAMP")))

        assert '"amount" DECIMAL(18,3)' in ddl
        assert '"seen" TIMESTAMP' in ddl

    def test_identifiers_are_quoted(self):
        """Reserved words, spaces and embedded quotes should be quoted safely."""
        ddl = DDLGenerator().generate_table_ddl(
            _table("select", ("order id", "BIGINT"), ('say "hi"', "VARCHAR")))

        assert ddl.startswith('CREATE TABLE "select" (')
        assert '"order id" BIGINT' in ddl
        assert '"say ""hi""" VARCHAR' in ddl

    def test_column_order_is_preserved(self):
        ddl = DDLGenerator().generate_table_ddl(
            _table("t", ("z", "INTEGER"), ("a", "INTEGER"), ("m", "INTEGER")))

        assert ddl.index('"z"') < ddl.index('"a"') < ddl.index('"m"')

    def test_custom_indent(self):
        ddl = DDLGenerator(indent="    ").generate_table_ddl(_table("t", ("id", "INTEGER")))

        assert '\n    "id" INTEGER\n' in ddl


class TestGenerateSchema:
    """Test schema.sql rendering."""

    def test_statements_in_table_order(self):
        schema = DDLGenerator().generate_schema([
            _table("b", ("id", "INTEGER")),
            _table("a", ("id", "INTEGER")),
        ])

        statements = schema.split("\n\n")
        assert len(statements) == 2
        assert statements[0].startswith('CREATE TABLE "b"')
        assert statements[1].startswith('CREATE TABLE "a"')

    def test_rendering_is_deterministic(self):
        """The same tables should always render to the same text."""
        tables = [_table("t", ("id", "BIGINT"), ("name", "VARCHAR"))]

        assert DDLGenerator().generate_schema(tables) == DDLGenerator().generate_schema(tables)

    def test_empty_schema(self):
        assert DDLGenerator().generate_schema([]) == ""
