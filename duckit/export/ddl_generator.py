"""
DDL Generator for exported tables.

Renders the schema.sql member of a database bundle from in-memory table
metadata. The output contains no timestamps and follows table order, so the
same tables always render to the same text.
"""

from typing import Iterable

from duckit.engine.adapter import TableInfo, quote_identifier


class DDLGenerator:
    """
    Generates SQL DDL (Data Definition Language) statements.

    Column types are emitted exactly as the engine inferred them.
    """

    def __init__(self, indent: str = "  "):
        """
        Initialize DDL generator.

        Args:
            indent: Prefix for each column line
        """
        self.indent = indent

    def _column_definition(self, name: str, sql_type: str) -> str:
        return f"{self.indent}{quote_identifier(name)} {sql_type}"

    def generate_table_ddl(self, table: TableInfo) -> str:
        """
        Generate a CREATE TABLE statement.

        Args:
            table: Table metadata with ordered columns

        Returns:
            Complete CREATE TABLE SQL statement
        """
        columns = ",\n".join(
            self._column_definition(col.name, col.type) for col in table.columns
        )
        return f"CREATE TABLE {quote_identifier(table.name)} (\n{columns}\n);"

    def generate_schema(self, tables: Iterable[TableInfo]) -> str:
        """
        Generate one statement per table, separated by a blank line.

        Args:
            tables: Tables in manifest order

        Returns:
            schema.sql text
        """
        return "\n\n".join(self.generate_table_ddl(table) for table in tables)
