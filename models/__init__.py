"""
SQLAlchemy table construction for destination tables.

Destination tables are declared per endpoint (tableSchema) rather than as ORM
classes, so this package builds ``sqlalchemy.Table`` objects at run time.

Models:
    table_factory: SQL type parsing, ColumnDef -> Column mapping, table builder

Usage:
    from sqlalchemy import MetaData
    from models.table_factory import build_table

    table = build_table("dbo.TM_USERS", endpoint.table_schema, MetaData())
"""

__all__ = [
    "build_table",
    "parse_sql_type",
    "sqlalchemy_type",
    "split_table_name",
    "RETRIEVED_AT_COLUMN",
]
