"""
Build SQLAlchemy tables from endpoint table schemas.

Destination tables are not ORM models: each endpoint declares its columns as
ColumnDef entries (name, SQL type string, key membership, default), and this
module turns them into ``sqlalchemy.Table`` objects on a shared MetaData.
"""

import re
from typing import List, Optional, Tuple

from sqlalchemy import (
    BigInteger, Boolean, Column, Date, DateTime, Float, Integer, MetaData,
    Numeric, SmallInteger, String, Table, Text, Unicode, UnicodeText, text
)
from sqlalchemy.types import TypeEngine

from schemas.config import ColumnDef

RETRIEVED_AT_COLUMN = "RetrievedAt"

DATE_TYPES = {"DATE"}
DATETIME_TYPES = {"DATETIME", "DATETIME2", "SMALLDATETIME", "DATETIMEOFFSET", "TIMESTAMP"}
INTEGER_TYPES = {"INT", "INTEGER", "BIGINT", "SMALLINT", "TINYINT"}
DECIMAL_TYPES = {"DECIMAL", "NUMERIC", "MONEY", "SMALLMONEY"}
FLOAT_TYPES = {"FLOAT", "REAL", "DOUBLE"}
BOOLEAN_TYPES = {"BIT", "BOOLEAN", "BOOL"}

_TYPE_PATTERN = re.compile(r"^\s*([A-Za-z][A-Za-z0-9]*)\s*(?:\(([^)]*)\))?")


def parse_sql_type(sql_type: str) -> Tuple[str, List[str]]:
    """
    Split a SQL type string into its family and arguments.

    >>> parse_sql_type("DECIMAL(18,3)")
    ('DECIMAL', ['18', '3'])
    """
    match = _TYPE_PATTERN.match(sql_type or "")
    if not match:
        return "", []
    family = match.group(1).upper()
    args = [a.strip() for a in (match.group(2) or "").split(",") if a.strip()]
    return family, args


def type_family(sql_type: str) -> str:
    return parse_sql_type(sql_type)[0]


def _length(args: List[str]) -> Optional[int]:
    if args and args[0].isdigit():
        return int(args[0])
    return None  # MAX or unspecified


def sqlalchemy_type(sql_type: str) -> TypeEngine:
    """Map a declared SQL type string to a portable SQLAlchemy type"""
    family, args = parse_sql_type(sql_type)

    if family in DATE_TYPES:
        return Date()
    if family in DATETIME_TYPES:
        return DateTime()
    if family == "BIGINT":
        return BigInteger()
    if family in ("SMALLINT", "TINYINT"):
        return SmallInteger()
    if family in INTEGER_TYPES:
        return Integer()
    if family in ("MONEY", "SMALLMONEY"):
        return Numeric(19, 4)
    if family in DECIMAL_TYPES:
        precision = int(args[0]) if args and args[0].isdigit() else 18
        scale = int(args[1]) if len(args) > 1 and args[1].isdigit() else 0
        return Numeric(precision, scale)
    if family in FLOAT_TYPES:
        return Float()
    if family in BOOLEAN_TYPES:
        return Boolean()
    if family in ("NVARCHAR", "NCHAR"):
        length = _length(args)
        return Unicode(length) if length else UnicodeText()
    if family == "NTEXT":
        return UnicodeText()
    if family == "TEXT":
        return Text()
    return String(_length(args))


def split_table_name(target_table: str) -> Tuple[Optional[str], str]:
    """'dbo.TM_USERS' -> ('dbo', 'TM_USERS'); 'TM_USERS' -> (None, 'TM_USERS')"""
    parts = [p.strip().strip("[]\"") for p in target_table.split(".")]
    if len(parts) == 1:
        return None, parts[0]
    return parts[0], parts[1]


def build_table(target_table: str, columns: List[ColumnDef], metadata: MetaData) -> Table:
    """
    Build (or reuse) the Table for a destination.

    Primary-key columns are NOT NULL and form the composite key in declaration
    order. A ``RetrievedAt`` timestamp column is added when not declared.
    """
    schema, name = split_table_name(target_table)
    key = f"{schema}.{name}" if schema else name
    if key in metadata.tables:
        return metadata.tables[key]

    table_columns = [
        Column(
            column.name,
            sqlalchemy_type(column.sql_type),
            primary_key=column.is_primary_key,
            nullable=not column.is_primary_key,
            autoincrement=False,
            server_default=text(column.default_expression) if column.default_expression else None,
        )
        for column in columns
    ]

    if RETRIEVED_AT_COLUMN not in {c.name for c in columns}:
        table_columns.append(Column(RETRIEVED_AT_COLUMN, DateTime(), nullable=True))

    return Table(name, metadata, *table_columns, schema=schema)
