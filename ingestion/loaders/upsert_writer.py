"""
Schema-driven upsert (merge) writer for destination tables.

One writer serves every endpoint: the table shape comes entirely from the
endpoint's tableSchema and the row shape from its fieldMappings.

Guarantees:
- Tables are created on first use (CREATE TABLE IF NOT EXISTS semantics)
- Insert new primary keys, update existing ones; never delete, never duplicate
- Row-level isolation: each row commits on its own, a failed row is rolled
  back and the batch carries on
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from sqlalchemy import MetaData, Table, and_, bindparam, func, inspect, insert, select, text, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from core.exceptions import CheckpointError, DataIntegrityError, TableCreationError, UpsertError
from ingestion.transformers.coercion import FieldTypeCoercer
from models.table_factory import RETRIEVED_AT_COLUMN, build_table, split_table_name
from schemas.config import ColumnDef
from schemas.results import UpsertResult

logger = logging.getLogger(__name__)


def build_row_values(
    row: Mapping[str, Any],
    field_mappings: Mapping[str, str],
    table_schema: List[ColumnDef],
    coercer: FieldTypeCoercer,
    extra_values: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """
    Coerce one row into typed column values.

    Args:
        row: Source record (field name -> raw JSON scalar)
        field_mappings: Source field -> destination column
        table_schema: Destination columns
        coercer: Type coercer
        extra_values: Column values supplied out-of-band (e.g. the import date)

    Returns:
        Destination column -> typed value

    Raises:
        DataIntegrityError: A primary-key column ends up NULL
    """
    columns = {c.name: c for c in table_schema}
    values: Dict[str, Any] = {}

    for source_field, column_name in field_mappings.items():
        values[column_name] = coercer.coerce(row.get(source_field), columns[column_name])

    for column_name, raw in (extra_values or {}).items():
        values[column_name] = coercer.coerce(raw, columns[column_name])

    missing = [c.name for c in table_schema if c.is_primary_key and values.get(c.name) is None]
    if missing:
        raise DataIntegrityError(
            "Primary-key column(s) are null or invalid",
            context={"columns": missing}
        )

    return values


class UpsertWriter:
    """
    Write typed rows into destination tables with merge semantics.

    Statement per dialect:
    - PostgreSQL / SQLite: INSERT ... ON CONFLICT (pk) DO UPDATE
    - SQL Server: MERGE ... WITH (HOLDLOCK)
    - anything else: UPDATE, then INSERT when no row matched (one transaction)
    """

    def __init__(
        self,
        connection: AsyncConnection,
        metadata: Optional[MetaData] = None,
        coercer: Optional[FieldTypeCoercer] = None,
        log: Optional[logging.Logger] = None
    ):
        self.conn = connection
        self.metadata = metadata or MetaData()
        self.logger = log or logger
        self.coercer = coercer or FieldTypeCoercer(self.logger)
        self._ensured: Set[str] = set()

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    async def ensure_table(self, target_table: str, table_schema: List[ColumnDef]) -> Table:
        """
        Create the destination table if it does not exist.

        Raises:
            TableCreationError: The CREATE statement failed
        """
        table = build_table(target_table, table_schema, self.metadata)
        if table.fullname in self._ensured:
            return table

        try:
            await self.conn.run_sync(table.create, checkfirst=True)
            await self.conn.commit()
        except SQLAlchemyError as e:
            await self.conn.rollback()
            raise TableCreationError(
                f"Cannot create table {target_table}",
                context={"table_name": target_table},
                original_exception=e
            )

        self._ensured.add(table.fullname)
        self.logger.debug(f"Table {table.fullname} is ready")
        return table

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(
        self,
        target_table: str,
        rows: Iterable[Mapping[str, Any]],
        field_mappings: Mapping[str, str],
        table_schema: List[ColumnDef],
        retrieved_at: datetime,
        extra_values: Optional[Mapping[str, Any]] = None
    ) -> UpsertResult:
        """
        Merge rows into the destination table, one row at a time.

        Args:
            target_table: "schema.table" or "table"
            rows: Normalized source rows
            field_mappings: Source field -> destination column
            table_schema: Destination columns (defines the primary key)
            retrieved_at: Timestamp written to RetrievedAt on insert and update
            extra_values: Column values supplied out-of-band for every row

        Returns:
            UpsertResult with written/failed counts and per-row error details

        Raises:
            TableCreationError: The destination table could not be created
        """
        table = await self.ensure_table(target_table, table_schema)
        primary_key = [c.name for c in table_schema if c.is_primary_key]
        result = UpsertResult()

        for index, row in enumerate(rows):
            try:
                values = build_row_values(row, field_mappings, table_schema, self.coercer, extra_values)
                values[RETRIEVED_AT_COLUMN] = retrieved_at
                await self._merge(table, values, primary_key)
                await self.conn.commit()
                result.written += 1

            except DataIntegrityError as e:
                result.failed += 1
                result.errors.append({"row_index": index, **e.to_dict()})
                self.logger.warning(f"Skipping row {index} for {target_table}: {e.message} {e.context.get('columns')}")

            except SQLAlchemyError as e:
                await self.conn.rollback()
                error = UpsertError(
                    f"Upsert failed for row {index}",
                    context={"table_name": target_table, "row_index": index},
                    original_exception=e
                )
                result.failed += 1
                result.errors.append({"row_index": index, **error.to_dict()})
                self.logger.error(str(error))

        self.logger.info(
            f"Upserted {result.written} row(s) into {target_table}"
            + (f", {result.failed} failed" if result.failed else "")
        )
        return result

    async def _merge(self, table: Table, values: Dict[str, Any], primary_key: List[str]) -> None:
        dialect = self.conn.dialect.name

        if dialect in ("postgresql", "sqlite"):
            dialect_insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = dialect_insert(table).values(values)
            update_columns = {
                name: stmt.excluded[name] for name in values if name not in primary_key
            }
            if update_columns:
                stmt = stmt.on_conflict_do_update(index_elements=primary_key, set_=update_columns)
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=primary_key)
            await self.conn.execute(stmt)

        elif dialect == "mssql":
            await self.conn.execute(self._mssql_merge(table, values, primary_key))

        else:
            key_match = and_(*(table.c[name] == values[name] for name in primary_key))
            changes = {name: value for name, value in values.items() if name not in primary_key}
            matched = 0
            if changes:
                updated = await self.conn.execute(update(table).where(key_match).values(changes))
                matched = updated.rowcount
            else:
                existing = await self.conn.execute(select(func.count()).select_from(table).where(key_match))
                matched = existing.scalar()
            if not matched:
                await self.conn.execute(insert(table).values(values))

    def _mssql_merge(self, table: Table, values: Dict[str, Any], primary_key: List[str]):
        preparer = self.conn.dialect.identifier_preparer
        names = list(values)
        quoted = {name: preparer.quote(name) for name in names}

        params = [
            bindparam(f"p{i}", values[name], type_=table.c[name].type)
            for i, name in enumerate(names)
        ]
        source = ", ".join(f":p{i} AS {quoted[name]}" for i, name in enumerate(names))
        match = " AND ".join(f"target.{quoted[k]} = source.{quoted[k]}" for k in primary_key)
        updates = ", ".join(
            f"target.{quoted[name]} = source.{quoted[name]}" for name in names if name not in primary_key
        )
        insert_columns = ", ".join(quoted[name] for name in names)
        insert_values = ", ".join(f"source.{quoted[name]}" for name in names)

        sql = (
            f"MERGE INTO {preparer.format_table(table)} WITH (HOLDLOCK) AS target "
            f"USING (SELECT {source}) AS source ON {match} "
        )
        if updates:
            sql += f"WHEN MATCHED THEN UPDATE SET {updates} "
        sql += f"WHEN NOT MATCHED THEN INSERT ({insert_columns}) VALUES ({insert_values});"

        return text(sql).bindparams(*params)

    # ------------------------------------------------------------------
    # Checkpoint
    # ------------------------------------------------------------------

    async def max_value(self, target_table: str, column: str, table_schema: List[ColumnDef]) -> Any:
        """
        Current maximum of a column, or None when the table is absent or empty.

        Raises:
            CheckpointError: The query failed
        """
        schema, name = split_table_name(target_table)
        try:
            exists = await self.conn.run_sync(
                lambda sync_conn: inspect(sync_conn).has_table(name, schema=schema)
            )
            if not exists:
                return None

            table = build_table(target_table, table_schema, self.metadata)
            result = await self.conn.execute(select(func.max(table.c[column])))
            value = result.scalar()
            await self.conn.commit()
        except SQLAlchemyError as e:
            await self.conn.rollback()
            raise CheckpointError(
                f"Cannot read checkpoint from {target_table}",
                context={"table_name": target_table, "column": column},
                original_exception=e
            )

        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            try:
                return date.fromisoformat(value[:10])
            except ValueError:
                return value
        return value
