# ============================================================================
# File: ingestion/runner.py
# Description: Single-shot sync driver over the configured WPMS endpoints
# ============================================================================
"""
Sync Runner - Orchestrates authenticate, fetch, normalize, coerce and upsert.

This module provides:
- One login per run, token reused for every endpoint
- One database connection per run, released on every exit path
- Per-endpoint failure isolation (a failed call or table does not stop the run)
- Structured per-endpoint outcomes for the caller
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, Callable, List, Mapping, Optional, Any, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from core.exceptions import (
    ConfigurationError,
    DataIntegrityError,
    PersistenceError,
    SyncException,
    TransportError
)
from ingestion.auth import Authenticator
from ingestion.http_client import HttpRequestExecutor
from ingestion.loaders.upsert_writer import UpsertWriter, build_row_values
from ingestion.transformers.coercion import FieldTypeCoercer
from ingestion.transformers.normalizer import Row, normalize_response
from ingestion.transformers.parameters import DATE_FORMAT, previous_monday, resolve_parameters
from schemas.config import EndpointConfig, SyncConfig
from schemas.results import EndpointOutcome, RequestResult

logger = logging.getLogger(__name__)


class SyncRunner:
    """
    Single-shot driver: every selected endpoint is called once.

    Endpoints are processed strictly one after another; the upsert relies on
    there being no concurrent writer for the same primary key within a run.
    """

    def __init__(
        self,
        config: SyncConfig,
        executor: Optional[HttpRequestExecutor] = None,
        engine: Optional[AsyncEngine] = None,
        log: Optional[logging.Logger] = None,
        today: Optional[Callable[[], date]] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.config = config
        self.logger = log or logger
        self.executor = executor or HttpRequestExecutor(log=self.logger)
        self.authenticator = Authenticator(self.executor, log=self.logger)
        self.engine = engine
        self.today = today or date.today
        self.now = now or datetime.now
        self.token: Optional[str] = None

    # --------------------------------------------------
    # Setup
    # --------------------------------------------------

    async def authenticate(self) -> str:
        """Log in once; raises AuthenticationError (fatal for the run)"""
        credentials = self.config.credentials
        self.token = await self.authenticator.login(
            credentials.username,
            credentials.password,
            self.config.login_url,
            skip_hash=self.config.skip_hash
        )
        return self.token

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[Optional[AsyncConnection]]:
        """Open the run's single database connection (None for API-only runs)"""
        if self.engine is None:
            yield None
            return

        try:
            conn = await self.engine.connect()
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(
                "Cannot open database connection",
                original_exception=e
            )

        try:
            yield conn
        finally:
            await conn.close()

    def select_endpoints(self, names: Optional[Sequence[str]] = None) -> List[EndpointConfig]:
        if not names:
            return list(self.config.endpoints)

        selected = []
        for name in names:
            endpoint = self.config.get_endpoint(name)
            if endpoint is None:
                raise ConfigurationError(
                    f"Unknown endpoint {name!r}",
                    context={"endpoint": name}
                )
            selected.append(endpoint)
        return selected

    # --------------------------------------------------
    # Per-endpoint pipeline
    # --------------------------------------------------

    def build_parameters(self, endpoint: EndpointConfig, override_date: Optional[date] = None) -> dict:
        """Resolve DYNAMIC: placeholders; an import date replaces the computed one"""
        params = resolve_parameters(
            endpoint.raw_parameters(),
            today=self.today(),
            override_date=override_date,
            log=self.logger
        )
        if override_date is not None and endpoint.incremental and endpoint.incremental.date_parameter:
            params[endpoint.incremental.date_parameter] = {"val1": override_date.strftime(DATE_FORMAT)}
        return params

    async def fetch(
        self,
        endpoint: EndpointConfig,
        override_date: Optional[date] = None
    ) -> Tuple[RequestResult, List[Row]]:
        """Call an endpoint and normalize its payload into rows"""
        params = self.build_parameters(endpoint, override_date)
        url = self.config.url_for(endpoint.uri)

        self.logger.info(f"Calling {endpoint.name}: {endpoint.http_method} {url}")
        result = await self.executor.execute(
            endpoint.http_method,
            url,
            query_params=params,
            bearer_token=self.token
        )

        rows = normalize_response(result.parsed_content, log=self.logger) if result.success else []
        return result, rows

    async def process_endpoint(
        self,
        endpoint: EndpointConfig,
        writer: Optional[UpsertWriter],
        override_date: Optional[date] = None,
        extra_values: Optional[Mapping[str, Any]] = None,
        dry_run: bool = False
    ) -> EndpointOutcome:
        """
        Fetch, normalize, coerce and write one endpoint.

        Args:
            endpoint: Endpoint to process
            writer: Destination writer (None for API-only runs)
            override_date: Import date for incremental runs
            extra_values: Out-of-band column values for every row
            dry_run: Count would-be-written rows instead of writing

        Returns:
            EndpointOutcome; transport and persistence failures are reported
            in the outcome, not raised
        """
        outcome = EndpointOutcome(endpoint=endpoint.name, success=False, import_date=override_date)

        # --------------------------------------------------
        # PHASE 1: EXTRACT
        # --------------------------------------------------
        result, rows = await self.fetch(endpoint, override_date)
        outcome.status_code = result.status_code

        if not result.success:
            error = TransportError(
                f"Endpoint call failed: {result.error}",
                context={"endpoint": endpoint.name, "status_code": result.status_code}
            )
            self.logger.error(str(error))
            outcome.error = error.message
            return outcome

        outcome.items_received = len(rows)
        self.logger.info(f"{endpoint.name}: received {len(rows)} record(s)")

        # --------------------------------------------------
        # PHASE 2: TRANSFORM + LOAD
        # --------------------------------------------------
        if not endpoint.target_table:
            self.logger.info(f"{endpoint.name}: no target table configured; nothing written")
            outcome.success = True
            return outcome

        extra_values = self.date_column_values(endpoint, override_date, extra_values)

        if dry_run:
            outcome.items_written, outcome.items_failed = self.count_writable(endpoint, rows, extra_values)
            self.logger.info(
                f"[dry-run] {endpoint.name}: {outcome.items_written} row(s) would be written "
                f"to {endpoint.target_table}"
            )
            outcome.success = True
            return outcome

        if writer is None:
            self.logger.info(f"{endpoint.name}: no database configured; nothing written")
            outcome.success = True
            return outcome

        try:
            upsert_result = await writer.upsert(
                endpoint.target_table,
                rows,
                endpoint.field_mappings,
                endpoint.table_schema,
                retrieved_at=self.now(),
                extra_values=extra_values
            )
        except PersistenceError as e:
            self.logger.error(f"{endpoint.name}: persistence aborted: {e}")
            outcome.error = e.message
            return outcome

        outcome.items_written = upsert_result.written
        outcome.items_failed = upsert_result.failed
        if upsert_result.failed:
            outcome.error = f"{upsert_result.failed} row(s) failed"
        outcome.success = True
        return outcome

    def date_column_values(
        self,
        endpoint: EndpointConfig,
        override_date: Optional[date] = None,
        extra_values: Optional[Mapping[str, Any]] = None
    ) -> Optional[Mapping[str, Any]]:
        """
        Out-of-band values with the incremental date column filled in.

        The date column holds the day the data was requested for: the import
        date, or the week-start date the PreviousMondayDate placeholder names.
        A date column populated by fieldMappings is left to the payload.
        """
        if not endpoint.incremental:
            return extra_values

        date_column = endpoint.incremental.date_column
        values = dict(extra_values or {})
        if date_column not in values and date_column not in endpoint.field_mappings.values():
            values[date_column] = override_date or previous_monday(self.today())
        return values

    def count_writable(
        self,
        endpoint: EndpointConfig,
        rows: List[Row],
        extra_values: Optional[Mapping[str, Any]] = None
    ) -> Tuple[int, int]:
        """Coerce rows without writing; returns (writable, failing) counts"""
        coercer = FieldTypeCoercer(self.logger)
        writable = failing = 0
        for row in rows:
            try:
                build_row_values(row, endpoint.field_mappings, endpoint.table_schema, coercer, extra_values)
                writable += 1
            except DataIntegrityError:
                failing += 1
        return writable, failing

    # --------------------------------------------------
    # Run
    # --------------------------------------------------

    async def run(
        self,
        endpoint_names: Optional[Sequence[str]] = None,
        dry_run: bool = False
    ) -> List[EndpointOutcome]:
        """
        Run every selected endpoint once.

        Raises:
            ConfigurationError: Unknown endpoint name
            AuthenticationError: Login failed (no endpoint is called)
            PersistenceError: The database connection could not be opened
        """
        endpoints = self.select_endpoints(endpoint_names)
        await self.authenticate()

        outcomes: List[EndpointOutcome] = []
        async with self.connect() as conn:
            writer = UpsertWriter(conn, log=self.logger) if conn is not None else None

            for endpoint in endpoints:
                try:
                    outcome = await self.process_endpoint(endpoint, writer, dry_run=dry_run)
                except SyncException as e:
                    self.logger.error(f"{endpoint.name}: {e}")
                    outcome = EndpointOutcome(endpoint=endpoint.name, success=False, error=e.message)
                except Exception as e:
                    self.logger.exception(f"Unexpected error while processing {endpoint.name}")
                    outcome = EndpointOutcome(endpoint=endpoint.name, success=False, error=str(e))
                outcomes.append(outcome)

        failed = sum(1 for o in outcomes if o.has_errors)
        self.logger.info(
            f"Sync completed: {len(outcomes) - failed}/{len(outcomes)} endpoint(s) without errors, "
            f"{sum(o.items_written for o in outcomes)} row(s) written"
        )
        return outcomes
