"""
Day-by-day incremental import for time-series endpoints.

State machine:
    DETERMINE_START -> IMPORTING(current_date) -> DONE

The resume point is recomputed on every run from the destination table's
current maximum date (max + 1 day), falling back to today for an empty or
missing table. Each day is fetched with the literal date in place of the
``PreviousMondayDate`` placeholder and written with that date in the
endpoint's date column. A failed day is recorded and the import moves on.
"""

import enum
import logging
from datetime import date, timedelta
from typing import Optional

from core.exceptions import CheckpointError, ConfigurationError, SyncException
from ingestion.loaders.upsert_writer import UpsertWriter
from ingestion.runner import SyncRunner
from schemas.config import EndpointConfig, IncrementalSettings
from schemas.results import EndpointOutcome, ImportSummary

logger = logging.getLogger(__name__)


class ImportState(str, enum.Enum):
    DETERMINE_START = "determine_start"
    IMPORTING = "importing"
    DONE = "done"


class IncrementalImportDriver:
    """
    Import one endpoint day by day, resuming from the destination's latest date.

    Attributes:
        state: Current ImportState
        current_date: Day being imported while IMPORTING
    """

    def __init__(self, runner: SyncRunner, endpoint: EndpointConfig, log: Optional[logging.Logger] = None):
        self.runner = runner
        self.endpoint = endpoint
        self.logger = log or runner.logger
        self.settings = endpoint.incremental or IncrementalSettings()
        self.state = ImportState.DETERMINE_START
        self.current_date: Optional[date] = None

        if self.settings.date_column not in {c.name for c in endpoint.table_schema}:
            raise ConfigurationError(
                f"Endpoint {endpoint.name!r} has no {self.settings.date_column!r} column for incremental import",
                context={"endpoint": endpoint.name}
            )

    async def determine_start(self, writer: Optional[UpsertWriter], start_date: Optional[date] = None) -> date:
        """
        Resolve the first day to import.

        Explicit start > max(date column) + 1 day > today.
        """
        if start_date is not None:
            self.logger.info(f"Using explicit start date {start_date.isoformat()}")
            return start_date

        today = self.runner.today()
        if writer is None or not self.endpoint.target_table:
            return today

        max_date = await writer.max_value(
            self.endpoint.target_table,
            self.settings.date_column,
            self.endpoint.table_schema
        )
        if max_date is None:
            self.logger.info(f"{self.endpoint.target_table} is empty or missing; starting today")
            return today

        if not isinstance(max_date, date):
            raise CheckpointError(
                f"Unexpected value {max_date!r} in checkpoint column",
                context={"table_name": self.endpoint.target_table, "column": self.settings.date_column}
            )

        self.logger.info(f"Latest date in {self.endpoint.target_table} is {max_date.isoformat()}")
        return max_date + timedelta(days=1)

    async def run(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        dry_run: bool = False
    ) -> ImportSummary:
        """
        Import every day from the resume point through end_date (inclusive).

        Args:
            start_date: Explicit first day (skips the checkpoint query)
            end_date: Last day, defaults to today
            dry_run: Fetch and coerce, but only count rows instead of writing

        Returns:
            ImportSummary with total records written and days with errors

        Raises:
            AuthenticationError: Login failed
            CheckpointError: The resume point could not be determined
        """
        if self.runner.token is None:
            await self.runner.authenticate()

        async with self.runner.connect() as conn:
            writer = UpsertWriter(conn, log=self.logger) if conn is not None else None

            self.state = ImportState.DETERMINE_START
            start = await self.determine_start(writer, start_date)
            end = end_date or self.runner.today()

            summary = ImportSummary(
                endpoint=self.endpoint.name,
                start_date=start,
                end_date=end,
                dry_run=dry_run
            )

            if start > end:
                self.logger.info(f"{self.endpoint.name} is up to date (next day {start.isoformat()})")

            self.logger.info(
                f"Incremental import of {self.endpoint.name} from {start.isoformat()} to {end.isoformat()}"
                + (" [dry-run]" if dry_run else "")
            )

            current = start
            while current <= end:
                self.state = ImportState.IMPORTING
                self.current_date = current

                outcome = await self._import_day(writer, current, dry_run)
                summary.days.append(outcome)
                summary.total_records_written += outcome.items_written
                if outcome.has_errors:
                    summary.total_days_with_errors += 1

                current += timedelta(days=1)

        self.state = ImportState.DONE
        self.current_date = None
        self.logger.info(
            f"Incremental import finished: {summary.total_records_written} record(s) "
            f"{'would be ' if dry_run else ''}written, {summary.total_days_with_errors} day(s) with errors"
        )
        return summary

    async def _import_day(self, writer: Optional[UpsertWriter], day: date, dry_run: bool) -> EndpointOutcome:
        self.logger.info(f"Importing {self.endpoint.name} for {day.isoformat()}")
        try:
            return await self.runner.process_endpoint(
                self.endpoint,
                writer,
                override_date=day,
                extra_values={self.settings.date_column: day},
                dry_run=dry_run
            )
        except SyncException as e:
            self.logger.error(f"{self.endpoint.name} {day.isoformat()}: {e}")
            return EndpointOutcome(endpoint=self.endpoint.name, success=False, import_date=day, error=e.message)
        except Exception as e:
            self.logger.exception(f"Unexpected error importing {self.endpoint.name} for {day.isoformat()}")
            return EndpointOutcome(endpoint=self.endpoint.name, success=False, import_date=day, error=str(e))
