"""
Script to run the day-by-day incremental import of a time-series endpoint

Usage:
    python scripts/run_incremental.py --endpoint productivity [--start 2025-06-01] [--end 2025-06-10] [--dry-run]

Without --start the import resumes the day after the latest date already in
the destination table (or today when the table is empty).

Exit codes:
    0  every day imported without errors
    1  configuration, authentication or checkpoint failure (nothing imported)
    2  the import finished but at least one day had errors
"""

import argparse
import asyncio
import os
import sys
from datetime import date

# Add current directory to path to allow imports from core, ingestion, etc.
sys.path.append(os.getcwd())

from core.config import settings, load_sync_config
from core.database import create_engine
from core.exceptions import ConfigurationError, SyncException
from core.logging import setup_logging
from ingestion.http_client import HttpRequestExecutor
from ingestion.incremental import IncrementalImportDriver
from ingestion.runner import SyncRunner


def parse_date(value: str) -> date:
    """Accept yyyy-MM-dd or yyyyMMdd"""
    try:
        if len(value) == 8 and value.isdigit():
            return date(int(value[:4]), int(value[4:6]), int(value[6:]))
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value!r}")


async def run_incremental(endpoint_name: str, start, end, dry_run: bool) -> int:
    """Run the import and return the process exit code"""
    logger = setup_logging()
    engine = None

    try:
        config = load_sync_config(settings)
        endpoint = config.get_endpoint(endpoint_name)
        if endpoint is None:
            raise ConfigurationError(f"Unknown endpoint {endpoint_name!r}", context={"endpoint": endpoint_name})

        engine = create_engine(config.sql_connection_string)
        executor = HttpRequestExecutor(
            timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
            retry_count=settings.HTTP_RETRY_COUNT,
            retry_delay_seconds=settings.HTTP_RETRY_DELAY_SECONDS,
            log=logger
        )
        runner = SyncRunner(config, executor=executor, engine=engine, log=logger)
        driver = IncrementalImportDriver(runner, endpoint, log=logger)
        summary = await driver.run(start_date=start, end_date=end, dry_run=dry_run)

    except SyncException as e:
        logger.error(f"Incremental import aborted: {e}")
        return 1
    finally:
        if engine is not None:
            await engine.dispose()

    logger.info(
        f"Summary for {summary.endpoint} {summary.start_date.isoformat()}..{summary.end_date.isoformat()}: "
        f"records={summary.total_records_written} days_with_errors={summary.total_days_with_errors}"
    )
    return 0 if summary.success else 2


def main():
    parser = argparse.ArgumentParser(description="Incremental day-by-day WPMS import")
    parser.add_argument("--endpoint", default="productivity", help="Endpoint name (default: productivity)")
    parser.add_argument("--start", type=parse_date, help="First day to import")
    parser.add_argument("--end", type=parse_date, help="Last day to import (default: today)")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and coerce without writing")
    args = parser.parse_args()

    sys.exit(asyncio.run(run_incremental(args.endpoint, args.start, args.end, args.dry_run)))


if __name__ == "__main__":
    main()
