"""
Script to run a single sync over all (or the named) configured WPMS endpoints

Usage:
    python scripts/run_sync.py [endpoint ...] [--dry-run]

Exit codes:
    0  every endpoint succeeded
    1  configuration, authentication or database setup failed (nothing synced)
    2  the run finished but at least one endpoint or row failed
"""

import argparse
import asyncio
import os
import sys

# Add current directory to path to allow imports from core, ingestion, etc.
sys.path.append(os.getcwd())

from core.config import settings, load_sync_config
from core.database import create_engine
from core.exceptions import SyncException
from core.logging import setup_logging
from ingestion.http_client import HttpRequestExecutor
from ingestion.runner import SyncRunner


async def run_sync(endpoint_names, dry_run: bool) -> int:
    """Run the sync and return the process exit code"""
    logger = setup_logging()
    engine = None

    try:
        config = load_sync_config(settings)
        engine = create_engine(config.sql_connection_string)

        executor = HttpRequestExecutor(
            timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
            retry_count=settings.HTTP_RETRY_COUNT,
            retry_delay_seconds=settings.HTTP_RETRY_DELAY_SECONDS,
            log=logger
        )
        runner = SyncRunner(config, executor=executor, engine=engine, log=logger)
        outcomes = await runner.run(endpoint_names, dry_run=dry_run)

    except SyncException as e:
        logger.error(f"Sync aborted: {e}")
        return 1
    finally:
        if engine is not None:
            await engine.dispose()

    for outcome in outcomes:
        status = "OK" if not outcome.has_errors else "FAILED"
        logger.info(
            f"{outcome.endpoint}: {status} "
            f"received={outcome.items_received} written={outcome.items_written} "
            f"failed={outcome.items_failed}"
            + (f" error={outcome.error}" if outcome.error else "")
        )

    return 2 if any(o.has_errors for o in outcomes) else 0


def main():
    parser = argparse.ArgumentParser(description="Sync WPMS endpoints into the reporting database")
    parser.add_argument("endpoints", nargs="*", help="Endpoint names (default: all)")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and coerce without writing")
    args = parser.parse_args()

    sys.exit(asyncio.run(run_sync(args.endpoints, args.dry_run)))


if __name__ == "__main__":
    main()
