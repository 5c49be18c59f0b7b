import asyncio
import sys
import os

# Add current directory to path to allow imports from core, ingestion, etc.
sys.path.append(os.getcwd())

from core.config import settings, load_sync_config
from core.database import create_engine
from core.exceptions import SyncException
from core.logging import setup_logging
from ingestion.loaders.upsert_writer import UpsertWriter


async def init_database() -> int:
    """Create every configured destination table that does not exist yet"""
    logger = setup_logging()

    try:
        config = load_sync_config(settings)
        engine = create_engine(config.sql_connection_string)
    except SyncException as e:
        logger.error(str(e))
        return 1

    if engine is None:
        logger.error("DATABASE_URL is not set")
        return 1

    failed = 0
    try:
        async with engine.connect() as conn:
            writer = UpsertWriter(conn, log=logger)
            for endpoint in config.endpoints:
                if not endpoint.target_table:
                    continue
                try:
                    await writer.ensure_table(endpoint.target_table, endpoint.table_schema)
                    logger.info(f"Table {endpoint.target_table} ready")
                except SyncException as e:
                    failed += 1
                    logger.error(str(e))
    finally:
        await engine.dispose()

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(init_database()))
