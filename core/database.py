"""
Database engine management with SQLAlchemy async
"""

import logging
from typing import Optional

from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def create_engine(url: Optional[str], echo: bool = False) -> Optional[AsyncEngine]:
    """
    Create the async engine for a run, or None for an API-only run.

    A run opens a single connection from this engine; pooling is disabled so
    the connection is really closed when the run ends.
    """
    if not url:
        logger.info("No SQL connection configured; running API-only")
        return None

    try:
        return create_async_engine(
            url,
            echo=echo,
            poolclass=NullPool,
            future=True
        )
    except (ArgumentError, ImportError) as e:
        raise ConfigurationError(
            "Invalid SQL connection string",
            context={"setting": "DATABASE_URL"},
            original_exception=e
        )
