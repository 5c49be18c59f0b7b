"""
Unit tests for exceptions, engine creation and logging setup
"""

import logging

import pytest

from core.database import create_engine
from core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DataIntegrityError,
    DecryptionError,
    PersistenceError,
    SyncException,
)
from core.logging import setup_logging


class TestExceptions:

    def test_hierarchy(self):
        assert issubclass(DecryptionError, ConfigurationError)
        assert issubclass(DataIntegrityError, PersistenceError)
        assert issubclass(AuthenticationError, SyncException)

    def test_str_includes_context_and_cause(self):
        cause = ValueError("bad value")
        error = PersistenceError("Write failed", context={"table_name": "TM_USERS"}, original_exception=cause)

        text = str(error)
        assert text.startswith("PersistenceError: Write failed")
        assert "table_name=TM_USERS" in text
        assert "Caused by: ValueError: bad value" in text
        assert error.__cause__ is cause

    def test_to_dict(self):
        error = DataIntegrityError("Null key", context={"columns": ["Oprt"]})

        data = error.to_dict()
        assert data["error_type"] == "DataIntegrityError"
        assert data["message"] == "Null key"
        assert data["context"]["columns"] == ["Oprt"]
        assert data["original_error"] is None


class TestCreateEngine:

    def test_no_url_means_api_only(self):
        assert create_engine(None) is None
        assert create_engine("") is None

    @pytest.mark.asyncio
    async def test_creates_async_engine(self):
        engine = create_engine("sqlite+aiosqlite:///:memory:")
        assert engine.dialect.name == "sqlite"
        await engine.dispose()

    @pytest.mark.parametrize("url", ["not a url", "postgresql+nosuchdriver://u:p@localhost/db"])
    def test_invalid_url(self, url):
        with pytest.raises(ConfigurationError):
            create_engine(url)


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "sync.log"

    logger = setup_logging("debug", str(log_file))
    logger.info("hello from the sync")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logger.name == "wpms_sync"
    assert logging.getLogger().level == logging.DEBUG
    assert "hello from the sync" in log_file.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)


def test_exception_timestamp_is_utc_aware():
    error = SyncException("boom")
    assert error.timestamp.tzinfo is not None
    assert error.timestamp.utcoffset().total_seconds() == 0
