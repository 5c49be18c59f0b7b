"""
Custom exceptions for the WPMS sync pipeline with structured error context.

Each exception carries a context dictionary for debugging and for the
per-endpoint run summary.

Exception Hierarchy:
    SyncException (base)
    ├── ConfigurationError
    │   └── DecryptionError
    ├── AuthenticationError
    ├── TransportError
    ├── CoercionError
    └── PersistenceError
        ├── TableCreationError
        ├── UpsertError
        ├── DataIntegrityError
        └── CheckpointError

Fatal errors (stop the run before any endpoint is processed):
    ConfigurationError, DecryptionError, AuthenticationError

Per-item errors (recorded, the run continues):
    TransportError, CoercionError, PersistenceError and subclasses
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (endpoint, table, status, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Setup Errors (fatal)
# ============================================================================

class ConfigurationError(SyncException):
    """
    Missing server, credentials or endpoint list, or a malformed endpoint schema.

    Context should include:
        - setting: Name of the missing/invalid setting (if applicable)
        - endpoint: Endpoint name (for schema errors)
    """
    pass


class DecryptionError(ConfigurationError):
    """
    No usable password could be obtained from the credential source.

    Treated exactly like a ConfigurationError by the drivers.
    """
    pass


class AuthenticationError(SyncException):
    """
    Login transport failure, or a login response without a usable token.

    Context should include:
        - login_url: The login endpoint
        - status_code: HTTP status code (if applicable)
    """
    pass


# ============================================================================
# Per-item Errors (non-fatal)
# ============================================================================

class TransportError(SyncException):
    """
    Endpoint call failed after exhausting retries.

    Context should include:
        - endpoint: Endpoint name
        - url: Request URL
        - status_code: HTTP status code (if applicable)
    """
    pass


class CoercionError(SyncException):
    """A field value could not be converted to its declared column type."""
    pass


class PersistenceError(SyncException):
    """Base exception for database write/read failures."""
    pass


class TableCreationError(PersistenceError):
    """
    Destination table could not be created.

    Aborts persistence for the affected endpoint only.
    """
    pass


class UpsertError(PersistenceError):
    """
    A single row could not be merged into the destination table.

    Context should include:
        - table_name: Destination table
        - row_index: Index of the row in the batch
    """
    pass


class DataIntegrityError(PersistenceError):
    """A primary-key column received a null, empty or unparsable value."""
    pass


class CheckpointError(PersistenceError):
    """
    The resume-point query against the destination table failed.

    Context should include:
        - table_name: Destination table
        - column: Date column queried
    """
    pass
