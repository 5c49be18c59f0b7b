"""
Core utilities and configuration for the WPMS sync.

Modules:
    config: Settings from the environment and endpoint catalogue loading
    database: Async engine creation (one connection per run)
    exceptions: Exception hierarchy for fatal and per-item errors
    logging: Logging configuration
    security: Nonce generation and the WPMS password challenge hash

Usage:
    from core.config import settings, load_sync_config
    from core.database import create_engine
    from core.exceptions import ConfigurationError, AuthenticationError
    from core.logging import setup_logging

Example:
    log = setup_logging()
    config = load_sync_config()
    engine = create_engine(config.sql_connection_string)
"""

__all__ = [
    "settings",
    "load_sync_config",
    "create_engine",
    "setup_logging",
    "generate_nonce",
    "hash_password",
    # Exceptions
    "SyncException",
    "ConfigurationError",
    "DecryptionError",
    "AuthenticationError",
    "TransportError",
    "CoercionError",
    "PersistenceError",
    "TableCreationError",
    "UpsertError",
    "DataIntegrityError",
    "CheckpointError",
]
