"""
Application configuration using Pydantic Settings
"""

import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from core.exceptions import ConfigurationError, DecryptionError
from schemas.config import SyncConfig

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # WPMS server and credentials
    WPMS_SERVER: Optional[str] = None
    WPMS_USERNAME: Optional[str] = None
    WPMS_PASSWORD: Optional[str] = None
    WPMS_PASSWORD_FILE: Optional[str] = None
    WPMS_LOGIN_URI: Optional[str] = None
    WPMS_SKIP_HASH: bool = False

    # Database (unset means API-only runs)
    DATABASE_URL: Optional[str] = None

    # Endpoint catalogue
    ENDPOINTS_FILE: str = "config/endpoints.json"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # HTTP
    HTTP_TIMEOUT_SECONDS: float = 60.0
    HTTP_RETRY_COUNT: int = 2
    HTTP_RETRY_DELAY_SECONDS: float = 2.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()


def read_password_file(path: str) -> str:
    """
    Read a plaintext password from a file (first line, surrounding whitespace stripped).

    Raises:
        DecryptionError: If the file is missing, unreadable or empty
    """
    try:
        password = Path(path).read_text(encoding="utf-8").splitlines()[0].strip()
    except (OSError, UnicodeDecodeError, IndexError) as e:
        raise DecryptionError(
            "No usable password in credential file",
            context={"setting": "WPMS_PASSWORD_FILE", "path": path},
            original_exception=e
        )

    if not password:
        raise DecryptionError(
            "Credential file contains an empty password",
            context={"setting": "WPMS_PASSWORD_FILE", "path": path}
        )
    return password


def read_endpoints_file(path: str) -> Dict[str, Any]:
    """Load the endpoint catalogue; a bare list is treated as the endpoint list"""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            "Cannot read endpoint catalogue",
            context={"setting": "ENDPOINTS_FILE", "path": path},
            original_exception=e
        )

    if isinstance(data, list):
        return {"endpoints": data}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Endpoint catalogue must be a JSON object or list",
            context={"setting": "ENDPOINTS_FILE", "path": path}
        )
    return data


def load_sync_config(config_settings: Optional[Settings] = None) -> SyncConfig:
    """
    Build the run configuration from settings and the endpoint catalogue.

    Environment settings take precedence over values in the catalogue file.

    Raises:
        ConfigurationError: Missing server/credentials/endpoints or a malformed schema
        DecryptionError: The password source yields no usable password
    """
    config_settings = config_settings or settings
    data = read_endpoints_file(config_settings.ENDPOINTS_FILE)

    credentials = dict(data.get("credentials") or {})
    if config_settings.WPMS_USERNAME:
        credentials["username"] = config_settings.WPMS_USERNAME
    if config_settings.WPMS_PASSWORD:
        credentials["password"] = config_settings.WPMS_PASSWORD
    elif config_settings.WPMS_PASSWORD_FILE:
        credentials["password"] = read_password_file(config_settings.WPMS_PASSWORD_FILE)

    if not credentials.get("username"):
        raise ConfigurationError("WPMS username is not configured", context={"setting": "WPMS_USERNAME"})
    if not credentials.get("password"):
        raise DecryptionError("No usable WPMS password", context={"setting": "WPMS_PASSWORD"})

    data["credentials"] = credentials
    if config_settings.WPMS_SERVER:
        data["server"] = config_settings.WPMS_SERVER
    if config_settings.WPMS_LOGIN_URI:
        data["loginUri"] = config_settings.WPMS_LOGIN_URI
    if config_settings.WPMS_SKIP_HASH:
        data["skipHash"] = True
    if config_settings.DATABASE_URL:
        data["sqlConnectionString"] = config_settings.DATABASE_URL

    if not data.get("server"):
        raise ConfigurationError("WPMS server is not configured", context={"setting": "WPMS_SERVER"})
    if not data.get("endpoints"):
        raise ConfigurationError("No endpoints configured", context={"setting": "ENDPOINTS_FILE"})

    try:
        config = SyncConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid endpoint configuration",
            context={"errors": e.error_count()},
            original_exception=e
        )

    logger.info(
        f"Loaded configuration for {config.server} with {len(config.endpoints)} endpoint(s)"
    )
    return config
