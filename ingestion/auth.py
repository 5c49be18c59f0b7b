"""
WPMS login handshake.

The client sends ``{username, password, nonce}`` where password is the double
MD5 challenge response, and receives a bearer token used for every data call
of the run. Login is attempted exactly once: repeated failed logins may lock
the account.
"""

import logging
from typing import Any, Optional

from core.exceptions import AuthenticationError
from core.security import DEFAULT_NONCE_LENGTH, generate_nonce, hash_password
from ingestion.http_client import HttpRequestExecutor

logger = logging.getLogger(__name__)

TOKEN_KEYS = ("token", "access_token", "accessToken")


def extract_token(payload: Any) -> Any:
    """
    Find the bearer token in a login response.

    Looks under ``token``, ``access_token`` and ``accessToken`` in that order;
    falls back to the whole payload when none is present.
    """
    if isinstance(payload, dict):
        for key in TOKEN_KEYS:
            if key in payload and payload[key] is not None:
                return payload[key]
    return payload


class Authenticator:
    """Exchange WPMS credentials for a bearer token"""

    def __init__(self, executor: HttpRequestExecutor, log: Optional[logging.Logger] = None):
        self.executor = executor
        self.logger = log or logger

    async def login(
        self,
        username: str,
        password: str,
        login_url: str,
        nonce: Optional[str] = None,
        skip_hash: bool = False
    ) -> str:
        """
        Authenticate and return the bearer token.

        Args:
            username: WPMS user
            password: Plaintext password
            login_url: Absolute login endpoint URL
            nonce: Nonce to use; a fresh one is generated when empty
            skip_hash: Send the plaintext password instead of the challenge response

        Returns:
            Bearer token string

        Raises:
            AuthenticationError: Transport/HTTP failure or no usable token
        """
        if not nonce:
            nonce = generate_nonce(DEFAULT_NONCE_LENGTH)

        try:
            credential = password if skip_hash else hash_password(password, nonce)
        except ValueError as e:
            raise AuthenticationError(
                "Cannot compute login credential",
                context={"login_url": login_url, "username": username},
                original_exception=e
            )

        self.logger.info(f"Authenticating {username} at {login_url}")

        result = await self.executor.execute(
            "POST",
            login_url,
            headers={"accept": "application/json"},
            body={"username": username, "password": credential, "nonce": nonce},
            retry_count=0
        )

        if not result.success:
            raise AuthenticationError(
                f"Login request failed: {result.error}",
                context={"login_url": login_url, "status_code": result.status_code}
            )

        token = extract_token(result.parsed_content)
        if not isinstance(token, str) or not token.strip():
            raise AuthenticationError(
                "Login response did not contain a token",
                context={
                    "login_url": login_url,
                    "status_code": result.status_code,
                    "response_body": (result.raw_body or "")[:500]
                }
            )

        self.logger.info("Authentication successful")
        return token
