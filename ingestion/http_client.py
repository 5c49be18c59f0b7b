"""
Generic HTTP request executor for the WPMS API.

Provides:
- Query parameter encoding (structured values sent as compact JSON)
- JSON body encoding and bearer token injection
- Per-call timeout
- Fixed-delay retry on network errors and 5xx responses
- Structured success/failure results instead of exceptions
"""

import asyncio
import json
import logging
from typing import Any, List, Mapping, Optional, Tuple

import httpx

from schemas.results import RequestResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_RETRY_COUNT = 2
DEFAULT_RETRY_DELAY_SECONDS = 2.0


def to_compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def encode_query_params(query_params: Optional[Mapping[str, Any]]) -> List[Tuple[str, Any]]:
    """
    Prepare query parameters for the URL.

    Mappings and lists become compact JSON (``ARTC={"val1":"1303394"}``);
    scalars are passed through for URL encoding. None values are dropped.
    """
    encoded = []
    for name, value in (query_params or {}).items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            value = to_compact_json(value)
        encoded.append((name, value))
    return encoded


def is_retryable(status_code: Optional[int]) -> bool:
    """Only connection-level failures (no status) and 5xx responses are retried"""
    return status_code is None or 500 <= status_code < 600


class HttpRequestExecutor:
    """
    Execute HTTP requests with retry and structured results.

    Attributes:
        timeout_seconds: Default per-attempt timeout (default: 60)
        retry_count: Default number of extra attempts after the first (default: 2)
        retry_delay_seconds: Fixed delay between attempts (default: 2)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retry_count: int = DEFAULT_RETRY_COUNT,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        log: Optional[logging.Logger] = None
    ):
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.retry_count = retry_count
        self.retry_delay_seconds = retry_delay_seconds
        self.logger = log or logger

    async def execute(
        self,
        method: str,
        uri: str,
        query_params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        bearer_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        retry_count: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None
    ) -> RequestResult:
        """
        Execute a request, retrying transient failures.

        Args:
            method: HTTP method
            uri: Absolute URL; an existing query string is preserved
            query_params: Parameters appended to the query string
            headers: Extra headers (override the defaults)
            body: String (sent as-is) or JSON-serializable value
            bearer_token: Sets ``Authorization: Bearer <token>``
            timeout_seconds: Per-attempt timeout
            retry_count: Extra attempts after the first
            retry_delay_seconds: Fixed sleep between attempts

        Returns:
            RequestResult; never raises for transport or HTTP errors
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        retries = self.retry_count if retry_count is None else max(retry_count, 0)
        delay = self.retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds

        request_headers = httpx.Headers({"accept": "application/json"})
        content = None
        if body is not None:
            content = body if isinstance(body, str) else to_compact_json(body)
            request_headers["Content-Type"] = "application/json"
        if bearer_token:
            request_headers["Authorization"] = f"Bearer {bearer_token}"
        if headers:
            request_headers.update(headers)

        params = encode_query_params(query_params)
        method = method.upper()

        if self.client is not None:
            return await self._execute_with_retry(
                self.client, method, uri, params, request_headers, content, timeout, retries, delay
            )

        async with httpx.AsyncClient() as client:
            return await self._execute_with_retry(
                client, method, uri, params, request_headers, content, timeout, retries, delay
            )

    async def _execute_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        uri: str,
        params: List[Tuple[str, Any]],
        headers: httpx.Headers,
        content: Optional[str],
        timeout: float,
        retries: int,
        delay: float
    ) -> RequestResult:
        max_attempts = retries + 1
        attempt = 0

        while True:
            attempt += 1
            self.logger.debug(f"{method} {uri} attempt {attempt}/{max_attempts}")

            result = await self._attempt(client, method, uri, params, headers, content, timeout)
            result.attempts = attempt

            if result.success:
                return result

            if attempt >= max_attempts or not is_retryable(result.status_code):
                self.logger.error(
                    f"{method} {uri} failed after {attempt} attempt(s): {result.error}"
                )
                return result

            self.logger.warning(
                f"{method} {uri} failed ({result.error}). "
                f"Retrying in {delay} seconds (attempt {attempt}/{max_attempts})"
            )
            await asyncio.sleep(delay)

    async def _attempt(
        self,
        client: httpx.AsyncClient,
        method: str,
        uri: str,
        params: List[Tuple[str, Any]],
        headers: httpx.Headers,
        content: Optional[str],
        timeout: float
    ) -> RequestResult:
        try:
            response = await client.request(
                method,
                uri,
                params=params or None,
                headers=headers,
                content=content,
                timeout=timeout
            )
            response.raise_for_status()

        except httpx.HTTPStatusError as e:
            return RequestResult(
                success=False,
                status_code=e.response.status_code,
                raw_body=e.response.text,
                parsed_content=self.parse_body(e.response),
                error=f"HTTP {e.response.status_code} {e.response.reason_phrase}".strip()
            )

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return RequestResult(
                success=False,
                error=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            )

        return RequestResult(
            success=True,
            status_code=response.status_code,
            raw_body=response.text,
            parsed_content=self.parse_body(response)
        )

    @staticmethod
    def parse_body(response: httpx.Response) -> Any:
        """
        Parse the body as JSON when it declares or looks like JSON.

        Parse failures leave the content as None; the raw text stays on the result.
        """
        text = response.text
        stripped = text.strip()
        if not stripped:
            return None

        content_type = response.headers.get("content-type", "").lower()
        if "json" not in content_type and not stripped.startswith(("{", "[")):
            return None

        try:
            return json.loads(text)
        except ValueError:
            return None
