"""
Unit tests for the HTTP request executor
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from ingestion.http_client import HttpRequestExecutor, encode_query_params, is_retryable

SERVER = "https://wpms.test"


def query_param(request: httpx.Request, name: str) -> str:
    return parse_qs(request.url.query.decode())[name][0]


def make_executor(handler, **kwargs) -> HttpRequestExecutor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("retry_delay_seconds", 0)
    return HttpRequestExecutor(client=client, **kwargs)


class TestEncodeQueryParams:

    def test_structured_values_become_compact_json(self):
        encoded = encode_query_params({"ARTC": {"val1": "1303394"}})
        assert encoded == [("ARTC", '{"val1":"1303394"}')]

    def test_scalars_pass_through_and_none_is_dropped(self):
        assert encode_query_params({"a": "x", "b": None, "c": 3}) == [("a", "x"), ("c", 3)]

    def test_empty(self):
        assert encode_query_params(None) == []


@pytest.mark.parametrize("status,expected", [
    (None, True), (500, True), (503, True), (599, True),
    (400, False), (401, False), (404, False), (302, False),
])
def test_is_retryable(status, expected):
    assert is_retryable(status) is expected


class TestExecute:

    @pytest.mark.asyncio
    async def test_success_parses_json(self):
        executor = make_executor(lambda request: httpx.Response(200, json={"1": {"a": "b"}}))

        result = await executor.execute("GET", f"{SERVER}/api/data")

        assert result.success is True
        assert result.status_code == 200
        assert result.parsed_content == {"1": {"a": "b"}}
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_non_json_body_keeps_raw_text(self):
        executor = make_executor(lambda request: httpx.Response(200, text="plain text"))

        result = await executor.execute("GET", f"{SERVER}/api/data")

        assert result.success is True
        assert result.parsed_content is None
        assert result.raw_body == "plain text"

    @pytest.mark.asyncio
    async def test_malformed_json_is_not_an_error(self):
        executor = make_executor(
            lambda request: httpx.Response(200, content=b"{broken", headers={"content-type": "application/json"})
        )

        result = await executor.execute("GET", f"{SERVER}/api/data")

        assert result.success is True
        assert result.parsed_content is None
        assert result.raw_body == "{broken"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        executor = make_executor(handler, retry_count=2)
        result = await executor.execute("GET", f"{SERVER}/api/data")

        assert len(calls) == 3
        assert result.success is False
        assert result.status_code == 503
        assert result.attempts == 3
        assert "503" in result.error

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        responses = iter([httpx.Response(500), httpx.Response(200, json=[{"a": 1}])])
        executor = make_executor(lambda request: next(responses), retry_count=2)

        result = await executor.execute("GET", f"{SERVER}/api/data")

        assert result.success is True
        assert result.attempts == 2
        assert result.parsed_content == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"error": "missing"})

        executor = make_executor(handler, retry_count=2)
        result = await executor.execute("GET", f"{SERVER}/api/data")

        assert len(calls) == 1
        assert result.success is False
        assert result.status_code == 404
        assert result.parsed_content == {"error": "missing"}

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectTimeout("timed out", request=request)

        executor = make_executor(handler, retry_count=1)
        result = await executor.execute("GET", f"{SERVER}/api/data")

        assert len(calls) == 2
        assert result.success is False
        assert result.status_code is None
        assert "ConnectTimeout" in result.error

    @pytest.mark.asyncio
    async def test_negative_retry_count_means_single_attempt(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        executor = make_executor(handler)
        await executor.execute("GET", f"{SERVER}/api/data", retry_count=-1)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_query_parameters_are_json_encoded(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[])

        executor = make_executor(handler)
        await executor.execute(
            "GET",
            f"{SERVER}/api/stock?existing=1",
            query_params={"ARTC": {"val1": "1303394"}}
        )

        request = calls[0]
        assert query_param(request, "ARTC") == '{"val1":"1303394"}'
        assert query_param(request, "existing") == "1"

    @pytest.mark.asyncio
    async def test_headers_body_and_bearer_token(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        executor = make_executor(handler)
        await executor.execute(
            "post",
            f"{SERVER}/api/data",
            headers={"X-Trace": "abc"},
            body={"a": 1},
            bearer_token="tok"
        )

        request = calls[0]
        assert request.method == "POST"
        assert request.headers["accept"] == "application/json"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-Trace"] == "abc"
        assert json.loads(request.content) == {"a": 1}

    @pytest.mark.asyncio
    async def test_string_body_is_sent_verbatim(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        executor = make_executor(handler)
        await executor.execute("POST", f"{SERVER}/api/data", body='{"raw": true}')

        assert calls[0].content == b'{"raw": true}'

    @pytest.mark.asyncio
    async def test_no_authorization_without_token(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        executor = make_executor(handler)
        await executor.execute("GET", f"{SERVER}/api/data")

        assert "Authorization" not in calls[0].headers
