"""
Pytest configuration and fixtures
"""

from typing import AsyncGenerator, Callable, Dict

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from schemas.config import EndpointConfig, SyncConfig

# Shared in-memory database: StaticPool keeps a single connection alive so
# the runner's connection and the assertions see the same data
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SERVER = "https://wpms.test"
LOGIN_URL = f"{SERVER}/api/login"


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_connection(test_engine):
    """Connection for assertions against the test database"""
    async with test_engine.connect() as conn:
        yield conn


@pytest.fixture
def productivity_endpoint_data() -> Dict:
    """Productivity statistics endpoint as written in the catalogue"""
    return {
        "name": "productivity",
        "uri": "/api/EstatProdutividade",
        "httpMethod": "GET",
        "parameters": {"Date": {"val1": "DYNAMIC:PreviousMondayDate"}},
        "targetTable": "MOV_ESTAT_PRODUTIVIDADE",
        "incremental": {"dateColumn": "Date"},
        "fieldMappings": {
            "Whrs": "Whrs",
            "Oprt": "Oprt",
            "WrkType": "WrkType",
            "QttPicked": "QttPicked",
            "NrErrors": "NrErrors",
        },
        "tableSchema": [
            {"Name": "Date", "Type": "DATE", "IsPrimaryKey": True},
            {"Name": "Whrs", "Type": "NVARCHAR(10)", "IsPrimaryKey": True},
            {"Name": "Oprt", "Type": "NVARCHAR(20)", "IsPrimaryKey": True},
            {"Name": "WrkType", "Type": "NVARCHAR(20)", "IsPrimaryKey": True},
            {"Name": "QttPicked", "Type": "DECIMAL(18,3)"},
            {"Name": "NrErrors", "Type": "INT"},
        ],
    }


@pytest.fixture
def users_endpoint_data() -> Dict:
    """Operator master data endpoint"""
    return {
        "name": "users",
        "uri": "/api/Users",
        "targetTable": "TM_USERS",
        "fieldMappings": {"Operator": "Operator", "Name": "Name"},
        "tableSchema": [
            {"Name": "Operator", "Type": "NVARCHAR(20)", "IsPrimaryKey": True},
            {"Name": "Name", "Type": "NVARCHAR(100)"},
        ],
    }


@pytest.fixture
def productivity_endpoint(productivity_endpoint_data) -> EndpointConfig:
    return EndpointConfig.model_validate(productivity_endpoint_data)


@pytest.fixture
def sync_config(productivity_endpoint_data, users_endpoint_data) -> SyncConfig:
    return SyncConfig.model_validate({
        "server": SERVER,
        "credentials": {"username": "reporter", "password": "Kik02006!"},
        "endpoints": [productivity_endpoint_data, users_endpoint_data],
    })


@pytest.fixture
def mock_productivity_payload() -> Dict:
    """WPMS numbered-key response for one day of productivity statistics"""
    return {
        "1": {"Whrs": "W1", "Oprt": "OP1", "WrkType": "PICK", "QttPicked": "10", "NrErrors": "0"},
        "2": {"Whrs": "W1", "Oprt": "OP2", "WrkType": "PICK", "QttPicked": "20", "NrErrors": "1"},
    }


@pytest.fixture
def wpms_client() -> Callable[..., httpx.AsyncClient]:
    """
    Build an AsyncClient backed by a fake WPMS server.

    ``routes`` maps a URL path to a response, or to a callable taking the
    request and returning a response. Every request is recorded in ``calls``.
    The login path answers with a token unless overridden.
    """

    def factory(routes: Dict, calls: list = None) -> httpx.AsyncClient:
        recorded = calls if calls is not None else []
        all_routes = {"/api/login": httpx.Response(200, json={"token": "test-token"})}
        all_routes.update(routes)

        def handler(request: httpx.Request) -> httpx.Response:
            recorded.append(request)
            route = all_routes.get(request.url.path)
            if route is None:
                return httpx.Response(404, json={"error": "not found"})
            if callable(route):
                return route(request)
            # fresh copy, a Response instance cannot be sent twice
            return httpx.Response(route.status_code, headers=route.headers, content=route.content)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
