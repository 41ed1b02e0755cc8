import httpx
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch

from app.core.circuit_breaker import reset_all
from app.services.market_data.core import response_cache, set_http_client


class UpstreamStub:
    """
    Callable for ``httpx.MockTransport``: the first registered URL fragment
    contained in the request URL decides the response.
    """

    def __init__(self):
        self.routes = []
        self.requests = []

    def add(self, fragment, json=None, status=200, text=None, headers=None):
        self.routes.append((fragment, status, json, text, headers))
        return self

    def calls_to(self, fragment):
        return [r for r in self.requests if fragment in str(r.url)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for fragment, status, json, text, headers in self.routes:
            if fragment in url:
                if isinstance(json, Exception):
                    raise json
                if text is not None:
                    return httpx.Response(status, text=text, headers=headers)
                return httpx.Response(status, json=json, headers=headers)
        return httpx.Response(404, json={"message": "not stubbed"})


@pytest.fixture(autouse=True)
def clean_state():
    """Every test starts with an empty response cache and closed breakers."""
    response_cache.clear()
    reset_all()
    yield
    response_cache.clear()
    reset_all()


@pytest.fixture(autouse=True)
def no_retry_sleep():
    with patch("app.services.market_data.core._sleep", new=AsyncMock()) as sleep:
        yield sleep


@pytest_asyncio.fixture
async def upstream():
    stub = UpstreamStub()
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    set_http_client(client)
    yield stub
    await client.aclose()
    set_http_client(None)
