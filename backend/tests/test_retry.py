import httpx
import pytest

from app.core.circuit_breaker import CircuitOpenError, CircuitState, get_circuit_breaker
from app.services.market_data.core import BaseApiService, ResponseCache, loggable_url
from app.services.market_data.errors import ApiServiceError, StockServiceError


class FlakyService(BaseApiService):
    provider = "test_provider"
    error_cls = StockServiceError


@pytest.mark.asyncio
async def test_with_retry_backs_off_exponentially(no_retry_sleep):
    service = FlakyService()
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise StockServiceError("boom", 500)
        return "ok"

    assert await service.with_retry(operation) == "ok"
    assert len(attempts) == 3
    assert [call.args[0] for call in no_retry_sleep.await_args_list] == [2.0, 4.0]


@pytest.mark.asyncio
async def test_with_retry_reraises_last_error_after_max_attempts(no_retry_sleep):
    service = FlakyService()
    calls = []

    async def operation():
        calls.append(1)
        raise StockServiceError(f"failure {len(calls)}", 503)

    with pytest.raises(StockServiceError, match="failure 3"):
        await service.with_retry(operation)
    assert len(calls) == 3
    assert no_retry_sleep.await_count == 2


@pytest.mark.asyncio
async def test_with_retry_does_not_retry_client_errors(no_retry_sleep):
    service = FlakyService()
    calls = []

    async def operation():
        calls.append(1)
        raise StockServiceError("not found", 404)

    with pytest.raises(StockServiceError):
        await service.with_retry(operation)
    assert len(calls) == 1
    assert no_retry_sleep.await_count == 0


@pytest.mark.asyncio
async def test_with_retry_does_not_retry_open_circuit(no_retry_sleep):
    service = FlakyService()
    calls = []

    async def operation():
        calls.append(1)
        raise CircuitOpenError("test_provider", 5)

    with pytest.raises(CircuitOpenError):
        await service.with_retry(operation)
    assert len(calls) == 1
    assert no_retry_sleep.await_count == 0


@pytest.mark.asyncio
async def test_with_retry_respects_custom_base_delay(no_retry_sleep):
    service = FlakyService()

    async def operation():
        raise ApiServiceError("down")

    with pytest.raises(ApiServiceError):
        await service.with_retry(operation, max_attempts=2, base_delay=1.0)
    assert [call.args[0] for call in no_retry_sleep.await_args_list] == [1.0]


@pytest.mark.asyncio
async def test_non_2xx_raises_with_status(upstream):
    upstream.add("/missing", json={"message": "nope"}, status=404)
    with pytest.raises(StockServiceError) as exc:
        await FlakyService().fetch_with_error_handling("https://example.test/missing")
    assert exc.value.status_code == 404
    assert exc.value.message == "HTTP error! status: 404"


@pytest.mark.asyncio
async def test_transport_error_is_wrapped(upstream):
    upstream.add("/down", json=httpx.ConnectError("refused"))
    with pytest.raises(StockServiceError) as exc:
        await FlakyService().fetch_with_error_handling("https://example.test/down")
    assert isinstance(exc.value.original_error, httpx.ConnectError)
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_rate_limit_opens_provider_breaker(upstream):
    upstream.add("/limited", json={}, status=429, headers={"Retry-After": "12"})
    service = FlakyService()
    with pytest.raises(StockServiceError):
        await service.fetch_with_error_handling("https://example.test/limited")

    breaker = get_circuit_breaker("test_provider")
    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitOpenError) as exc:
        await service.fetch_with_error_handling("https://example.test/limited")
    assert exc.value.provider == "test_provider"
    assert len(upstream.calls_to("/limited")) == 1


@pytest.mark.asyncio
async def test_fetch_server_side_caches_until_revalidate(upstream):
    upstream.add("/cached", json={"value": 1})
    service = FlakyService()
    first = await service.fetch_server_side("https://example.test/cached", params={"a": 1}, revalidate=60)
    first["value"] = 99
    second = await service.fetch_server_side("https://example.test/cached", params={"a": 1}, revalidate=60)
    assert second == {"value": 1}
    assert len(upstream.calls_to("/cached")) == 1

    await service.fetch_server_side("https://example.test/cached", params={"a": 1}, revalidate=0)
    assert len(upstream.calls_to("/cached")) == 2


@pytest.mark.asyncio
async def test_empty_params_are_not_sent(upstream):
    upstream.add("/params", json={})
    await FlakyService().fetch_with_error_handling(
        "https://example.test/params", params={"page": 1, "search": "", "sector": None}
    )
    request = upstream.calls_to("/params")[0]
    assert dict(request.url.params) == {"page": "1"}


def test_get_api_url_normalises_leading_slash():
    assert BaseApiService.get_api_url("api/companies") == BaseApiService.get_api_url("/api/companies")
    assert BaseApiService.get_api_url("/api/companies").endswith("/api/companies")


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_response_cache_prunes_expired_entries_on_write():
    clock = FakeClock()
    cache = ResponseCache(max_entries=100, clock=clock)
    for i in range(50):
        cache.set(f"https://example.test/quote?symbol={i}", {"i": i}, ttl=60)
    assert len(cache) == 50

    clock.now += 61
    cache.set("https://example.test/fresh", {"fresh": True}, ttl=60)
    assert len(cache) == 1
    assert cache.get("https://example.test/quote?symbol=0") is None
    assert cache.get("https://example.test/fresh") == {"fresh": True}


def test_response_cache_evicts_oldest_when_full():
    clock = FakeClock()
    cache = ResponseCache(max_entries=3, clock=clock)
    for key in ("a", "b", "c", "d"):
        cache.set(key, key.upper(), ttl=60)
    assert len(cache) == 3
    assert cache.get("a") is None
    assert [cache.get(key) for key in ("b", "c", "d")] == ["B", "C", "D"]

    cache.set("b", "B2", ttl=60)
    assert len(cache) == 3
    assert cache.get("b") == "B2"


def test_loggable_url_masks_credentials():
    url = loggable_url("https://sheets.example.test/values/A1?key=SECRET123&majorDimension=ROWS")
    assert "SECRET123" not in url
    assert "majorDimension=ROWS" in url
    assert "SECRET123" not in loggable_url("https://example.test/feed", {"token": "SECRET123", "page": 2})
