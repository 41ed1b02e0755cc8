"""
Shared HTTP infrastructure for the market data services.

Every provider service derives from ``BaseApiService``, which owns:

- one shared ``httpx.AsyncClient`` (swappable in tests)
- per-provider circuit breakers
- the service-level retry policy (tenacity, exponential backoff, 4xx never retried)
- a small in-memory TTL cache standing in for ``revalidate`` hints
"""
from __future__ import annotations

import asyncio
import copy
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Type, TypeVar

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from app.core.circuit_breaker import CircuitOpenError, get_circuit_breaker
from app.core.config import settings
from app.core.logging_config import (
    get_main_logger,
    log_upstream_call,
    log_upstream_error,
)

from .envelopes import decode_success_envelope
from .errors import ApiServiceError

logger = get_main_logger()

T = TypeVar("T")

_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the process-wide AsyncClient, creating it on first use."""
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=settings.http_timeout,
            follow_redirects=True,
        )
    return _http_client


def set_http_client(client: Optional[httpx.AsyncClient]) -> None:
    """Replace the shared client (tests install an ``httpx.MockTransport`` here)."""
    global _http_client
    _http_client = client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


class ResponseCache:
    """
    In-memory TTL cache keyed by URL and query parameters.

    Expired entries are pruned on every write; past ``max_entries`` the
    oldest entry is evicted.
    """

    def __init__(self, max_entries: Optional[int] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: Dict[str, Tuple[float, Any]] = {}
        self.max_entries = max_entries
        self._clock = clock

    @staticmethod
    def make_key(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
        if not params:
            return url
        query = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return f"{url}?{query}"

    def get(self, key: str) -> Any:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._store.pop(key, None)
            return None
        return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: float) -> None:
        now = self._clock()
        self.prune(now)
        self._store.pop(key, None)
        limit = self.max_entries if self.max_entries is not None else settings.cache_max_entries
        while self._store and len(self._store) >= limit:
            self._store.pop(next(iter(self._store)))
        self._store[key] = (now + ttl, copy.deepcopy(value))

    def prune(self, now: Optional[float] = None) -> None:
        """Drop every expired entry."""
        now = self._clock() if now is None else now
        for key in [k for k, (expires_at, _) in self._store.items() if now >= expires_at]:
            del self._store[key]

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


response_cache = ResponseCache()


def clean_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop None and empty-string query parameters."""
    if not params:
        return {}
    return {k: v for k, v in params.items() if v is not None and v != ""}


_REDACTED_PARAMS = ("key", "api_key", "apikey", "token", "access_token")


def loggable_url(url: Any, params: Optional[Mapping[str, Any]] = None) -> str:
    """``url`` for log lines, with credential query parameters masked."""
    url = httpx.URL(str(url), params=params) if params else httpx.URL(str(url))
    for name in _REDACTED_PARAMS:
        if name in url.params:
            url = url.copy_set_param(name, "***")
    return str(url)


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


def _should_retry(error: BaseException) -> bool:
    """Client errors (HTTP 4xx) and open circuits are final, everything else may be retried."""
    if isinstance(error, CircuitOpenError):
        return False
    if isinstance(error, ApiServiceError) and error.is_client_error():
        return False
    return isinstance(error, Exception)


class BaseApiService:
    """Base class with the request, retry and envelope handling shared by all providers."""

    provider: str = "internal"
    error_cls: Type[ApiServiceError] = ApiServiceError
    default_headers: Dict[str, str] = {"Content-Type": "application/json"}

    @property
    def client(self) -> httpx.AsyncClient:
        return get_http_client()

    async def _request(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        method: str = "GET",
        provider: Optional[str] = None,
    ) -> httpx.Response:
        breaker = get_circuit_breaker(provider or self.provider)
        breaker.ensure_can_proceed()

        merged_headers = {**self.default_headers, **(headers or {})}
        query = clean_params(params)
        started = time.perf_counter()
        try:
            response = await self.client.request(method, url, params=query, headers=merged_headers)
        except httpx.HTTPError as e:
            breaker.record_failure()
            log_upstream_error(method, loggable_url(url, query), f"{type(e).__name__}: {e}")
            raise self.error_cls(str(e) or "Network error", original_error=e) from e

        elapsed = time.perf_counter() - started
        log_upstream_call(method, loggable_url(response.request.url), response.status_code, elapsed)

        if response.status_code == 429:
            breaker.force_open(_retry_after_seconds(response))
        elif response.status_code >= 500:
            breaker.record_failure()
        else:
            breaker.record_success()

        if not response.is_success:
            raise self.error_cls(f"HTTP error! status: {response.status_code}", response.status_code)
        return response

    async def fetch_with_error_handling(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        provider: Optional[str] = None,
    ) -> Any:
        """GET ``url`` and decode its JSON body. Non-2xx raises with the status code."""
        response = await self._request(url, params=params, headers=headers, provider=provider)
        try:
            return response.json()
        except ValueError as e:
            raise self.error_cls("Invalid JSON response", response.status_code, e) from e

    async def fetch_text(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        provider: Optional[str] = None,
    ) -> str:
        response = await self._request(url, params=params, headers=headers, provider=provider)
        return response.text

    async def fetch_server_side(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        revalidate: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> Any:
        """
        Like ``fetch_with_error_handling`` but serves repeated requests from
        the in-memory cache for ``revalidate`` seconds (0 disables caching).
        """
        ttl = settings.default_revalidate if revalidate is None else revalidate
        key = ResponseCache.make_key(url, clean_params(params))
        if ttl > 0:
            cached = response_cache.get(key)
            if cached is not None:
                return cached

        data = await self.fetch_with_error_handling(url, params=params, headers=headers, provider=provider)
        if ttl > 0:
            response_cache.set(key, data, ttl)
        return data

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> T:
        """
        Run ``operation`` up to ``max_attempts`` times.

        The wait before retry ``n`` (0-based) is ``base_delay * 2**n``.
        HTTP 4xx errors are re-raised immediately; after the last attempt the
        last error is re-raised unchanged.
        """
        attempts = max_attempts or settings.retry_max_attempts
        delay = settings.retry_base_delay if base_delay is None else base_delay

        result = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=delay, exp_base=2),
            retry=retry_if_exception(_should_retry),
            sleep=_sleep,
            reraise=True,
            before_sleep=lambda state: logger.warning(
                f"[{self.provider}] attempt {state.attempt_number}/{attempts} failed: "
                f"{state.outcome.exception()} - retrying"
            ),
        ):
            with attempt:
                result = await operation()
        return result

    def validate_response(self, response: Any) -> None:
        decode_success_envelope(response, self.error_cls)

    def process_response(self, response: Any) -> Any:
        """Validate a ``{success, data, message}`` envelope and return ``data``."""
        return decode_success_envelope(response, self.error_cls)

    @staticmethod
    def get_api_url(endpoint: str) -> str:
        """Full URL on the internal companies backend."""
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{settings.api_base_url.rstrip('/')}{path}"

    @staticmethod
    def get_internal_api_url(endpoint: str) -> str:
        """Path of one of this service's own routes."""
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{settings.api_v1_prefix}{path}"


__all__ = [
    "BaseApiService",
    "ResponseCache",
    "response_cache",
    "clean_params",
    "loggable_url",
    "get_http_client",
    "set_http_client",
    "close_http_client",
    "logger",
]
