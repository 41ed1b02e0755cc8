"""
Loading / error / retry bookkeeping around an async operation.

``ApiState`` tracks one operation, ``MultiApiState`` one operation per key
and ``PaginatedApiState`` a page-aware operation. A newer ``execute()``
cancels the one still in flight, as do ``reset()`` and ``close()``, so a
stale result never overwrites newer state.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from app.core.logging_config import get_main_logger

logger = get_main_logger()

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_ITEMS_PER_PAGE = 20
UNKNOWN_ERROR = "An unknown error occurred"


def _error_message(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error) or UNKNOWN_ERROR


class ApiState(Generic[T]):
    def __init__(self, initial_data: Optional[T] = None, max_retries: int = DEFAULT_MAX_RETRIES):
        self.initial_data = initial_data
        self.max_retries = max_retries
        self.data: Optional[T] = initial_data
        self.loading = False
        self.error: Optional[str] = None
        self.retry_count = 0
        self._last_operation: Optional[Callable[[], Awaitable[T]]] = None
        self._task: Optional[asyncio.Future] = None

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _on_success(self, result: Any) -> None:
        self.data = result

    def _on_failure(self, error: Exception) -> None:
        logger.error(f"API operation failed: {error}")
        self.loading = False
        self.error = _error_message(error)
        self.retry_count += 1

    async def _run(self, operation: Callable[[], Awaitable[Any]]) -> None:
        self._cancel_pending()
        self.loading = True
        self.error = None

        try:
            task = asyncio.ensure_future(operation())
        except Exception as e:
            # raised before anything was awaited, or returned a non-awaitable
            self._on_failure(e)
            return
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._task is not task:
                # superseded by a newer execute() or by reset()
                return
            self.loading = False
            raise
        except Exception as e:
            if self._task is not task:
                return
            self._on_failure(e)
        else:
            if self._task is not task:
                return
            self._on_success(result)
            self.loading = False
            self.retry_count = 0
        finally:
            if self._task is task:
                self._task = None

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> None:
        """Run ``operation`` and record its outcome. Failures are stored, never raised."""
        self._last_operation = operation
        await self._run(operation)

    def can_retry(self) -> bool:
        return self._last_operation is not None and self.retry_count < self.max_retries

    async def retry(self) -> bool:
        """Re-run the last operation; returns False when retries are exhausted."""
        if not self.can_retry():
            return False
        await self.execute(self._last_operation)
        return True

    def clear_error(self) -> None:
        self.error = None

    def reset(self) -> None:
        self._cancel_pending()
        self.data = self.initial_data
        self.loading = False
        self.error = None
        self.retry_count = 0
        self._last_operation = None

    def close(self) -> None:
        self._cancel_pending()
        self.loading = False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "loading": self.loading,
            "error": self.error,
            "retry_count": self.retry_count,
        }


class MultiApiState:
    """Independent ``ApiState`` per key, for pages that load several datasets at once."""

    def __init__(self, keys: Iterable[str], max_retries: int = DEFAULT_MAX_RETRIES):
        self.states: Dict[str, ApiState] = {key: ApiState(max_retries=max_retries) for key in keys}

    def __getitem__(self, key: str) -> ApiState:
        return self.states[key]

    async def execute(self, key: str, operation: Callable[[], Awaitable[Any]]) -> None:
        await self.states[key].execute(operation)

    async def retry(self, key: str) -> bool:
        return await self.states[key].retry()

    def clear_error(self, key: str) -> None:
        self.states[key].clear_error()

    def reset(self, key: str) -> None:
        self.states[key].reset()

    def close(self) -> None:
        for state in self.states.values():
            state.close()

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {key: state.snapshot() for key, state in self.states.items()}


PageOperation = Callable[[int, int], Awaitable[Dict[str, Any]]]


class PaginatedApiState(ApiState[List[Any]]):
    """
    ``ApiState`` for operations called as ``operation(page, limit)`` that
    return ``{"data", "total", "page", "total_pages"}``.
    """

    def __init__(self, items_per_page: int = DEFAULT_ITEMS_PER_PAGE, max_retries: int = DEFAULT_MAX_RETRIES):
        super().__init__(initial_data=[], max_retries=max_retries)
        self.items_per_page = items_per_page
        self._reset_pages()

    def _reset_pages(self) -> None:
        self.page = 1
        self.total_pages = 0
        self.total = 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def _on_success(self, result: Dict[str, Any]) -> None:
        self.data = result.get("data") or []
        self.total = result.get("total") or 0
        self.page = result.get("page") or self.page
        self.total_pages = result.get("total_pages") or 0

    async def execute(self, operation: PageOperation) -> None:
        self._last_operation = operation
        page, limit = self.page, self.items_per_page
        await self._run(lambda: operation(page, limit))

    async def _load_page(self, page: int) -> bool:
        if self._last_operation is None:
            return False
        self.page = page
        await self.execute(self._last_operation)
        return True

    async def next_page(self) -> bool:
        if not self.has_next_page:
            return False
        return await self._load_page(self.page + 1)

    async def previous_page(self) -> bool:
        if not self.has_previous_page:
            return False
        return await self._load_page(self.page - 1)

    async def go_to_page(self, page: int) -> bool:
        if not 1 <= page <= self.total_pages:
            return False
        return await self._load_page(page)

    def reset(self) -> None:
        super().reset()
        self.data = []
        self._reset_pages()

    def snapshot(self) -> Dict[str, Any]:
        return {
            **super().snapshot(),
            "page": self.page,
            "total_pages": self.total_pages,
            "total": self.total,
            "has_next_page": self.has_next_page,
            "has_previous_page": self.has_previous_page,
        }


__all__ = ["ApiState", "MultiApiState", "PaginatedApiState", "DEFAULT_MAX_RETRIES"]
