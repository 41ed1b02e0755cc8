"""
Result type and one decoder per upstream response envelope.

Upstream providers wrap their payloads differently:

- internal backend / WordPress: ``{"success": bool, "data": ..., "message": str}``
- Simplize / 24hmoney:          ``{"status": 200, "message": str, "data": ...}``
- VietCap IQ:                   ``{"successful": bool, "msg": str, "status": int, "data": ...}``
- Google Sheets values API:     ``{"range": str, "values": [[...], ...]}``

Each decoder returns the unwrapped payload or raises the service's error
class, so callers never branch on envelope flags themselves.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Generic, List, Optional, Type, TypeVar

from .errors import ApiServiceError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one branch of an aggregate fetch."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def err(cls, error: BaseException) -> "Result[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value if self.error is None else default

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error)


def _require_dict(payload: Any, error_cls: Type[ApiServiceError]) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise error_cls("Invalid response format")
    return payload


def decode_success_envelope(
    payload: Any,
    error_cls: Type[ApiServiceError] = ApiServiceError,
    default_message: str = "API request failed",
) -> Any:
    """Unwrap ``{success, data, message}``."""
    body = _require_dict(payload, error_cls)
    if not body.get("success"):
        raise error_cls(body.get("message") or default_message)
    return body.get("data")


def decode_status_envelope(
    payload: Any,
    error_cls: Type[ApiServiceError] = ApiServiceError,
    expected_status: int = 200,
) -> Any:
    """Unwrap ``{status, message, data}`` where success means ``status == expected_status``."""
    body = _require_dict(payload, error_cls)
    status = body.get("status")
    if status != expected_status:
        raise error_cls(body.get("message") or f"API returned status {status}")
    return body.get("data")


def decode_vietcap_envelope(
    payload: Any,
    error_cls: Type[ApiServiceError] = ApiServiceError,
) -> Any:
    """Unwrap VietCap's ``{successful, msg, status, data}``."""
    body = _require_dict(payload, error_cls)
    if not body.get("successful"):
        raise error_cls(body.get("msg") or "API returned unsuccessful response", body.get("status"))
    return body.get("data")


def decode_sheet_values(
    payload: Any,
    error_cls: Type[ApiServiceError] = ApiServiceError,
    min_rows: int = 2,
) -> List[List[Any]]:
    """Return the rows of a Google Sheets values response (header included)."""
    body = _require_dict(payload, error_cls)
    values = body.get("values")
    if not isinstance(values, list) or len(values) < min_rows:
        raise error_cls("Invalid or empty data from Google Sheets")
    return values


async def gather_settled(**operations: Awaitable[Any]) -> Dict[str, Result]:
    """
    Await every operation concurrently and collect a Result per name.

    One failing branch never discards the others. Cancellation of the caller
    still propagates: ``asyncio.CancelledError`` is not captured.
    """
    names = list(operations.keys())
    outcomes = await asyncio.gather(*operations.values(), return_exceptions=True)

    results: Dict[str, Result] = {}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            results[name] = Result.err(outcome)
        else:
            results[name] = Result.ok(outcome)
    return results


def collect_errors(results: Dict[str, Result]) -> Dict[str, str]:
    """Map failed branch names to their error messages."""
    return {name: result.error_message for name, result in results.items() if not result.is_ok}


__all__ = [
    "Result",
    "decode_success_envelope",
    "decode_status_envelope",
    "decode_vietcap_envelope",
    "decode_sheet_values",
    "gather_settled",
    "collect_errors",
]
