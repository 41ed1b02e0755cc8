"""
TradingView UDF datafeed proxy.

Requests are forwarded to the charting backend. Every endpoint except search
degrades to a minimal valid UDF answer so the chart widget keeps working
while the backend is down.
"""
from __future__ import annotations

import re
import time
from typing import Any, Dict, Mapping, Optional

from app.core.circuit_breaker import CircuitOpenError
from app.core.config import settings

from .core import BaseApiService, logger
from .errors import ApiServiceError, MarketDataError

SUPPORTED_RESOLUTIONS = ["D", "W", "M"]
DEFAULT_SYMBOL = "VNINDEX"
NO_DATA = {"s": "no_data"}

FALLBACK_CONFIG = {
    "supports_search": True,
    "supports_group_request": False,
    "supports_marks": False,
    "supports_timescale_marks": False,
    "supports_time": True,
    "exchanges": [{"value": "", "name": "All", "desc": ""}],
    "symbols_types": [{"name": "All", "value": ""}],
    "supported_resolutions": SUPPORTED_RESOLUTIONS,
}

_ONE_UNIT_RESOLUTION = re.compile(r"^1([DWM])$")


def fallback_symbol_info(symbol: str) -> Dict[str, Any]:
    return {
        "name": symbol,
        "ticker": symbol,
        "description": symbol,
        "type": "index",
        "session": "0900-1130,1300-1500",
        "timezone": "Asia/Ho_Chi_Minh",
        "exchange": "VN",
        "minmov": 1,
        "pricescale": 100,
        "has_intraday": False,
        "supported_resolutions": list(SUPPORTED_RESOLUTIONS),
        "has_no_volume": False,
    }


def normalize_resolution(resolution: Optional[str]) -> str:
    """``1D``/``1W``/``1M`` become ``D``/``W``/``M``; anything else is left alone."""
    raw = (resolution or "").strip().upper()
    match = _ONE_UNIT_RESOLUTION.match(raw)
    return match.group(1) if match else raw


class TradingViewService(BaseApiService):
    provider = "tradingview"
    error_cls = MarketDataError

    @property
    def base_url(self) -> str:
        return settings.tradingview_udf_url or f"{settings.api_base_url.rstrip('/')}/api/tv"

    async def _get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.fetch_with_error_handling(f"{self.base_url}/{endpoint}", params=params)

    async def get_config(self) -> Dict[str, Any]:
        try:
            return await self._get("config")
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"UDF config unavailable, using fallback config: {e}")
            return dict(FALLBACK_CONFIG)

    async def get_symbol(self, symbol: Optional[str] = None) -> Dict[str, Any]:
        symbol = (symbol or "").upper() or DEFAULT_SYMBOL
        try:
            return await self._get("symbols", {"symbol": symbol})
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"UDF symbol info unavailable for {symbol}, using fallback: {e}")
            return fallback_symbol_info(symbol)

    async def get_history(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        query = dict(params)
        resolution = normalize_resolution(query.get("resolution"))
        if resolution in SUPPORTED_RESOLUTIONS:
            query["resolution"] = resolution
        try:
            return await self._get("history", query)
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"UDF history unavailable, returning no_data: {e}")
            return dict(NO_DATA)

    async def search(self, params: Mapping[str, Any]) -> Any:
        """Symbol search; failures propagate to the caller."""
        return await self._get("search", params)

    async def get_timescale_marks(self, params: Mapping[str, Any]) -> Any:
        try:
            return await self._get("timescale_marks", params)
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"UDF timescale marks unavailable: {e}")
            return []

    async def get_server_time(self) -> str:
        try:
            return (await self.fetch_text(f"{self.base_url}/time")).strip()
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"UDF time unavailable, using local clock: {e}")
            return str(int(time.time()))


tradingview_service = TradingViewService()

__all__ = [
    "TradingViewService",
    "tradingview_service",
    "normalize_resolution",
    "fallback_symbol_info",
    "FALLBACK_CONFIG",
    "NO_DATA",
]
