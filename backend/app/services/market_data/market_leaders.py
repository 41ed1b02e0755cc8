"""
Stocks with the largest impact on each exchange index (CafeF MarketLeaderGroup).
"""
from __future__ import annotations

from typing import Any, Dict, List

from app.core.config import settings

from .core import BaseApiService, logger
from .envelopes import gather_settled
from .errors import MarketDataError
from .models import MarketLeader

EXCHANGE_CENTER_MAP = {
    "VNINDEX": 1,
    "HNX": 2,
    "UPCOM": 9,
}
CENTER_EXCHANGE_MAP = {center: exchange for exchange, center in EXCHANGE_CENTER_MAP.items()}

MIN_TAKE = 1
MAX_TAKE = 50


def _validate_take(take: Any) -> None:
    if isinstance(take, bool) or not isinstance(take, int) or not MIN_TAKE <= take <= MAX_TAKE:
        raise ValueError("Invalid take parameter. Must be a number between 1 and 50")


def _to_leader(item: Dict[str, Any]) -> MarketLeader:
    return MarketLeader(
        symbol=item.get("symbol", ""),
        score=item.get("score") or 0,
        score_percent=item.get("scorePercent") or 0,
        company_name=item.get("companyName") or "",
    )


class MarketLeaderService(BaseApiService):
    provider = "cafef"
    error_cls = MarketDataError
    default_headers = {"Accept": "application/json"}

    async def get_market_leaders_by_center(self, center_id: int, take: int = 10) -> List[MarketLeader]:
        if center_id not in CENTER_EXCHANGE_MAP:
            raise ValueError("Invalid centerId. Must be 1 (VNINDEX), 2 (HNX), or 9 (UPCOM)")
        _validate_take(take)

        async def operation():
            return await self.fetch_server_side(
                f"{settings.cafef_base_url}/MarketLeaderGroup",
                params={"centerId": center_id, "take": take},
                headers={"User-Agent": settings.user_agent},
                revalidate=60,
            )

        response = await self.with_retry(operation, base_delay=1.0)
        items = response.get("data") if isinstance(response, dict) else None
        return [_to_leader(item) for item in items or []]

    async def get_market_leaders(self, exchange: str = "VNINDEX", take: int = 10) -> List[MarketLeader]:
        center_id = EXCHANGE_CENTER_MAP.get(exchange.upper())
        if center_id is None:
            raise ValueError(f"Unknown exchange: {exchange}")
        return await self.get_market_leaders_by_center(center_id, take)

    async def get_all_market_leaders(self, take: int = 10) -> Dict[str, List[MarketLeader]]:
        """Leaders for every exchange; an exchange that fails yields an empty list."""
        _validate_take(take)
        results = await gather_settled(
            **{exchange: self.get_market_leaders(exchange, take) for exchange in EXCHANGE_CENTER_MAP}
        )
        leaders = {}
        for exchange, result in results.items():
            if not result.is_ok:
                logger.warning(f"Market leaders unavailable for {exchange}: {result.error_message}")
            leaders[exchange] = result.unwrap_or([])
        return leaders


market_leader_service = MarketLeaderService()

__all__ = [
    "MarketLeaderService",
    "market_leader_service",
    "EXCHANGE_CENTER_MAP",
    "CENTER_EXCHANGE_MAP",
]
