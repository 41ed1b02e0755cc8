"""
Piotroski F-Score and Altman Z-Score from the score backend.
"""
from __future__ import annotations

from typing import Any, Dict

from app.core.config import settings

from .core import BaseApiService, logger
from .errors import ApiServiceError, MarketDataError

SCORE_LABELS = {"f": "F-Score", "z": "Z-Score"}


class ScoreService(BaseApiService):
    provider = "score_api"
    error_cls = MarketDataError

    async def _get_score(self, kind: str, ticker: str) -> Dict[str, Any]:
        label = SCORE_LABELS[kind]
        try:
            return await self.fetch_server_side(
                f"{settings.api_score_url.rstrip('/')}/admin/sheet/{kind}-score/{ticker.upper()}",
                revalidate=60,
            )
        except ApiServiceError as e:
            if e.is_not_found():
                raise MarketDataError(f"{label} data not found for this ticker", 404, e) from e
            logger.error(f"Error fetching {label} data for {ticker}: {e}")
            raise MarketDataError(f"Failed to fetch {label} data", 500, e) from e

    async def get_f_score(self, ticker: str) -> Dict[str, Any]:
        return await self._get_score("f", ticker)

    async def get_z_score(self, ticker: str) -> Dict[str, Any]:
        return await self._get_score("z", ticker)


score_service = ScoreService()

__all__ = ["ScoreService", "score_service"]
