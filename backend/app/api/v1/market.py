"""
Market-wide API endpoints: index leaders, foreign trading, investor behaviour,
sentiment and the weekly forecast.
"""
from dataclasses import asdict
from datetime import datetime
from typing import List

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.core.circuit_breaker import CircuitOpenError
from app.core.logging_config import get_main_logger
from app.services.market_data import market_data_service, ApiServiceError
from app.services.market_data.market_leaders import CENTER_EXCHANGE_MAP
from app.services.market_data.profile import FOREIGN_TRADING_PERIODS
from app.services.market_data.sheets import BEHAVIOR_CATEGORIES, BEHAVIOR_COLORS

logger = get_main_logger()

router = APIRouter(tags=["market"])


class MarketLeaderItem(BaseModel):
    symbol: str
    score: float
    score_percent: float
    company_name: str = ""


class MarketLeadersResponse(BaseModel):
    success: bool
    data: List[MarketLeaderItem]
    exchange: str
    timestamp: str


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@router.get("/market-leaders", response_model=MarketLeadersResponse)
async def get_market_leaders(
    center_id: str = Query("1", alias="centerId"),
    take: str = "10",
):
    """
    Stocks with the largest impact on an exchange index.

    Args:
        centerId: 1 (VNINDEX), 2 (HNX) or 9 (UPCOM)
        take: Number of stocks, 1 to 50
    """
    try:
        center = int(center_id)
        if center not in CENTER_EXCHANGE_MAP:
            raise ValueError
    except ValueError:
        return _bad_request("Invalid centerId. Must be 1 (VNINDEX), 2 (HNX), or 9 (UPCOM)")
    try:
        count = int(take)
    except ValueError:
        return _bad_request("Invalid take parameter. Must be a number between 1 and 50")

    try:
        leaders = await market_data_service.market_leaders.get_market_leaders_by_center(center, count)
    except ValueError as e:
        return _bad_request(str(e))
    except (ApiServiceError, CircuitOpenError) as e:
        logger.error(f"Market leaders unavailable for centerId={center}: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": getattr(e, "message", str(e)), "data": []},
        )

    return MarketLeadersResponse(
        success=True,
        data=[MarketLeaderItem(**asdict(leader)) for leader in leaders],
        exchange=CENTER_EXCHANGE_MAP[center],
        timestamp=datetime.now().isoformat(),
    )


@router.get("/market/foreign-trading")
async def get_foreign_trading(period: str = "today"):
    """Top stocks by foreign net buy/sell for today, this week or this month."""
    if period not in FOREIGN_TRADING_PERIODS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid period. Must be one of: {', '.join(FOREIGN_TRADING_PERIODS)}",
        )
    data = await market_data_service.profile.get_foreign_trading(period)
    return {"success": True, "period": period, "data": data}


@router.get("/market/behavior")
async def get_market_behavior():
    """
    Daily investor behaviour (strong sell / sell / buy / strong buy, in %)
    next to the VN-Index over the last 30 sessions.

    Falls back to generated data, flagged ``is_fallback``, when the sheet
    is unavailable.
    """
    result = await market_data_service.get_market_behavior()
    return {
        "success": True,
        **result,
        "categories": BEHAVIOR_CATEGORIES,
        "colors": BEHAVIOR_COLORS,
    }


@router.get("/market/sentiment")
async def get_market_sentiment():
    return {"success": True, "data": market_data_service.get_market_sentiment()}


@router.get("/market/forecast")
async def get_market_forecast():
    return {"success": True, "data": market_data_service.get_market_forecast()}
