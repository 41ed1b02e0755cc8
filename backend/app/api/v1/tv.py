"""
TradingView UDF datafeed endpoints used by the charting library.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from app.core.circuit_breaker import CircuitOpenError
from app.core.logging_config import get_main_logger
from app.services.market_data import market_data_service, ApiServiceError

logger = get_main_logger()

router = APIRouter(prefix="/tv", tags=["tradingview"])


@router.get("/config")
async def get_config():
    return await market_data_service.tradingview.get_config()


@router.get("/symbols")
async def get_symbol(symbol: str = ""):
    return await market_data_service.tradingview.get_symbol(symbol)


@router.get("/history")
async def get_history(request: Request):
    """Bars for ``symbol``, ``resolution``, ``from`` and ``to``; ``{"s": "no_data"}`` when unavailable."""
    return await market_data_service.tradingview.get_history(dict(request.query_params))


@router.get("/search")
async def search(request: Request):
    try:
        return await market_data_service.tradingview.search(dict(request.query_params))
    except (ApiServiceError, CircuitOpenError) as e:
        logger.error(f"UDF search failed: {e}")
        return JSONResponse(status_code=500, content={"error": "Proxy error"})


@router.get("/time", response_class=PlainTextResponse)
async def get_time():
    """Server time in epoch seconds, as plain text."""
    return await market_data_service.tradingview.get_server_time()


@router.get("/timescale_marks")
async def get_timescale_marks(request: Request):
    return await market_data_service.tradingview.get_timescale_marks(dict(request.query_params))
