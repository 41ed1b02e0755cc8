"""
VietCap pass-through endpoints.

Bodies are returned exactly as VietCap sends them. Errors use the same
envelope as the upstream API so clients parse both the same way.
"""
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.logging_config import get_main_logger
from app.services.market_data import market_data_service, ApiServiceError
from app.services.market_data.financial import VALID_SECTIONS
from app.services.market_data.profile import TECHNICAL_TIME_FRAMES

logger = get_main_logger()

router = APIRouter(prefix="/vietcap", tags=["vietcap"])


def _status(error: ApiServiceError) -> int:
    return error.status_code or 500


def _vietcap_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"successful": False, "msg": message, "status": status_code})


def _news_error(message: str, status_code: int, listing: bool = True) -> JSONResponse:
    content = {"success": False, "message": message}
    if listing:
        content.update(news_info=[], total_records=0)
    return JSONResponse(status_code=status_code, content=content)


@router.get("/financial/{ticker}/metrics")
async def get_financial_metrics(ticker: str):
    """Metric catalogue (line item names and hierarchy) per statement section."""
    try:
        return await market_data_service.financial.get_financial_metrics_raw(ticker)
    except ApiServiceError as e:
        logger.error(f"Error proxying financial metrics for {ticker}: {e}")
        return _vietcap_error(e.message, _status(e))


@router.get("/financial/{ticker}/statement")
async def get_financial_statement(ticker: str, section: Optional[str] = None):
    """
    Raw statement values for one section.

    Args:
        section: INCOME_STATEMENT, BALANCE_SHEET, CASH_FLOW or NOTE
    """
    if not section:
        return JSONResponse(status_code=400, content={"successful": False, "msg": "Section parameter is required"})
    if section not in VALID_SECTIONS:
        return JSONResponse(
            status_code=400,
            content={"successful": False, "msg": f"Invalid section. Must be one of: {', '.join(VALID_SECTIONS)}"},
        )
    try:
        return await market_data_service.financial.get_financial_statement_raw(ticker, section)
    except ApiServiceError as e:
        logger.error(f"Error proxying {section} for {ticker}: {e}")
        return _vietcap_error(e.message, _status(e))


@router.get("/technical/{ticker}/{timeframe}")
async def get_technical_analysis(ticker: str, timeframe: str):
    if timeframe not in TECHNICAL_TIME_FRAMES:
        return JSONResponse(
            status_code=400,
            content={"successful": False, "msg": f"Invalid timeframe. Must be one of: {', '.join(TECHNICAL_TIME_FRAMES)}"},
        )
    try:
        return await market_data_service.profile.get_technical_analysis_raw(ticker, timeframe)
    except ApiServiceError as e:
        logger.error(f"Error proxying technical analysis for {ticker}/{timeframe}: {e}")
        return _vietcap_error(e.message, _status(e))


@router.get("/news")
async def get_news(
    page: Optional[int] = None,
    ticker: Optional[str] = None,
    page_size: Optional[int] = None,
    industry: Optional[str] = None,
    update_from: Optional[str] = None,
    update_to: Optional[str] = None,
    sentiment: Optional[str] = None,
    newsfrom: Optional[str] = None,
    language: Optional[str] = None,
):
    """AI-tagged news list. Every filter is optional."""
    try:
        return await market_data_service.news.get_news_info(
            ticker=ticker,
            page=page,
            page_size=page_size,
            industry=industry,
            update_from=update_from,
            update_to=update_to,
            sentiment=sentiment,
            newsfrom=newsfrom,
            language=language,
        )
    except ApiServiceError as e:
        logger.error(f"Error proxying news info: {e}")
        return _news_error(e.message, _status(e))


@router.get("/news/detail")
async def get_news_detail(slug: Optional[str] = None, language: str = "vi"):
    if not slug:
        return _news_error("Slug parameter is required", 400, listing=False)
    try:
        return await market_data_service.news.get_news_detail(slug, language)
    except ApiServiceError as e:
        logger.error(f"Error proxying news detail {slug}: {e}")
        return _news_error(e.message, _status(e), listing=False)
