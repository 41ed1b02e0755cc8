"""
Company-related API endpoints.
"""
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.services.market_data import market_data_service, MarketDataError, StockServiceError
from app.services.market_data.financial import validate_ticker
from app.services.market_data.profile import PRICE_PERIODS
from app.services.market_data.shareholders import (
    calculate_ownership_stats,
    get_top_shareholders,
    group_shareholders_by_country,
    transform_to_pie_chart_data,
)

router = APIRouter(prefix="/companies", tags=["companies"])


class CompanyListResponse(BaseModel):
    """Response model for a filtered, paginated company list."""
    companies: List[dict]
    total: int
    page: int
    total_pages: int


class CompanySearchResponse(BaseModel):
    results: List[dict]
    count: int
    query: str


class TopListsResponse(BaseModel):
    """Top movers; each list is empty when its upstream call failed."""
    gainers: List[dict]
    losers: List[dict]
    volume: List[dict]
    marketCap: List[dict]


class OverviewResponse(BaseModel):
    companies: List[dict]
    marketStats: Optional[dict] = None
    topLists: TopListsResponse
    errors: Dict[str, str]


class PricePoint(BaseModel):
    date: str
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


class PriceHistoryResponse(BaseModel):
    ticker: str
    period: str
    prices: List[PricePoint]
    count: int


def _require_ticker(ticker: str) -> str:
    symbol = ticker.strip().upper()
    if not validate_ticker(symbol):
        raise HTTPException(status_code=400, detail="Ticker không hợp lệ")
    return symbol


@router.get("", response_model=CompanyListResponse)
async def list_companies(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    search: Optional[str] = None,
    industry: Optional[str] = None,
    sector: Optional[str] = None,
    exchange: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = Query(None, pattern="^(asc|desc)$"),
):
    """
    Get companies from the companies backend with filters and pagination.

    Args:
        page: 1-based page number
        limit: Page size
        search: Free text over ticker and company names
        industry / sector / exchange: Slug filters
        sort_by / sort_order: Sort column and direction (asc, desc)
    """
    result = await market_data_service.stocks.fetch_companies_with_filters(
        page=page,
        limit=limit,
        search=search,
        industry=industry,
        sector=sector,
        exchange=exchange,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return CompanyListResponse(**result)


@router.get("/search", response_model=CompanySearchResponse)
async def search_companies(q: str = "", limit: int = Query(10, ge=1, le=50)):
    """Search companies by ticker or name. An empty query returns no results."""
    query = q.strip()
    results = await market_data_service.stocks.search_companies(query, limit) if query else []
    return CompanySearchResponse(results=results, count=len(results), query=query)


@router.get("/stats")
async def get_market_stats():
    """Market-wide statistics (advancers, decliners, totals)."""
    stats = await market_data_service.stocks.fetch_market_stats()
    if stats is None:
        raise StockServiceError("Không thể tải thống kê thị trường")
    return {"success": True, "data": stats}


@router.get("/top-lists", response_model=TopListsResponse)
async def get_top_lists(limit: int = Query(10, ge=1, le=50)):
    return await market_data_service.stocks.fetch_top_lists(limit)


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    companies_limit: int = Query(100, ge=1, le=1000),
    top_lists_limit: int = Query(10, ge=1, le=50),
):
    """
    Companies, market stats and top lists in one call.

    Parts that fail upstream come back empty and are listed in ``errors``.
    """
    return await market_data_service.get_overview(companies_limit, top_lists_limit)


@router.get("/{ticker}")
async def get_company(ticker: str):
    data = await market_data_service.profile.get_company_data(_require_ticker(ticker))
    return {"success": True, "data": data}


@router.get("/{ticker}/summary")
async def get_company_summary(ticker: str):
    """Company profile merged with default valuation fields for the stock page."""
    return await market_data_service.get_stock_summary(_require_ticker(ticker))


async def _score_response(kind: str, ticker: str):
    scores = market_data_service.scores
    getter = scores.get_f_score if kind == "f" else scores.get_z_score
    try:
        return await getter(ticker)
    except MarketDataError as e:
        return JSONResponse(status_code=e.status_code or 500, content={"error": e.message})


@router.get("/{ticker}/f-score")
async def get_f_score(ticker: str):
    """Piotroski F-Score breakdown from the score backend."""
    return await _score_response("f", _require_ticker(ticker))


@router.get("/{ticker}/z-score")
async def get_z_score(ticker: str):
    """Altman Z-Score history from the score backend."""
    return await _score_response("z", _require_ticker(ticker))


@router.get("/{ticker}/prices", response_model=PriceHistoryResponse)
async def get_price_history(ticker: str, period: str = "1d"):
    """
    Get OHLCV price history.

    Args:
        ticker: Stock ticker
        period: One of 1m, 1d, 3m, 1y, 5y, all
    """
    symbol = _require_ticker(ticker)
    if period not in PRICE_PERIODS:
        raise HTTPException(status_code=400, detail=f"Invalid period. Must be one of: {', '.join(PRICE_PERIODS)}")
    prices = await market_data_service.profile.get_historical_prices(symbol, period)
    return PriceHistoryResponse(
        ticker=symbol,
        period=period,
        prices=[PricePoint(**asdict(p)) for p in prices],
        count=len(prices),
    )


@router.get("/{ticker}/shareholders")
async def get_shareholders(ticker: str, top: int = Query(10, ge=1, le=100)):
    """Ownership breakdown and shareholder lists with the derived chart and summary data."""
    data: Dict[str, Any] = await market_data_service.get_shareholders(_require_ticker(ticker))
    details = data["shareholderDetails"]
    return {
        **data,
        "pieChart": [asdict(item) for item in transform_to_pie_chart_data(data["ownershipBreakdown"])],
        "topShareholders": get_top_shareholders(details, top),
        "byCountry": [asdict(group) for group in group_shareholders_by_country(details)],
        "stats": asdict(calculate_ownership_stats(details)),
    }


@router.get("/{ticker}/financial-report")
async def get_financial_report(ticker: str, period_type: str = Query("annual", pattern="^(annual|quarterly)$")):
    """Processed income statement, balance sheet, cash flow and notes."""
    return await market_data_service.get_financial_report(_require_ticker(ticker), period_type)
