"""
Stock screener endpoints backed by the Google Sheets screeners.
"""
from dataclasses import fields
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from app.services.market_data import market_data_service
from app.services.market_data.models import IndustryTrendRow, ValuationRow

router = APIRouter(prefix="/filters", tags=["filters"])

INDUSTRY_TREND_SORT_FIELDS = {f.name for f in fields(IndustryTrendRow)}
VALUATION_SORT_FIELDS = {f.name for f in fields(ValuationRow)}


class IndustryTrendItem(BaseModel):
    symbol: str
    exchange: str
    sector_level_2: str
    close_price: float
    return_1d_pct: float
    return_1w_pct: float
    return_1m_pct: float
    volume: float
    avg_volume_1w: float
    avg_volume_1m: float
    rrg_phase: str
    beta_90d: float
    beta_180d: float
    sector_stage: str


class IndustryTrendResponse(BaseModel):
    items: List[IndustryTrendItem]
    total_count: int
    filtered_count: int
    last_updated: str


class ValuationItem(BaseModel):
    symbol: str
    exchange: str
    sector_level_2: str
    close_price: float
    volume: float
    pe_ratio: float
    sector_pe: float
    pb_ratio: float
    sector_pb: float
    roa_pct: float
    cfo: float
    delta_roa_pct: float
    cfo_ln_profit: float
    gross_margin_pct: float
    asset_turnover_pct: float
    pe_vs_sector: float
    pb_vs_sector: float
    is_undervalued_pe: bool
    is_undervalued_pb: bool


class ValuationStatistics(BaseModel):
    avg_pe: float
    median_pe: float
    avg_pb: float
    median_pb: float
    avg_roa: float
    median_roa: float
    total_stocks: int
    undervalued_count: int


class ValuationResponse(BaseModel):
    items: List[ValuationItem]
    total_count: int
    filtered_count: int
    last_updated: str
    sectors: List[str]
    statistics: ValuationStatistics


def _check_sort_field(sort_by: Optional[str], allowed: set) -> None:
    if sort_by and sort_by not in allowed:
        raise HTTPException(status_code=400, detail=f"Invalid sort field: {sort_by}")


@router.get("/industry-trend", response_model=IndustryTrendResponse)
async def get_industry_trend(
    search: Optional[str] = None,
    exchange: Optional[str] = None,
    sector: Optional[str] = None,
    rrg_phase: Optional[str] = None,
    sector_stage: Optional[str] = None,
    min_volume: Optional[float] = None,
    max_volume: Optional[float] = None,
    sort_by: Optional[str] = None,
    sort_direction: str = Query("asc", pattern="^(asc|desc)$"),
):
    """
    Industry trend screener (RRG phase, sector stage, returns and betas).

    Args:
        search: Case-insensitive match on symbol or sector
        exchange / rrg_phase / sector_stage: Exact match
        sector: Case-insensitive substring of the sector name
        min_volume / max_volume: Volume bounds
        sort_by / sort_direction: Any row field; rows missing the value go last
    """
    _check_sort_field(sort_by, INDUSTRY_TREND_SORT_FIELDS)
    service = market_data_service.industry_trend
    data = await service.fetch_with_retry()

    items = service.filter_data(
        data["items"],
        search=search,
        exchange=exchange,
        sector=sector,
        rrg_phase=rrg_phase,
        sector_stage=sector_stage,
        min_volume=min_volume,
        max_volume=max_volume,
    )
    if sort_by:
        items = service.sort_data(items, sort_by, sort_direction)

    return IndustryTrendResponse(
        items=[IndustryTrendItem.model_validate(item, from_attributes=True) for item in items],
        total_count=data["total_count"],
        filtered_count=len(items),
        last_updated=data["last_updated"],
    )


@router.get("/valuation", response_model=ValuationResponse)
async def get_valuation(
    search: Optional[str] = None,
    exchange: Optional[str] = None,
    sector: Optional[str] = None,
    min_pe: Optional[float] = None,
    max_pe: Optional[float] = None,
    min_pb: Optional[float] = None,
    max_pb: Optional[float] = None,
    min_roa: Optional[float] = None,
    max_roa: Optional[float] = None,
    undervalued_only: bool = False,
    sort_by: Optional[str] = None,
    sort_direction: str = Query("asc", pattern="^(asc|desc)$"),
):
    """
    Valuation screener: P/E and P/B against the sector, with summary statistics
    computed over the filtered rows.
    """
    _check_sort_field(sort_by, VALUATION_SORT_FIELDS)
    service = market_data_service.valuation
    data = await service.fetch_with_retry()

    items = service.filter_data(
        data["items"],
        search=search,
        exchange=exchange,
        sector=sector,
        min_pe=min_pe,
        max_pe=max_pe,
        min_pb=min_pb,
        max_pb=max_pb,
        min_roa=min_roa,
        max_roa=max_roa,
        undervalued_only=undervalued_only,
    )
    if sort_by:
        items = service.sort_data(items, sort_by, sort_direction)

    return ValuationResponse(
        items=[ValuationItem.model_validate(item, from_attributes=True) for item in items],
        total_count=data["total_count"],
        filtered_count=len(items),
        last_updated=data["last_updated"],
        sectors=service.get_unique_sectors(data["items"]),
        statistics=ValuationStatistics(**service.calculate_statistics(items)),
    )
