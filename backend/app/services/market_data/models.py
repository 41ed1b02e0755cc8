from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class PriceData:
    """One OHLCV candle from the Simplize chart endpoint."""
    timestamp: int  # Epoch seconds
    open: float
    high: float
    low: float
    close: float
    volume: float
    date: str  # YYYY-MM-DD (UTC)


@dataclass
class FinancialItem:
    """One line of a financial statement, flattened with its parent reference."""
    name: str
    field: str
    level: int
    parent: Optional[str]
    values: Dict[str, Optional[float]]
    title_vi: str = ""
    title_en: str = ""
    latest_value: Optional[float] = None
    previous_value: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    has_children: bool = False
    is_expanded: bool = False


@dataclass
class ProcessedFinancialSection:
    """A statement section laid out by period, oldest period first."""
    section_name: str
    title: str
    items: List[FinancialItem]
    periods: List[str]
    period_type: str  # 'annual' | 'quarterly'
    available_years: List[int] = field(default_factory=list)
    available_quarters: List[str] = field(default_factory=list)


@dataclass
class MarketLeader:
    symbol: str
    score: float
    score_percent: float
    company_name: str = ""


@dataclass
class IndustryTrendRow:
    """Row of the industry trend screener sheet."""
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


@dataclass
class ValuationRow:
    """Row of the valuation screener sheet."""
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
    # Derived by calculate_valuation_comparison
    pe_vs_sector: float = 0.0
    pb_vs_sector: float = 0.0
    is_undervalued_pe: bool = False
    is_undervalued_pb: bool = False


@dataclass
class MarketBehaviorPoint:
    """Daily share of each buy/sell behaviour class (percent) next to the VN-Index."""
    date: str
    strong_sell: float
    sell: float
    buy: float
    strong_buy: float
    vnindex: float


@dataclass
class PieChartItem:
    name: str
    value: float
    color: str


@dataclass
class CountryGroup:
    country: str
    shareholders: List[dict]
    total_percentage: float
    total_value: float


@dataclass
class OwnershipStats:
    total_shareholders: int
    total_percentage: float
    total_value: float
    total_shares: float
    positive_changes: int
    negative_changes: int
    no_changes: int
