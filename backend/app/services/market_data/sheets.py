"""
Screeners published as Google Sheets: industry trend (BoLocXHT),
valuation (BoLocDGHD) and market behaviour (HanhVi).

The Sheets API key is server configuration and never leaves this module.
"""
from __future__ import annotations

import random
from dataclasses import asdict, fields
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, TypeVar

import pandas as pd

from app.core.circuit_breaker import CircuitOpenError
from app.core.config import settings
from app.utils.formatters import parse_leading_float

from .core import BaseApiService, logger
from .envelopes import decode_sheet_values
from .errors import ApiServiceError, SheetsDataError
from .models import IndustryTrendRow, MarketBehaviorPoint, ValuationRow

R = TypeVar("R")

BEHAVIOR_CATEGORIES = {
    "STRONG_SELL": "Bán Mạnh",
    "SELL": "Bán",
    "BUY": "Mua",
    "STRONG_BUY": "Mua Mạnh",
}
BEHAVIOR_COLORS = {
    "STRONG_SELL": "#dc2626",
    "SELL": "#fb923c",
    "BUY": "#86efac",
    "STRONG_BUY": "#22c55e",
    "VNINDEX": "#8b5cf6",
}
BEHAVIOR_HISTORY_DAYS = 30

INDUSTRY_TREND_COLUMNS = [f.name for f in fields(IndustryTrendRow)]
VALUATION_COLUMNS = [f.name for f in fields(ValuationRow) if f.name not in (
    "pe_vs_sector", "pb_vs_sector", "is_undervalued_pe", "is_undervalued_pb",
)]
INDUSTRY_TREND_TEXT_COLUMNS = {"symbol", "exchange", "sector_level_2", "rrg_phase", "sector_stage"}
VALUATION_TEXT_COLUMNS = {"symbol", "exchange", "sector_level_2"}


def parse_sheet_number(value: Any) -> float:
    """Leading number of a sheet cell, which may use ``,`` as decimal separator; blanks and junk become 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    number = parse_leading_float(str(value).replace(",", ".", 1))
    return 0.0 if number is None else number


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else ""


def parse_rows(values: List[List[Any]], columns: List[str], text_columns: set, row_type: type) -> list:
    """Map sheet rows (header skipped) onto ``row_type``; rows without a symbol are dropped."""
    rows = []
    for raw in values[1:]:
        record = {}
        for index, column in enumerate(columns):
            cell = _cell(raw, index)
            record[column] = (cell or "") if column in text_columns else parse_sheet_number(cell)
        if record["symbol"]:
            rows.append(row_type(**record))
    return rows


def sort_rows(rows: List[R], field: str, direction: str = "asc") -> List[R]:
    """Stable sort on one attribute; missing values always go last."""
    present = [r for r in rows if getattr(r, field, None) is not None]
    missing = [r for r in rows if getattr(r, field, None) is None]

    def key(row):
        value = getattr(row, field)
        return value.casefold() if isinstance(value, str) else value

    return sorted(present, key=key, reverse=(direction == "desc")) + missing


def _matches_text(row: Any, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.lower()
    return needle in row.symbol.lower() or needle in row.sector_level_2.lower()


class GoogleSheetsService(BaseApiService):
    """Reads one range of the screener spreadsheet."""

    provider = "google_sheets"
    error_cls = SheetsDataError
    sheet_range: str = ""

    async def fetch_values(self, revalidate: int = 300) -> List[List[Any]]:
        if not settings.google_sheets_api_key:
            raise SheetsDataError("Google Sheets API key is not configured")
        response = await self.fetch_server_side(
            f"{settings.google_sheets_base_url}/{settings.google_sheet_id}/values/{self.sheet_range}",
            params={"key": settings.google_sheets_api_key},
            revalidate=revalidate,
        )
        return decode_sheet_values(response, SheetsDataError)


class IndustryTrendService(GoogleSheetsService):
    """Sector rotation screener (RRG phase, sector stage, returns, betas)."""

    @property
    def sheet_range(self) -> str:
        return settings.industry_trend_range

    async def fetch_industry_trend_data(self) -> Dict[str, Any]:
        values = await self.fetch_values()
        items = parse_rows(values, INDUSTRY_TREND_COLUMNS, INDUSTRY_TREND_TEXT_COLUMNS, IndustryTrendRow)
        return {"items": items, "last_updated": datetime.now().isoformat(), "total_count": len(items)}

    async def fetch_with_retry(self) -> Dict[str, Any]:
        return await self.with_retry(self.fetch_industry_trend_data)

    @staticmethod
    def filter_data(
        data: List[IndustryTrendRow],
        search: Optional[str] = None,
        exchange: Optional[str] = None,
        sector: Optional[str] = None,
        rrg_phase: Optional[str] = None,
        sector_stage: Optional[str] = None,
        min_volume: Optional[float] = None,
        max_volume: Optional[float] = None,
    ) -> List[IndustryTrendRow]:
        result = [row for row in data if _matches_text(row, search)]
        if exchange:
            result = [row for row in result if row.exchange == exchange]
        if sector:
            result = [row for row in result if sector.lower() in row.sector_level_2.lower()]
        if rrg_phase:
            result = [row for row in result if row.rrg_phase == rrg_phase]
        if sector_stage:
            result = [row for row in result if row.sector_stage == sector_stage]
        if min_volume is not None:
            result = [row for row in result if row.volume >= min_volume]
        if max_volume is not None:
            result = [row for row in result if row.volume <= max_volume]
        return result

    @staticmethod
    def sort_data(data: List[IndustryTrendRow], field: str, direction: str = "asc") -> List[IndustryTrendRow]:
        return sort_rows(data, field, direction)


class ValuationService(GoogleSheetsService):
    """P/E and P/B versus sector screener."""

    @property
    def sheet_range(self) -> str:
        return settings.valuation_range

    async def fetch_valuation_data(self) -> Dict[str, Any]:
        values = await self.fetch_values()
        items = [
            self.calculate_valuation_comparison(row)
            for row in parse_rows(values, VALUATION_COLUMNS, VALUATION_TEXT_COLUMNS, ValuationRow)
        ]
        return {"items": items, "last_updated": datetime.now().isoformat(), "total_count": len(items)}

    async def fetch_with_retry(self) -> Dict[str, Any]:
        return await self.with_retry(self.fetch_valuation_data)

    @staticmethod
    def calculate_valuation_comparison(item: ValuationRow) -> ValuationRow:
        """Fill the sector comparison fields. Ratios are 0 when the sector value is not positive."""
        item.is_undervalued_pe = item.pe_ratio > 0 and item.sector_pe > 0 and item.pe_ratio < item.sector_pe
        item.is_undervalued_pb = item.pb_ratio > 0 and item.sector_pb > 0 and item.pb_ratio < item.sector_pb
        item.pe_vs_sector = item.pe_ratio / item.sector_pe if item.sector_pe > 0 else 0.0
        item.pb_vs_sector = item.pb_ratio / item.sector_pb if item.sector_pb > 0 else 0.0
        return item

    @classmethod
    def is_undervalued(cls, item: ValuationRow) -> bool:
        cls.calculate_valuation_comparison(item)
        return item.is_undervalued_pe and item.is_undervalued_pb

    @classmethod
    def filter_data(
        cls,
        data: List[ValuationRow],
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
    ) -> List[ValuationRow]:
        result = [row for row in data if _matches_text(row, search)]
        if exchange:
            result = [row for row in result if row.exchange == exchange]
        if sector:
            result = [row for row in result if sector.lower() in row.sector_level_2.lower()]

        bounds = (
            ("pe_ratio", min_pe, max_pe),
            ("pb_ratio", min_pb, max_pb),
            ("roa_pct", min_roa, max_roa),
        )
        for attr, low, high in bounds:
            if low is not None:
                result = [row for row in result if getattr(row, attr) >= low]
            if high is not None:
                result = [row for row in result if getattr(row, attr) <= high]

        if undervalued_only:
            result = [row for row in result if cls.is_undervalued(row)]
        return result

    @staticmethod
    def sort_data(data: List[ValuationRow], field: str, direction: str = "asc") -> List[ValuationRow]:
        return sort_rows(data, field, direction)

    @staticmethod
    def get_unique_sectors(data: List[ValuationRow]) -> List[str]:
        return sorted({row.sector_level_2 for row in data if row.sector_level_2})

    @classmethod
    def calculate_statistics(cls, data: List[ValuationRow]) -> Dict[str, Any]:
        """Average and median of the positive P/E, P/B and ROA values."""
        frame = pd.DataFrame([asdict(row) for row in data], columns=VALUATION_COLUMNS)

        def positive_stats(column: str):
            series = frame[column][frame[column] > 0]
            if series.empty:
                return 0.0, 0.0
            return float(series.mean()), float(series.median())

        avg_pe, median_pe = positive_stats("pe_ratio")
        avg_pb, median_pb = positive_stats("pb_ratio")
        avg_roa, median_roa = positive_stats("roa_pct")
        return {
            "avg_pe": avg_pe,
            "median_pe": median_pe,
            "avg_pb": avg_pb,
            "median_pb": median_pb,
            "avg_roa": avg_roa,
            "median_roa": median_roa,
            "total_stocks": len(data),
            "undervalued_count": sum(1 for row in data if cls.is_undervalued(row)),
        }


def parse_market_behavior(values: List[List[Any]]) -> List[MarketBehaviorPoint]:
    """Shares are stored as fractions and returned as percentages; the last 30 valid days are kept."""
    points = []
    for row in values[1:]:
        if len(row) < 6:
            continue
        point = MarketBehaviorPoint(
            date=row[0],
            strong_sell=parse_sheet_number(row[1]) * 100,
            sell=parse_sheet_number(row[2]) * 100,
            buy=parse_sheet_number(row[3]) * 100,
            strong_buy=parse_sheet_number(row[4]) * 100,
            vnindex=parse_sheet_number(row[5]),
        )
        if point.vnindex > 0:
            points.append(point)
    return points[-BEHAVIOR_HISTORY_DAYS:]


def generate_fallback_behavior(today: Optional[date] = None, rng: Optional[random.Random] = None) -> List[MarketBehaviorPoint]:
    """Thirty days of plausible placeholder data, dated ``DD/MM/YY``."""
    today = today or date.today()
    rng = rng or random.Random()
    points = []
    for offset in range(BEHAVIOR_HISTORY_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        strong_sell = round(rng.random() * 15 + 5, 1)
        sell = round(rng.random() * 30 + 20, 1)
        buy = round(rng.random() * 30 + 20, 1)
        points.append(MarketBehaviorPoint(
            date=day.strftime("%d/%m/%y"),
            strong_sell=strong_sell,
            sell=sell,
            buy=buy,
            strong_buy=max(0.0, round(100 - strong_sell - sell - buy, 1)),
            vnindex=1250 + rng.random() * 50 - 25 + offset * 0.5,
        ))
    return points


class MarketBehaviorService(GoogleSheetsService):
    """Daily distribution of buy/sell behaviour next to the VN-Index."""

    @property
    def sheet_range(self) -> str:
        return settings.market_behavior_range

    async def get_market_behavior_data(self) -> Dict[str, Any]:
        """
        Behaviour history. Never raises: when the sheet cannot be read the
        generated placeholder series is returned with ``is_fallback`` set.
        """
        try:
            points = parse_market_behavior(await self.fetch_values())
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"Market behaviour sheet unavailable, serving fallback data: {e}")
            return {"data": generate_fallback_behavior(), "is_fallback": True}
        return {"data": points, "is_fallback": False}


industry_trend_service = IndustryTrendService()
valuation_service = ValuationService()
market_behavior_service = MarketBehaviorService()

__all__ = [
    "IndustryTrendService",
    "ValuationService",
    "MarketBehaviorService",
    "industry_trend_service",
    "valuation_service",
    "market_behavior_service",
    "parse_sheet_number",
    "parse_rows",
    "parse_market_behavior",
    "generate_fallback_behavior",
    "sort_rows",
    "BEHAVIOR_CATEGORIES",
    "BEHAVIOR_COLORS",
]
