"""
Financial statements from VietCap IQ, flattened into period tables.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from app.core.config import settings
from app.utils.formatters import is_valid_number, parse_datetime

from .core import BaseApiService, logger
from .envelopes import collect_errors, decode_vietcap_envelope, gather_settled
from .errors import ApiServiceError, FinancialDataError
from .models import FinancialItem, ProcessedFinancialSection

SECTION_TITLES = {
    "INCOME_STATEMENT": "Báo cáo kết quả kinh doanh",
    "BALANCE_SHEET": "Bảng cân đối kế toán",
    "CASH_FLOW": "Báo cáo lưu chuyển tiền tệ",
    "NOTE": "Thuyết minh báo cáo tài chính",
}
VALID_SECTIONS = tuple(SECTION_TITLES)

# Result keys used by get_all_financial_data
SECTION_KEYS = {
    "INCOME_STATEMENT": "incomeStatement",
    "BALANCE_SHEET": "balanceSheet",
    "CASH_FLOW": "cashFlow",
    "NOTE": "notes",
}

ANNUAL_REPORT_LENGTH = 5
ANNUAL_PERIODS = 5
QUARTERLY_PERIODS = 8

TICKER_PATTERN = re.compile(r"^[A-Z]{3,4}$")


def _records_frame(records: Optional[List[Dict[str, Any]]]) -> pd.DataFrame:
    frame = pd.DataFrame(records or [])
    for column in ("yearReport", "lengthReport"):
        if column not in frame.columns:
            frame[column] = pd.Series(dtype="float64")
        frame[column] = pd.to_numeric(frame[column], errors="coerce")
    # periods without a report year cannot be placed
    return frame[frame["yearReport"].notna()]


def _frame_to_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    records = frame.to_dict("records")
    for record in records:
        for key, value in record.items():
            if not isinstance(value, (list, dict)) and pd.isna(value):
                record[key] = None
    return records


def _select_annual(statement: Dict[str, Any]):
    frame = _records_frame(statement.get("years"))
    annual = frame[frame["lengthReport"] == ANNUAL_REPORT_LENGTH]
    selected = annual.sort_values("yearReport", ascending=False, kind="stable").head(ANNUAL_PERIODS).iloc[::-1]
    records = _frame_to_records(selected)
    periods = [str(int(record["yearReport"])) for record in records]
    available_years = sorted({int(year) for year in annual["yearReport"].dropna()}, reverse=True)
    return records, periods, available_years, []


def _select_quarterly(statement: Dict[str, Any]):
    frame = _records_frame(statement.get("quarters"))
    quarterly = frame[frame["lengthReport"].between(1, 4)]
    ordered = quarterly.sort_values(["yearReport", "lengthReport"], ascending=False, kind="stable")
    selected = ordered.head(QUARTERLY_PERIODS).iloc[::-1]
    records = _frame_to_records(selected)
    periods = [f"Q{int(r['lengthReport'])}/{int(r['yearReport'])}" for r in records]
    available_years = sorted({int(year) for year in quarterly["yearReport"].dropna()}, reverse=True)
    available_quarters = [
        f"Q{int(quarter)}/{int(year)}"
        for year, quarter in zip(ordered["yearReport"], ordered["lengthReport"])
    ]
    return records, periods, available_years, available_quarters


def process_financial_section(
    section_name: str,
    section_title: str,
    metric_items: Optional[List[Dict[str, Any]]],
    statement: Dict[str, Any],
    period_type: str = "annual",
) -> ProcessedFinancialSection:
    """
    Lay out one statement section by period.

    Annual view keeps the newest five yearly reports, quarterly view the newest
    eight quarters; both are returned oldest first. Metrics without a field
    code and rows that are empty or all zero are dropped.
    """
    if period_type == "quarterly":
        records, periods, available_years, available_quarters = _select_quarterly(statement or {})
    else:
        records, periods, available_years, available_quarters = _select_annual(statement or {})

    metric_items = metric_items or []
    parents = {item.get("parent") for item in metric_items if item.get("parent")}

    items: List[FinancialItem] = []
    for metric in metric_items:
        field = metric.get("field")
        if not field:
            continue

        values: Dict[str, Optional[float]] = {}
        for period, record in zip(periods, records):
            value = record.get(field)
            values[period] = value if is_valid_number(value) else None

        if not any(value not in (None, 0) for value in values.values()):
            continue

        # Zero is treated as "no data" for the latest/previous comparison
        latest = (values[periods[-1]] or None) if periods else None
        previous = (values[periods[-2]] or None) if len(periods) > 1 else None
        change = change_percent = None
        if latest is not None and previous is not None:
            change = latest - previous
            change_percent = (change / abs(previous)) * 100

        items.append(FinancialItem(
            name=metric.get("name", ""),
            field=field,
            level=metric.get("level", 0),
            parent=metric.get("parent"),
            values=values,
            title_vi=metric.get("titleVi", ""),
            title_en=metric.get("titleEn", ""),
            latest_value=latest,
            previous_value=previous,
            change=change,
            change_percent=change_percent,
            has_children=metric.get("name") in parents,
        ))

    return ProcessedFinancialSection(
        section_name=section_name,
        title=section_title,
        items=items,
        periods=periods,
        period_type=period_type,
        available_years=available_years,
        available_quarters=available_quarters,
    )


def validate_ticker(ticker: Any) -> bool:
    if not ticker or not isinstance(ticker, str):
        return False
    return bool(TICKER_PATTERN.match(ticker.strip()))


class FinancialService(BaseApiService):
    """Financial metrics and statements from VietCap IQ."""

    provider = "vietcap_iq"
    error_cls = FinancialDataError

    @property
    def default_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Referer": settings.vietcap_referer,
            "User-Agent": settings.user_agent,
        }

    def _company_url(self, ticker: str, path: str) -> str:
        return f"{settings.vietcap_iq_base_url}/company/{ticker.upper()}/{path}"

    async def get_financial_metrics_raw(self, ticker: str) -> Any:
        """Unmodified VietCap envelope for the metric catalogue (used by the proxy route)."""
        return await self.fetch_server_side(self._company_url(ticker, "financial-statement/metrics"), revalidate=600)

    async def get_financial_statement_raw(self, ticker: str, section: str) -> Any:
        return await self.fetch_server_side(
            self._company_url(ticker, "financial-statement"), params={"section": section}, revalidate=600
        )

    async def get_financial_metrics(self, ticker: str) -> Dict[str, List[Dict[str, Any]]]:
        response = await self.with_retry(lambda: self.get_financial_metrics_raw(ticker))
        return decode_vietcap_envelope(response, FinancialDataError) or {}

    async def get_financial_statement(self, ticker: str, section: str) -> Dict[str, Any]:
        if section not in SECTION_TITLES:
            raise FinancialDataError(f"Invalid section. Must be one of: {', '.join(VALID_SECTIONS)}", 400)
        response = await self.with_retry(lambda: self.get_financial_statement_raw(ticker, section))
        return decode_vietcap_envelope(response, FinancialDataError) or {}

    async def get_all_financial_data(self, ticker: str, period_type: str = "annual") -> Dict[str, Any]:
        """
        Metrics plus every statement section.

        The metric catalogue is required; a failed statement section is
        reported in ``errors`` and left out of ``sections``.
        """
        results = await gather_settled(
            metrics=self.get_financial_metrics(ticker),
            **{section: self.get_financial_statement(ticker, section) for section in VALID_SECTIONS},
        )
        metrics = results["metrics"].unwrap()

        sections = {}
        for section in VALID_SECTIONS:
            result = results[section]
            if not result.is_ok:
                logger.warning(f"Financial section {section} unavailable for {ticker}: {result.error_message}")
                continue
            sections[SECTION_KEYS[section]] = process_financial_section(
                section, SECTION_TITLES[section], metrics.get(section), result.value, period_type
            )

        return {
            "ticker": ticker.upper(),
            "last_updated": datetime.now().isoformat(),
            "sections": sections,
            "metrics": metrics,
            "errors": collect_errors(results),
        }

    async def get_financial_section_data(
        self,
        ticker: str,
        section: str,
        period_type: str = "annual",
    ) -> ProcessedFinancialSection:
        results = await gather_settled(
            metrics=self.get_financial_metrics(ticker),
            statement=self.get_financial_statement(ticker, section),
        )
        metrics = results["metrics"].unwrap()
        statement = results["statement"].unwrap()
        return process_financial_section(section, SECTION_TITLES[section], metrics.get(section), statement, period_type)

    async def get_available_years(self, ticker: str) -> List[int]:
        try:
            statement = await self.get_financial_statement(ticker, "INCOME_STATEMENT")
        except ApiServiceError as e:
            logger.warning(f"Error getting available years for {ticker}: {e}")
            return []
        years = {
            int(record["yearReport"])
            for record in statement.get("years") or []
            if record.get("lengthReport") == ANNUAL_REPORT_LENGTH and record.get("yearReport") is not None
        }
        return sorted(years, reverse=True)

    async def get_last_update_date(self, ticker: str) -> Optional[datetime]:
        try:
            statement = await self.get_financial_statement(ticker, "INCOME_STATEMENT")
        except ApiServiceError as e:
            logger.warning(f"Error getting last update date for {ticker}: {e}")
            return None
        dates = [parse_datetime(record.get("updateDate")) for record in statement.get("years") or []]
        dates = [d for d in dates if d is not None]
        if not dates:
            return None
        return max(dates, key=lambda d: d.timestamp())


financial_service = FinancialService()

__all__ = [
    "FinancialService",
    "financial_service",
    "process_financial_section",
    "validate_ticker",
    "SECTION_TITLES",
    "VALID_SECTIONS",
]
