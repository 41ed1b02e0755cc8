"""
Company profile, price history, technical analysis and foreign trading.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from app.core.config import settings
from app.utils.formatters import format_date_time, format_short_date, to_number

from .core import BaseApiService, logger
from .envelopes import decode_status_envelope, decode_vietcap_envelope, gather_settled
from .errors import ApiServiceError, MarketDataError, StockServiceError
from .models import PriceData

PRICE_PERIODS = ("1m", "1d", "3m", "1y", "5y", "all")
TECHNICAL_TIME_FRAMES = ("ONE_HOUR", "ONE_DAY", "ONE_WEEK")
FOREIGN_TRADING_PERIODS = ("today", "week", "month")

REQUIRED_COMPANY_FIELDS = ("id", "ticker", "nameVi", "priceClose")
DEFAULT_EV_EBITDA = 8.16

# Fields copied from CompanyData into StockSummary as-is
PASSTHROUGH_FIELDS = (
    "id", "ticker", "nameVi", "nameEn", "industryActivity",
    "bcIndustryGroupId", "bcIndustryGroupSlug", "bcIndustryGroupCode", "bcIndustryGroupType",
    "bcEconomicSectorId", "bcEconomicSectorSlug", "bcEconomicSectorName",
    "website", "mainService", "businessLine", "businessStrategy", "businessRisk",
    "businessOverall", "detailInfo", "stockExchange", "priceClose", "netChange", "pctChange",
    "priceOpen", "priceFloor", "priceLow", "priceHigh", "priceCeiling", "priceType",
    "peRatio", "pbRatio", "epsRatio", "bookValue", "freeFloatRate",
    "valuationPoint", "growthPoint", "passPerformancePoint", "financialHealthPoint", "dividendPoint",
    "imageUrl", "beta5y", "pricePctChg7d", "pricePctChg30d", "pricePctChgYtd",
    "pricePctChg1y", "pricePctChg3y", "pricePctChg5y", "companyQuality", "overallRiskLevel",
    "qualityValuation", "taSignal1d", "watchlistCount", "roe", "roa",
    "revenue5yGrowth", "netIncome5yGrowth", "revenueLtmGrowth", "netIncomeLtmGrowth",
    "revenueGrowthQoq", "netIncomeGrowthQoq", "type", "country",
)


def _parse_decimal_string(value: Any) -> float | None:
    """The companies API sends large numbers as strings; unparsable values become None."""
    number = to_number(value, fallback=None)
    return None if number is None else float(number)


def price_row_to_model(row: List[Any]) -> PriceData:
    """Convert a Simplize ``[ts, open, high, low, close, volume]`` row."""
    timestamp = int(row[0])
    return PriceData(
        timestamp=timestamp,
        open=row[1],
        high=row[2],
        low=row[3],
        close=row[4],
        volume=row[5],
        date=datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d"),
    )


def transform_company_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Company data plus parsed numeric companions of its string-typed fields."""
    return {
        **data,
        "marketCapValue": _parse_decimal_string(data.get("marketCap")),
        "outstandingSharesNumber": _parse_decimal_string(data.get("outstandingSharesValue")),
        "volumeNumber": _parse_decimal_string(data.get("volume")),
        "volume10dAvgNumber": _parse_decimal_string(data.get("volume10dAvg")),
        "analysisUpdatedFormatted": format_short_date(data.get("analysisUpdated")),
        "isInWatchlist": False,
    }


class TransformationService:
    """Maps raw CompanyData onto the StockSummary shape used by the stock page."""

    @staticmethod
    def transform_api_data_to_stock_summary(api_data: Dict[str, Any]) -> Dict[str, Any]:
        summary = {name: api_data.get(name) for name in PASSTHROUGH_FIELDS}
        summary.update(
            name=api_data.get("nameVi"),
            marketCap=_parse_decimal_string(api_data.get("marketCap")),
            outstandingSharesValue=_parse_decimal_string(api_data.get("outstandingSharesValue")),
            analysisUpdated=format_short_date(api_data.get("analysisUpdated")),
            noOfRecommendations=1,
            isInWatchlist=bool(api_data.get("isInWatchlist", False)),
            # Upstream spelling, consumers depend on it
            priceReferrance=api_data.get("priceReference"),
            priceTimeStamp=format_date_time(api_data.get("priceTimestamp")),
            volume10dAvg=_parse_decimal_string(api_data.get("volume10dAvg")),
            volume=_parse_decimal_string(api_data.get("volume")),
            evEbitdaRatio=DEFAULT_EV_EBITDA,
        )
        return summary

    @staticmethod
    def validate_company_data(api_data: Any) -> bool:
        if not isinstance(api_data, dict):
            return False
        return all(api_data.get(field) is not None for field in REQUIRED_COMPANY_FIELDS)

    @staticmethod
    def get_default_values() -> Dict[str, Any]:
        return {
            "evEbitdaRatio": DEFAULT_EV_EBITDA,
            "noOfRecommendations": 1,
            "isInWatchlist": False,
        }


class ApiService(BaseApiService):
    """Company profile from the internal backend plus market data from Simplize, VietCap and 24hmoney."""

    provider = "companies_api"
    error_cls = StockServiceError

    async def get_company_data(self, ticker: str) -> Dict[str, Any]:
        response = await self.fetch_with_error_handling(self.get_api_url(f"/api/companies/{ticker.lower()}"))
        data = self.process_response(response)
        if data is None:
            raise StockServiceError("Failed to fetch company data")
        return data

    async def get_company_list(self) -> List[Dict[str, Any]]:
        response = await self.fetch_with_error_handling(self.get_api_url("/api/companies"))
        return self.process_response(response) or []

    async def get_historical_prices(self, ticker: str, period: str = "1d") -> List[PriceData]:
        response = await self.fetch_with_error_handling(
            f"{settings.simplize_base_url}/historical/prices/chart",
            params={"ticker": ticker.upper(), "period": period},
            provider="simplize",
        )
        rows = decode_status_envelope(response, MarketDataError) or []
        return [price_row_to_model(row) for row in rows if isinstance(row, list) and len(row) >= 6]

    async def get_technical_analysis_raw(self, ticker: str, time_frame: str = "ONE_DAY") -> Any:
        if time_frame not in TECHNICAL_TIME_FRAMES:
            raise MarketDataError(f"Invalid timeframe. Must be one of: {', '.join(TECHNICAL_TIME_FRAMES)}", 400)
        return await self.fetch_server_side(
            f"{settings.vietcap_iq_base_url}/company/{ticker.upper()}/technical/{time_frame}",
            headers={"Referer": settings.vietcap_referer, "User-Agent": settings.user_agent},
            revalidate=300,
            provider="vietcap_iq",
        )

    async def get_technical_analysis(self, ticker: str, time_frame: str = "ONE_DAY") -> Any:
        response = await self.get_technical_analysis_raw(ticker, time_frame)
        return decode_vietcap_envelope(response, MarketDataError)

    async def get_foreign_trading(self, period: str = "today") -> Any:
        response = await self.fetch_with_error_handling(
            f"{settings.money24h_base_url}/indices/foreign-trading-top-stock-by-time",
            params={"code": 10, "type": period},
            provider="24hmoney",
        )
        return decode_status_envelope(response, MarketDataError)

    async def get_stock_summary(self, ticker: str) -> Dict[str, Any]:
        """Fetch (cached for five minutes), validate and transform one company."""
        response = await self.fetch_server_side(
            self.get_api_url(f"/api/companies/{ticker.lower()}"), revalidate=300
        )
        data = self.process_response(response)
        if not TransformationService.validate_company_data(data):
            raise StockServiceError("Dữ liệu từ API không hợp lệ")
        return TransformationService.transform_api_data_to_stock_summary(data)

    async def get_multiple_stock_summaries(self, tickers: List[str]) -> List[Dict[str, Any]]:
        """Summaries for every ticker that could be loaded; failures are logged and skipped."""
        results = await gather_settled(**{ticker: self.get_stock_summary(ticker) for ticker in dict.fromkeys(tickers)})
        summaries = []
        for ticker, result in results.items():
            if result.is_ok:
                summaries.append(result.value)
            else:
                logger.warning(f"Skipping {ticker}: {result.error_message}")
        return summaries

    async def ticker_exists(self, ticker: str) -> bool:
        try:
            await self.get_stock_summary(ticker)
            return True
        except ApiServiceError:
            return False


api_service = ApiService()
transformation_service = TransformationService()

__all__ = [
    "ApiService",
    "TransformationService",
    "api_service",
    "transformation_service",
    "transform_company_data",
    "price_row_to_model",
    "PRICE_PERIODS",
    "TECHNICAL_TIME_FRAMES",
    "FOREIGN_TRADING_PERIODS",
]
