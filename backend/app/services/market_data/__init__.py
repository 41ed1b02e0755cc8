"""Market data service package facade."""
from __future__ import annotations

from typing import Any, Dict

from .core import BaseApiService, close_http_client, get_http_client, logger, response_cache, set_http_client
from .envelopes import Result, collect_errors, gather_settled
from .errors import (
    ApiServiceError,
    FinancialDataError,
    MarketDataError,
    NewsServiceError,
    SheetsDataError,
    ShareholdersServiceError,
    StockServiceError,
    WordPressServiceError,
)
from .companies import StockService
from .profile import ApiService, TransformationService
from .financial import FinancialService
from .news import NewsService
from .shareholders import ShareholdersService
from .sheets import IndustryTrendService, MarketBehaviorService, ValuationService
from .market_leaders import MarketLeaderService
from .wordpress import WordPressService
from .scores import ScoreService
from .tradingview import TradingViewService
from .market_sentiment import generate_market_sentiment, get_market_forecast


class MarketDataService:
    """Facade that composes the per-provider services."""

    def __init__(self) -> None:
        self.stocks = StockService()
        self.profile = ApiService()
        self.transformation = TransformationService()
        self.financial = FinancialService()
        self.news = NewsService()
        self.shareholders = ShareholdersService()
        self.industry_trend = IndustryTrendService()
        self.valuation = ValuationService()
        self.market_behavior = MarketBehaviorService()
        self.market_leaders = MarketLeaderService()
        self.wordpress = WordPressService()
        self.scores = ScoreService()
        self.tradingview = TradingViewService()

    # Companies
    async def get_overview(self, companies_limit: int = 100, top_lists_limit: int = 10) -> Dict[str, Any]:
        return await self.stocks.fetch_all_stock_data(companies_limit, top_lists_limit)

    async def get_stock_summary(self, ticker: str) -> Dict[str, Any]:
        return await self.profile.get_stock_summary(ticker)

    # Financials
    async def get_financial_report(self, ticker: str, period_type: str = "annual") -> Dict[str, Any]:
        return await self.financial.get_all_financial_data(ticker, period_type)

    # Ownership
    async def get_shareholders(self, ticker: str) -> Dict[str, Any]:
        return await self.shareholders.get_all_shareholders_data(ticker)

    # Market
    async def get_market_behavior(self) -> Dict[str, Any]:
        return await self.market_behavior.get_market_behavior_data()

    def get_market_sentiment(self) -> Dict[str, Any]:
        return generate_market_sentiment()

    def get_market_forecast(self) -> Dict[str, Any]:
        return get_market_forecast()

    async def close(self) -> None:
        await close_http_client()


# Singleton instance
market_data_service = MarketDataService()

__all__ = [
    "MarketDataService",
    "market_data_service",
    "BaseApiService",
    "Result",
    "gather_settled",
    "collect_errors",
    "get_http_client",
    "set_http_client",
    "close_http_client",
    "response_cache",
    "logger",
    "ApiServiceError",
    "StockServiceError",
    "FinancialDataError",
    "NewsServiceError",
    "ShareholdersServiceError",
    "SheetsDataError",
    "WordPressServiceError",
    "MarketDataError",
]
