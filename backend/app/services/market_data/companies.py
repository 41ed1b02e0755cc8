"""
Companies backend client: company lists, market statistics and top lists.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.circuit_breaker import CircuitOpenError

from .core import BaseApiService, logger
from .envelopes import collect_errors, gather_settled
from .errors import ApiServiceError, StockServiceError

TOP_LIST_ENDPOINTS = {
    "gainers": "/api/companies/top-gainers",
    "losers": "/api/companies/top-losers",
    "volume": "/api/companies/top-volume",
    "marketCap": "/api/companies/top-market-cap",
}


class StockService(BaseApiService):
    """Company listings and market overview from the internal backend."""

    provider = "companies_api"
    error_cls = StockServiceError

    async def fetch_companies(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Fetch the company list. ``data`` may be a list or ``{"data": [...]}``."""
        async def operation():
            response = await self.fetch_with_error_handling(
                self.get_api_url("/api/companies"), params={"limit": limit}
            )
            data = self.process_response(response)
            if isinstance(data, dict) and data.get("data") is not None:
                data = data["data"]
            if data is None:
                data = []
            if not isinstance(data, list):
                raise StockServiceError("Invalid companies data format")
            return data

        return await self.with_retry(operation)

    async def _fetch_optional_list(self, endpoint: str, params: Dict[str, Any], label: str) -> List[Dict[str, Any]]:
        try:
            response = await self.fetch_with_error_handling(self.get_api_url(endpoint), params=params)
            data = self.process_response(response)
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"Failed to fetch {label}: {e}")
            return []
        return data if isinstance(data, list) else []

    async def fetch_market_stats(self) -> Optional[Dict[str, Any]]:
        """Market statistics are optional: failures return None instead of raising."""
        try:
            response = await self.fetch_with_error_handling(self.get_api_url("/api/companies/stats"))
            return self.process_response(response)
        except (ApiServiceError, CircuitOpenError) as e:
            logger.warning(f"Failed to fetch market stats: {e}")
            return None

    async def fetch_top_gainers(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(TOP_LIST_ENDPOINTS["gainers"], {"limit": limit}, "top gainers")

    async def fetch_top_losers(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(TOP_LIST_ENDPOINTS["losers"], {"limit": limit}, "top losers")

    async def fetch_top_volume(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(TOP_LIST_ENDPOINTS["volume"], {"limit": limit}, "top volume")

    async def fetch_top_market_cap(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(TOP_LIST_ENDPOINTS["marketCap"], {"limit": limit}, "top market cap")

    async def fetch_top_lists(self, limit: int = 10) -> Dict[str, List[Dict[str, Any]]]:
        results = await gather_settled(
            gainers=self.fetch_top_gainers(limit),
            losers=self.fetch_top_losers(limit),
            volume=self.fetch_top_volume(limit),
            marketCap=self.fetch_top_market_cap(limit),
        )
        return {name: result.unwrap_or([]) for name, result in results.items()}

    async def search_companies(self, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(
            "/api/companies/search", {"q": query, "limit": limit}, f"search companies '{query}'"
        )

    async def fetch_companies_with_filters(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        industry: Optional[str] = None,
        sector: Optional[str] = None,
        exchange: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            "page": page or None,
            "limit": limit or None,
            "search": search,
            "industry": industry,
            "sector": sector,
            "exchange": exchange,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        }

        async def operation():
            response = await self.fetch_with_error_handling(self.get_api_url("/api/companies"), params=params)
            data = self.process_response(response) or {}
            if isinstance(data, list):
                data = {"data": data, "total": len(data)}
            return {
                "companies": data.get("data") or [],
                "total": data.get("total") or 0,
                "page": data.get("page") or 1,
                "total_pages": data.get("totalPages") or 1,
            }

        return await self.with_retry(operation)

    async def fetch_companies_by_industry(self, industry_slug: str, page: int = 1, limit: int = 20) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(
            f"/api/companies/industry/{industry_slug}", {"page": page, "limit": limit}, f"companies by industry {industry_slug}"
        )

    async def fetch_companies_by_sector(self, sector_slug: str, page: int = 1, limit: int = 20) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(
            f"/api/companies/sector/{sector_slug}", {"page": page, "limit": limit}, f"companies by sector {sector_slug}"
        )

    async def fetch_companies_by_exchange(self, exchange: str, page: int = 1, limit: int = 20) -> List[Dict[str, Any]]:
        return await self._fetch_optional_list(
            f"/api/companies/exchange/{exchange}", {"page": page, "limit": limit}, f"companies by exchange {exchange}"
        )

    async def fetch_all_stock_data(self, companies_limit: int = 100, top_lists_limit: int = 10) -> Dict[str, Any]:
        """
        Companies, market stats and top lists for the overview page.

        Each part is fetched independently; a failed part is reported in
        ``errors`` and replaced by its empty value. Raises only when the
        company list itself cannot be loaded and nothing else succeeded.
        """
        results = await gather_settled(
            companies=self.fetch_companies(companies_limit),
            marketStats=self.fetch_market_stats(),
            topLists=self.fetch_top_lists(top_lists_limit),
        )
        errors = collect_errors(results)
        if len(errors) == len(results):
            results["companies"].unwrap()

        return {
            "companies": results["companies"].unwrap_or([]),
            "marketStats": results["marketStats"].unwrap_or(None),
            "topLists": results["topLists"].unwrap_or({name: [] for name in TOP_LIST_ENDPOINTS}),
            "errors": errors,
        }


stock_service = StockService()

__all__ = ["StockService", "stock_service", "TOP_LIST_ENDPOINTS"]
