"""
Ownership structure from Simplize: breakdown by investor type, major
shareholders and fund holdings, plus the aggregations used by the
shareholders tab.
"""
from __future__ import annotations

from typing import Any, Dict, List

from app.core.config import settings

from .core import BaseApiService
from .envelopes import collect_errors, decode_status_envelope, gather_settled
from .errors import ShareholdersServiceError
from .models import CountryGroup, OwnershipStats, PieChartItem

PIE_CHART_COLORS = [
    "#0088FE",  # Blue
    "#00C49F",  # Green
    "#FFBB28",  # Yellow
    "#FF8042",  # Orange
    "#8884D8",  # Purple
    "#82CA9D",  # Light green
    "#FFC658",  # Light orange
    "#FF7C7C",  # Light red
    "#8DD1E1",  # Light blue
    "#D084D0",  # Light purple
]


def _number(value: Any) -> float:
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0


def transform_to_pie_chart_data(ownership_breakdown: List[Dict[str, Any]]) -> List[PieChartItem]:
    return [
        PieChartItem(
            name=item.get("investorType", ""),
            value=_number(item.get("pctOfSharesOutHeldTier")),
            color=PIE_CHART_COLORS[index % len(PIE_CHART_COLORS)],
        )
        for index, item in enumerate(ownership_breakdown)
    ]


def get_top_shareholders(shareholder_details: List[Dict[str, Any]], limit: int = 10) -> List[Dict[str, Any]]:
    ranked = sorted(shareholder_details, key=lambda s: _number(s.get("pctOfSharesOutHeld")), reverse=True)
    return ranked[:limit]


def group_shareholders_by_country(shareholder_details: List[Dict[str, Any]]) -> List[CountryGroup]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for shareholder in shareholder_details:
        grouped.setdefault(shareholder.get("countryOfInvestor"), []).append(shareholder)

    groups = [
        CountryGroup(
            country=country,
            shareholders=members,
            total_percentage=sum(_number(s.get("pctOfSharesOutHeld")) for s in members),
            total_value=sum(_number(s.get("currentValue")) for s in members),
        )
        for country, members in grouped.items()
    ]
    return sorted(groups, key=lambda g: g.total_percentage, reverse=True)


def calculate_ownership_stats(shareholder_details: List[Dict[str, Any]]) -> OwnershipStats:
    changes = [_number(s.get("changeValue")) for s in shareholder_details]
    return OwnershipStats(
        total_shareholders=len(shareholder_details),
        total_percentage=sum(_number(s.get("pctOfSharesOutHeld")) for s in shareholder_details),
        total_value=sum(_number(s.get("currentValue")) for s in shareholder_details),
        total_shares=sum(_number(s.get("sharesHeld")) for s in shareholder_details),
        positive_changes=sum(1 for c in changes if c > 0),
        negative_changes=sum(1 for c in changes if c < 0),
        no_changes=sum(1 for c in changes if c == 0),
    )


class ShareholdersService(BaseApiService):
    """Simplize ownership endpoints."""

    provider = "simplize"
    error_cls = ShareholdersServiceError
    default_headers = {"Accept": "application/json", "Content-Type": "application/json"}

    @property
    def base_url(self) -> str:
        return f"{settings.simplize_base_url}/company/ownership"

    async def get_ownership_breakdown(self, ticker: str) -> List[Dict[str, Any]]:
        response = await self.fetch_with_error_handling(f"{self.base_url}/ownership-breakdown/{ticker.upper()}")
        return decode_status_envelope(response, ShareholdersServiceError) or []

    async def get_shareholder_details(self, ticker: str) -> Dict[str, List[Dict[str, Any]]]:
        response = await self.fetch_with_error_handling(f"{self.base_url}/shareholder-fund-details/{ticker.upper()}")
        data = decode_status_envelope(response, ShareholdersServiceError) or {}
        return {
            "shareholderDetails": data.get("shareholderDetails") or [],
            "fundHoldings": data.get("fundHoldings") or [],
        }

    async def get_all_shareholders_data(self, ticker: str) -> Dict[str, Any]:
        """
        Breakdown, shareholder details and fund holdings.

        A failing endpoint leaves its part empty and is reported in ``errors``;
        only when both endpoints fail is the first error raised.
        """
        results = await gather_settled(
            ownershipBreakdown=self.get_ownership_breakdown(ticker),
            shareholderDetails=self.get_shareholder_details(ticker),
        )
        errors = collect_errors(results)
        if len(errors) == len(results):
            results["ownershipBreakdown"].unwrap()

        details = results["shareholderDetails"].unwrap_or({})
        return {
            "ownershipBreakdown": results["ownershipBreakdown"].unwrap_or([]),
            "shareholderDetails": details.get("shareholderDetails", []),
            "fundHoldings": details.get("fundHoldings", []),
            "errors": errors,
        }


shareholders_service = ShareholdersService()

__all__ = [
    "ShareholdersService",
    "shareholders_service",
    "transform_to_pie_chart_data",
    "get_top_shareholders",
    "group_shareholders_by_country",
    "calculate_ownership_stats",
    "PIE_CHART_COLORS",
]
