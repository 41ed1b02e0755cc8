import pytest

from app.services.market_data.errors import ShareholdersServiceError
from app.services.market_data.shareholders import (
    PIE_CHART_COLORS,
    ShareholdersService,
    calculate_ownership_stats,
    get_top_shareholders,
    group_shareholders_by_country,
    transform_to_pie_chart_data,
)

DETAILS = [
    {"investorFullName": "SCIC", "countryOfInvestor": "Vietnam", "pctOfSharesOutHeld": 36.0,
     "currentValue": 5000, "sharesHeld": 100, "changeValue": 0},
    {"investorFullName": "Platinum Victory", "countryOfInvestor": "Singapore", "pctOfSharesOutHeld": 10.6,
     "currentValue": 1500, "sharesHeld": 40, "changeValue": -5},
    {"investorFullName": "Dragon Capital", "countryOfInvestor": "Vietnam", "pctOfSharesOutHeld": 2.4,
     "currentValue": 300, "sharesHeld": 8, "changeValue": 2},
    {"investorFullName": "Unknown", "countryOfInvestor": "Singapore", "pctOfSharesOutHeld": None,
     "currentValue": None, "sharesHeld": None, "changeValue": None},
]


def test_pie_chart_colors_cycle():
    breakdown = [{"investorType": f"Type {i}", "pctOfSharesOutHeldTier": i} for i in range(12)]
    chart = transform_to_pie_chart_data(breakdown)
    assert chart[0].name == "Type 0"
    assert chart[3].value == 3
    assert chart[10].color == PIE_CHART_COLORS[0]
    assert chart[11].color == PIE_CHART_COLORS[1]


def test_top_shareholders_by_percentage():
    top = get_top_shareholders(DETAILS, limit=2)
    assert [s["investorFullName"] for s in top] == ["SCIC", "Platinum Victory"]


def test_group_by_country_sorted_by_total_percentage():
    groups = group_shareholders_by_country(DETAILS)
    assert [g.country for g in groups] == ["Vietnam", "Singapore"]
    assert groups[0].total_percentage == pytest.approx(38.4)
    assert groups[0].total_value == 5300
    assert len(groups[1].shareholders) == 2


def test_ownership_stats():
    stats = calculate_ownership_stats(DETAILS)
    assert stats.total_shareholders == 4
    assert stats.total_shares == 148
    assert stats.positive_changes == 1
    assert stats.negative_changes == 1
    # a missing change counts as unchanged
    assert stats.no_changes == 2


@pytest.mark.asyncio
async def test_all_shareholders_data_keeps_partial_results(upstream):
    upstream.add("/ownership-breakdown/VNM", json={"status": 200, "data": [{"investorType": "Nhà nước"}]})
    upstream.add("/shareholder-fund-details/VNM", json={"status": 500, "message": "boom"})

    data = await ShareholdersService().get_all_shareholders_data("vnm")

    assert data["ownershipBreakdown"] == [{"investorType": "Nhà nước"}]
    assert data["shareholderDetails"] == []
    assert data["fundHoldings"] == []
    assert "shareholderDetails" in data["errors"]


@pytest.mark.asyncio
async def test_all_shareholders_data_raises_when_everything_fails(upstream):
    upstream.add("/ownership-breakdown/", json={"status": 404})
    upstream.add("/shareholder-fund-details/", json={"status": 404})
    with pytest.raises(ShareholdersServiceError, match="API returned status 404"):
        await ShareholdersService().get_all_shareholders_data("VNM")


@pytest.mark.asyncio
async def test_shareholder_details_defaults_missing_lists(upstream):
    upstream.add("/shareholder-fund-details/FPT", json={"status": 200, "data": {"shareholderDetails": DETAILS}})
    data = await ShareholdersService().get_shareholder_details("fpt")
    assert len(data["shareholderDetails"]) == 4
    assert data["fundHoldings"] == []
