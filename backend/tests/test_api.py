import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, patch

from app.core.circuit_breaker import CircuitOpenError
from app.main import app
from app.services.market_data import market_data_service
from app.services.market_data.errors import MarketDataError, StockServiceError
from app.services.market_data.models import MarketLeader, ValuationRow
from app.services.market_data.sheets import ValuationService


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_root_and_health(client):
    response = await client.get("/")
    assert response.json() == {"message": "IQX Stock Express API", "version": "1.0.0"}

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "providers" in response.json()


@pytest.mark.asyncio
@pytest.mark.parametrize("query, message", [
    ("centerId=3", "Invalid centerId. Must be 1 (VNINDEX), 2 (HNX), or 9 (UPCOM)"),
    ("centerId=abc", "Invalid centerId. Must be 1 (VNINDEX), 2 (HNX), or 9 (UPCOM)"),
    ("centerId=1&take=0", "Invalid take parameter. Must be a number between 1 and 50"),
    ("centerId=1&take=x", "Invalid take parameter. Must be a number between 1 and 50"),
])
async def test_market_leaders_validation(client, upstream, query, message):
    response = await client.get(f"/api/market-leaders?{query}")
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": message}
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_market_leaders_success(client):
    leaders = [MarketLeader(symbol="VCB", score=1.5, score_percent=12.0, company_name="Vietcombank")]
    with patch.object(market_data_service.market_leaders, "get_market_leaders_by_center",
                      new=AsyncMock(return_value=leaders)):
        response = await client.get("/api/market-leaders?centerId=2&take=5")
    body = response.json()
    assert response.status_code == 200
    assert body["exchange"] == "HNX"
    assert body["data"][0]["symbol"] == "VCB"


@pytest.mark.asyncio
async def test_market_leaders_upstream_failure(client):
    with patch.object(market_data_service.market_leaders, "get_market_leaders_by_center",
                      new=AsyncMock(side_effect=MarketDataError("HTTP error! status: 500", 500))):
        response = await client.get("/api/market-leaders")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "HTTP error! status: 500", "data": []}


@pytest.mark.asyncio
async def test_invalid_ticker_is_rejected(client, upstream):
    response = await client.get("/api/companies/F1/summary")
    assert response.status_code == 400
    assert response.json() == {"success": False, "detail": "Ticker không hợp lệ"}
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_price_history_rejects_unknown_period(client):
    response = await client.get("/api/companies/FPT/prices?period=2w")
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid period")


@pytest.mark.asyncio
async def test_price_history(client, upstream):
    upstream.add("/historical/prices/chart", json={"status": 200, "data": [[1719792000, 1, 2, 0.5, 1.5, 1000]]})
    response = await client.get("/api/companies/fpt/prices?period=1y")
    body = response.json()
    assert response.status_code == 200
    assert body["ticker"] == "FPT"
    assert body["count"] == 1
    assert body["prices"][0]["date"] == "2024-07-01"


@pytest.mark.asyncio
async def test_circuit_open_maps_to_503(client):
    with patch.object(market_data_service.profile, "get_historical_prices",
                      new=AsyncMock(side_effect=CircuitOpenError("simplize", 11.2))):
        response = await client.get("/api/companies/FPT/prices")
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "12"
    body = response.json()
    assert body["error_type"] == "circuit_breaker_open"
    assert body["retry_after"] == 12


@pytest.mark.asyncio
async def test_upstream_failure_maps_to_502(client):
    with patch.object(market_data_service.profile, "get_company_data",
                      new=AsyncMock(side_effect=StockServiceError("HTTP error! status: 500", 500))):
        response = await client.get("/api/companies/FPT")
    assert response.status_code == 502
    assert response.json() == {
        "success": False,
        "detail": StockServiceError.user_message,
        "error_type": "upstream_error",
    }


@pytest.mark.asyncio
async def test_upstream_client_error_keeps_status(client):
    with patch.object(market_data_service.profile, "get_company_data",
                      new=AsyncMock(side_effect=StockServiceError("Company not found", 404))):
        response = await client.get("/api/companies/ZZZ")
    assert response.status_code == 404
    assert response.json()["detail"] == "Company not found"


@pytest.mark.asyncio
async def test_f_score_not_found(client, upstream):
    upstream.add("/admin/sheet/f-score/FPT", json={"detail": "missing"}, status=404)
    response = await client.get("/api/companies/FPT/f-score")
    assert response.status_code == 404
    assert response.json() == {"error": "F-Score data not found for this ticker"}


@pytest.mark.asyncio
async def test_z_score_passthrough(client, upstream):
    upstream.add("/admin/sheet/z-score/VNM", json={"ticker": "VNM", "zScore": 3.1})
    response = await client.get("/api/companies/vnm/z-score")
    assert response.status_code == 200
    assert response.json()["zScore"] == 3.1


@pytest.mark.asyncio
async def test_shareholders_adds_derived_views(client):
    data = {
        "ownershipBreakdown": [{"investorType": "Nhà nước", "pctOfSharesOutHeldTier": 36}],
        "shareholderDetails": [{"countryOfInvestor": "Vietnam", "pctOfSharesOutHeld": 36, "changeValue": 1}],
        "fundHoldings": [],
        "errors": {},
    }
    with patch.object(market_data_service, "get_shareholders", new=AsyncMock(return_value=data)):
        response = await client.get("/api/companies/VNM/shareholders")
    body = response.json()
    assert body["pieChart"][0] == {"name": "Nhà nước", "value": 36, "color": "#0088FE"}
    assert body["byCountry"][0]["country"] == "Vietnam"
    assert body["stats"]["positive_changes"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("query, message", [
    ("", "Section parameter is required"),
    ("?section=EQUITY", "Invalid section. Must be one of: INCOME_STATEMENT, BALANCE_SHEET, CASH_FLOW, NOTE"),
])
async def test_vietcap_statement_requires_valid_section(client, upstream, query, message):
    response = await client.get(f"/api/vietcap/financial/FPT/statement{query}")
    assert response.status_code == 400
    assert response.json() == {"successful": False, "msg": message}
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_vietcap_statement_is_passed_through(client, upstream):
    envelope = {"successful": True, "status": 200, "data": {"years": []}}
    upstream.add("section=BALANCE_SHEET", json=envelope)
    response = await client.get("/api/vietcap/financial/FPT/statement?section=BALANCE_SHEET")
    assert response.json() == envelope


@pytest.mark.asyncio
async def test_vietcap_metrics_error_envelope(client, upstream):
    upstream.add("/financial-statement/metrics", json={}, status=404)
    response = await client.get("/api/vietcap/financial/ZZZ/metrics")
    assert response.status_code == 404
    assert response.json() == {"successful": False, "msg": "HTTP error! status: 404", "status": 404}


@pytest.mark.asyncio
async def test_news_error_shapes(client, upstream):
    upstream.add("/v2/news_info", json=httpx.ConnectError("refused"))
    response = await client.get("/api/vietcap/news?ticker=FPT")
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["news_info"] == []
    assert body["total_records"] == 0

    response = await client.get("/api/vietcap/news/detail")
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Slug parameter is required"}


@pytest.mark.asyncio
async def test_valuation_filter_endpoint(client):
    rows = [
        ValuationService.calculate_valuation_comparison(ValuationRow(
            symbol=symbol, exchange="HOSE", sector_level_2="Ngân hàng", close_price=10, volume=1000,
            pe_ratio=pe, sector_pe=10, pb_ratio=1, sector_pb=2, roa_pct=1.5,
            cfo=0, delta_roa_pct=0, cfo_ln_profit=0, gross_margin_pct=0, asset_turnover_pct=0,
        ))
        for symbol, pe in (("VCB", 8), ("BID", 12))
    ]
    data = {"items": rows, "total_count": 2, "last_updated": "2025-03-01T00:00:00"}
    with patch.object(market_data_service.valuation, "fetch_with_retry", new=AsyncMock(return_value=data)):
        response = await client.get("/api/filters/valuation?undervalued_only=true")
        bad_sort = await client.get("/api/filters/valuation?sort_by=nonsense")

    body = response.json()
    assert [item["symbol"] for item in body["items"]] == ["VCB"]
    assert body["total_count"] == 2
    assert body["filtered_count"] == 1
    assert body["sectors"] == ["Ngân hàng"]
    assert body["statistics"]["undervalued_count"] == 1
    assert bad_sort.status_code == 400


@pytest.mark.asyncio
async def test_market_behavior_adds_legend(client):
    result = {"data": [], "is_fallback": True}
    with patch.object(market_data_service, "get_market_behavior", new=AsyncMock(return_value=result)):
        response = await client.get("/api/market/behavior")
    body = response.json()
    assert body["is_fallback"] is True
    assert len(body["categories"]) == 4


@pytest.mark.asyncio
async def test_market_sentiment_and_forecast(client):
    sentiment = (await client.get("/api/market/sentiment")).json()
    assert sentiment["data"]["is_demo"] is True
    forecast = (await client.get("/api/market/forecast")).json()
    assert forecast["data"]["trend"] == "up"


@pytest.mark.asyncio
async def test_foreign_trading_rejects_unknown_period(client):
    response = await client.get("/api/market/foreign-trading?period=year")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_tv_endpoints_degrade(client, upstream):
    upstream.add("/api/tv/", json=httpx.ConnectError("refused"))

    config = await client.get("/api/tv/config")
    assert config.json()["supported_resolutions"] == ["D", "W", "M"]
    history = await client.get("/api/tv/history?symbol=FPT&resolution=1D&from=1&to=2")
    assert history.json() == {"s": "no_data"}
    search = await client.get("/api/tv/search?query=FP")
    assert search.status_code == 500
    assert search.json() == {"error": "Proxy error"}
    time_response = await client.get("/api/tv/time")
    assert time_response.text.isdigit()


@pytest.mark.asyncio
async def test_post_not_found(client):
    with patch.object(market_data_service.wordpress, "get_post_by_slug", new=AsyncMock(return_value=None)):
        response = await client.get("/api/posts/slug/khong-ton-tai")
    assert response.status_code == 404
    assert response.json() == {"success": False, "detail": "Không tìm thấy bài viết"}
