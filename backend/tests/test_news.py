from datetime import date

import pytest

from app.services.market_data.errors import NewsServiceError
from app.services.market_data.news import NewsService, generate_news_list_metadata, recent_window


def test_recent_window():
    assert recent_window(today=date(2025, 3, 31)) == ("2025-03-01", "2025-03-31")
    assert recent_window(7, today=date(2025, 1, 3)) == ("2024-12-27", "2025-01-03")


@pytest.mark.asyncio
async def test_news_info_sends_only_set_filters(upstream):
    upstream.add("/v2/news_info", json={"name": "FPT", "news_info": [{"id": "1"}], "total_records": 1})

    data = await NewsService().get_news_info(ticker="FPT", sentiment="Positive", industry=None)

    assert data["total_records"] == 1
    params = upstream.requests[0].url.params
    assert params["page"] == "1"
    assert params["page_size"] == "12"
    assert params["sentiment"] == "Positive"
    assert "industry" not in params


@pytest.mark.asyncio
async def test_news_info_fills_missing_keys(upstream):
    upstream.add("/v2/news_info", json={"name": "FPT"})
    data = await NewsService().get_news_info(ticker="FPT")
    assert data["news_info"] == []
    assert data["total_records"] == 0


@pytest.mark.asyncio
async def test_sentiment_counts_derive_neutral(upstream):
    upstream.add("sentiment=Positive", json={"total_records": 12})
    upstream.add("sentiment=Negative", json={"total_records": 5})
    upstream.add("/v2/news_info", json={"total_records": 30})

    counts = await NewsService().get_news_sentiment_counts("FPT")

    assert counts == {"total": 30, "positive": 12, "negative": 5, "neutral": 13}
    assert all(r.url.params["page_size"] == "1" for r in upstream.requests)


@pytest.mark.asyncio
async def test_sentiment_counts_are_zero_when_any_query_fails(upstream):
    upstream.add("sentiment=Negative", json={}, status=500)
    upstream.add("/v2/news_info", json={"total_records": 30})

    counts = await NewsService().get_news_sentiment_counts("FPT")

    assert counts == {"total": 0, "positive": 0, "negative": 0, "neutral": 0}


@pytest.mark.asyncio
async def test_news_detail_not_found(upstream):
    upstream.add("/news_from_slug", json={"detail": "missing"}, status=404)
    with pytest.raises(NewsServiceError, match="Tin tức không tồn tại") as exc:
        await NewsService().get_news_detail("bai-viet")
    assert exc.value.status_code == 404
    assert await NewsService().news_exists("bai-viet") is False


@pytest.mark.asyncio
async def test_news_exists_is_true_on_server_errors(upstream):
    upstream.add("/news_from_slug", json={}, status=502)
    assert await NewsService().news_exists("bai-viet") is True


@pytest.mark.asyncio
async def test_news_detail_metadata(upstream):
    upstream.add("/news_from_slug", json={
        "news_title": "FPT lãi kỷ lục",
        "news_short_content": "Lợi nhuận tăng 20%",
        "news_image_url": "https://img/fpt.png",
        "ticker": "FPT",
        "news_from_name": "VnExpress",
        "update_date": "2025-03-01",
    })
    metadata = await NewsService().generate_news_detail_metadata("fpt-lai-ky-luc")
    assert metadata["title"] == "FPT lãi kỷ lục | IQX Vietnam Stock Express"
    assert metadata["openGraph"]["images"] == ["https://img/fpt.png"]
    assert metadata["keywords"] == ["FPT", "tin tức chứng khoán", "thị trường chứng khoán Việt Nam", "VnExpress"]


@pytest.mark.asyncio
async def test_news_detail_metadata_falls_back(upstream):
    metadata = await NewsService().generate_news_detail_metadata("missing")
    assert metadata["title"] == "Tin tức | IQX Vietnam Stock Express"


def test_news_list_metadata():
    assert generate_news_list_metadata()["title"] == "Tin tức chứng khoán | IQX Vietnam Stock Express"
    title = generate_news_list_metadata("FPT", "Negative", 3)["title"]
    assert title == "Tin tức về FPT - Tin tiêu cực - Trang 3 | IQX Vietnam Stock Express"
    assert "Tin trung tính" in generate_news_list_metadata(sentiment="Neutral")["title"]
