"""
AI-tagged market news from VietCap (list, detail, sentiment counts) and the
page metadata built from it.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Optional

from app.core.config import settings

from .core import BaseApiService, logger
from .envelopes import gather_settled
from .errors import ApiServiceError, NewsServiceError

SITE_NAME = "IQX Vietnam Stock Express"
NEWS_SENTIMENTS = ("Positive", "Negative", "Neutral")
SENTIMENT_LABELS = {
    "Positive": "tích cực",
    "Negative": "tiêu cực",
}
NEUTRAL_LABEL = "trung tính"

RECENT_NEWS_DAYS = 30
DEFAULT_PAGE_SIZE = 12
GENERAL_NEWS_TICKER = "VN30"
GENERAL_NEWS_PAGE_SIZE = 20

NEWS_FILTER_KEYS = ("industry", "update_from", "update_to", "sentiment", "newsfrom", "language")


def recent_window(days: int = RECENT_NEWS_DAYS, today: Optional[date] = None):
    """``(update_from, update_to)`` ISO dates covering the last ``days`` days."""
    today = today or date.today()
    return (today - timedelta(days=days)).isoformat(), today.isoformat()


class NewsService(BaseApiService):
    """VietCap AI news endpoints."""

    provider = "vietcap_ai"
    error_cls = NewsServiceError

    @property
    def default_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Referer": settings.vietcap_referer,
            "User-Agent": settings.user_agent,
        }

    async def get_news_info(
        self,
        ticker: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        **filters: Any,
    ) -> Dict[str, Any]:
        """
        One page of news. Returns ``{total_records, name, news_info}``.

        Extra keyword filters: industry, update_from, update_to, sentiment,
        newsfrom and language. Empty values are not sent.
        """
        params = {
            "page": page or 1,
            "ticker": ticker,
            "page_size": page_size or DEFAULT_PAGE_SIZE,
        }
        params.update({key: filters.get(key) for key in NEWS_FILTER_KEYS})

        data = await self.fetch_server_side(
            f"{settings.vietcap_ai_base_url}/v2/news_info", params=params, revalidate=300
        )
        if not isinstance(data, dict):
            raise NewsServiceError("Không thể tải tin tức")
        data.setdefault("news_info", [])
        data.setdefault("total_records", 0)
        return data

    async def get_recent_news(
        self,
        ticker: str,
        sentiment: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        update_from, update_to = recent_window()
        return await self.get_news_info(
            ticker=ticker,
            page=page,
            page_size=page_size,
            update_from=update_from,
            update_to=update_to,
            sentiment=sentiment,
            language="vi",
        )

    async def get_general_news(self, **params: Any) -> Dict[str, Any]:
        """News for the market as a whole (VN30 basket unless a ticker is given)."""
        merged = {
            "ticker": GENERAL_NEWS_TICKER,
            "page": 1,
            "page_size": GENERAL_NEWS_PAGE_SIZE,
            "language": "vi",
        }
        merged.update({k: v for k, v in params.items() if v is not None})
        return await self.get_news_info(**merged)

    async def get_news_sentiment_counts(
        self,
        ticker: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> Dict[str, int]:
        """Article counts per sentiment; neutral is whatever is neither positive nor negative."""
        default_from, default_to = recent_window()
        base = {
            "ticker": ticker,
            "update_from": date_from or default_from,
            "update_to": date_to or default_to,
            "language": "vi",
            "page_size": 1,
            "page": 1,
        }
        results = await gather_settled(
            total=self.get_news_info(**base),
            positive=self.get_news_info(**base, sentiment="Positive"),
            negative=self.get_news_info(**base, sentiment="Negative"),
        )
        if not all(result.is_ok for result in results.values()):
            failed = [name for name, result in results.items() if not result.is_ok]
            logger.warning(f"Sentiment counts unavailable for {ticker} (failed: {', '.join(failed)})")
            return {"total": 0, "positive": 0, "negative": 0, "neutral": 0}

        total = results["total"].value.get("total_records") or 0
        positive = results["positive"].value.get("total_records") or 0
        negative = results["negative"].value.get("total_records") or 0
        return {
            "total": total,
            "positive": positive,
            "negative": negative,
            "neutral": total - positive - negative,
        }

    async def get_news_detail(self, slug: str, language: str = "vi") -> Dict[str, Any]:
        try:
            return await self.fetch_server_side(
                f"{settings.vietcap_ai_base_url}/news_from_slug",
                params={"slug": slug, "language": language},
                revalidate=600,
            )
        except ApiServiceError as e:
            if e.is_not_found():
                raise NewsServiceError("Tin tức không tồn tại", 404, e) from e
            raise

    async def news_exists(self, slug: str) -> bool:
        """Only a 404 means the article does not exist; other failures are inconclusive."""
        try:
            await self.get_news_detail(slug)
        except ApiServiceError as e:
            return not e.is_not_found()
        return True

    async def generate_news_detail_metadata(self, slug: str) -> Dict[str, Any]:
        try:
            detail = await self.get_news_detail(slug)
        except ApiServiceError as e:
            logger.warning(f"Error generating news metadata for {slug}: {e}")
            return {
                "title": f"Tin tức | {SITE_NAME}",
                "description": "Tin tức và thông tin về thị trường chứng khoán Việt Nam",
            }

        description = detail.get("news_short_content") or detail.get("summary")
        images = [detail["news_image_url"]] if detail.get("news_image_url") else None
        keywords = [
            detail.get("ticker"),
            detail.get("industry"),
            "tin tức chứng khoán",
            "thị trường chứng khoán Việt Nam",
            detail.get("news_from_name"),
        ]
        return {
            "title": f"{detail.get('news_title')} | {SITE_NAME}",
            "description": description,
            "openGraph": {
                "title": detail.get("news_title"),
                "description": description,
                "images": images,
                "type": "article",
                "publishedTime": detail.get("update_date"),
            },
            "twitter": {
                "card": "summary_large_image",
                "title": detail.get("news_title"),
                "description": description,
                "images": images,
            },
            "keywords": [k for k in keywords if k],
        }


def generate_news_list_metadata(
    ticker: Optional[str] = None,
    sentiment: Optional[str] = None,
    page: Optional[int] = None,
) -> Dict[str, Any]:
    if ticker:
        title = f"Tin tức về {ticker}"
        description = f"Tin tức và thông tin mới nhất về cổ phiếu {ticker}"
    else:
        title = "Tin tức chứng khoán"
        description = "Tin tức và thông tin mới nhất về thị trường chứng khoán Việt Nam"

    if sentiment:
        title += f" - Tin {SENTIMENT_LABELS.get(sentiment, NEUTRAL_LABEL)}"
    if page and page > 1:
        title += f" - Trang {page}"
    title += f" | {SITE_NAME}"

    return {
        "title": title,
        "description": description,
        "openGraph": {"title": title, "description": description, "type": "website"},
        "twitter": {"card": "summary", "title": title, "description": description},
    }


news_service = NewsService()

__all__ = [
    "NewsService",
    "news_service",
    "generate_news_list_metadata",
    "recent_window",
    "NEWS_SENTIMENTS",
    "SITE_NAME",
]
