"""
Editorial news posts from the IQX WordPress site (``news-api/v1``).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.config import settings

from .core import BaseApiService
from .envelopes import decode_success_envelope
from .errors import WordPressServiceError


class WordPressService(BaseApiService):
    provider = "wordpress"
    error_cls = WordPressServiceError

    async def _fetch_api(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Full ``{success, data, pagination, ...}`` body after the success check."""
        response = await self.fetch_server_side(
            f"{settings.wordpress_base_url}{endpoint}", params=params, revalidate=300
        )
        decode_success_envelope(response, WordPressServiceError)
        return response

    async def get_categories(self, **params: Any) -> List[Dict[str, Any]]:
        response = await self._fetch_api("/categories", params)
        return response.get("data") or []

    async def get_posts(self, **params: Any) -> Dict[str, Any]:
        return await self._fetch_api("/posts", params)

    async def get_post_by_id(self, post_id: int) -> Dict[str, Any]:
        response = await self._fetch_api(f"/posts/{post_id}")
        return response.get("data")

    async def get_post_by_slug(self, slug: str) -> Dict[str, Any]:
        response = await self._fetch_api(f"/posts/slug/{slug}")
        return response.get("data")

    async def search_posts(self, query: str, **params: Any) -> Dict[str, Any]:
        return await self.get_posts(**{**params, "search": query})

    async def get_posts_by_category(self, category_id: int, **params: Any) -> Dict[str, Any]:
        return await self.get_posts(**{**params, "category": str(category_id)})

    async def get_featured_posts(self, **params: Any) -> Dict[str, Any]:
        return await self.get_posts(**{**params, "featured": "true"})

    async def get_recent_posts(self, limit: int = 10) -> List[Dict[str, Any]]:
        response = await self.get_posts(per_page=limit, orderby="date", order="desc")
        return response.get("data") or []

    async def get_posts_with_pagination(self, **params: Any) -> Dict[str, Any]:
        response = await self.get_posts(**params)
        pagination = response.get("pagination") or {}
        return {
            "posts": response.get("data") or [],
            "pagination": response.get("pagination"),
            "total": pagination.get("total_items") or 0,
            "total_pages": pagination.get("total_pages") or 0,
            "current_page": pagination.get("current_page") or 1,
            "has_next": bool(pagination.get("has_next")),
            "has_previous": bool(pagination.get("has_previous")),
        }


wordpress_service = WordPressService()

__all__ = ["WordPressService", "wordpress_service"]
