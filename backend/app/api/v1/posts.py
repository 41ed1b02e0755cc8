"""
Editorial posts and categories from the IQX WordPress site.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from app.services.market_data import market_data_service

router = APIRouter(tags=["posts"])


@router.get("/posts")
async def list_posts(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    orderby: Optional[str] = None,
    order: Optional[str] = Query(None, pattern="^(asc|desc)$"),
):
    """Paginated posts, optionally filtered by search text, category or featured flag."""
    return await market_data_service.wordpress.get_posts_with_pagination(
        page=page,
        per_page=per_page,
        search=search,
        category=category,
        featured="true" if featured else None,
        orderby=orderby,
        order=order,
    )


@router.get("/posts/slug/{slug}")
async def get_post_by_slug(slug: str):
    post = await market_data_service.wordpress.get_post_by_slug(slug)
    if not post:
        raise HTTPException(status_code=404, detail="Không tìm thấy bài viết")
    return {"success": True, "data": post}


@router.get("/posts/{post_id}")
async def get_post(post_id: int):
    post = await market_data_service.wordpress.get_post_by_id(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Không tìm thấy bài viết")
    return {"success": True, "data": post}


@router.get("/categories")
async def list_categories():
    categories = await market_data_service.wordpress.get_categories()
    return {"success": True, "data": categories, "count": len(categories)}
