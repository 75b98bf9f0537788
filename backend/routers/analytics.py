"""EduConnect Analytics Router - trending feed and per-post engagement."""

from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from errors import success_response
from models import Post
from services.auth import Principal, require_user
from services.post_store import PostStore

from .posts import get_post_store

router = APIRouter(prefix="/api/analytics")


def _scored(store: PostStore, posts: Iterable[Post]) -> List[dict]:
    return [
        {
            **p.to_dict(),
            "trendingScore": store.ranker.trending_score(p),
            "engagementRate": store.ranker.engagement_rate(p),
        }
        for p in posts
    ]


@router.get("/trending")
async def trending(
    limit: Optional[int] = Query(None, ge=0),
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    posts = await store.trending(limit)
    return success_response(posts=_scored(store, posts))


@router.get("/posts")
async def my_posts(
    limit: int = Query(50, ge=1, le=200),
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    """The caller's own posts, private ones included, with their counters."""
    posts = await store.list_posts(author_id=user.user_id, public_only=False, limit=limit)
    return success_response(posts=_scored(store, posts))


@router.get("/engagement/{post_id}")
async def engagement(
    post_id: int,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    """Engagement metrics; visible to the post's author only."""
    metrics = await store.engagement_metrics(post_id)
    if metrics["post"]["authorId"] != user.user_id:
        raise HTTPException(status_code=403, detail="Only the author can view engagement metrics")
    return success_response(metrics)
