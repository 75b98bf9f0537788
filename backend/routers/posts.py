"""
EduConnect Posts Router

Posts, likes, saves and the trending feed. Counter and uniqueness rules
live in PostStore; handlers only map results onto the response envelope.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from errors import NotFoundError, success_response
from services.auth import Principal, require_user
from services.post_store import PostStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts")


class PostCreate(BaseModel):
    content: str
    title: str = ""
    subject: str = ""
    visibility: str = "public"


def get_post_store(request: Request) -> PostStore:
    return request.app.state.post_store


@router.get("")
async def public_feed(
    limit: int = Query(50, ge=1, le=200),
    store: PostStore = Depends(get_post_store),
):
    """Public posts, newest first."""
    posts = await store.list_posts(public_only=True, limit=limit)
    return success_response(posts=[p.to_dict() for p in posts])


@router.get("/trending")
async def trending_posts(
    limit: Optional[int] = Query(None, ge=0),
    store: PostStore = Depends(get_post_store),
):
    posts = await store.trending(limit)
    return success_response(posts=[p.to_dict() for p in posts])


@router.post("")
async def create_post(
    body: PostCreate,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    post = await store.create_post(
        user.user_id,
        body.content,
        title=body.title,
        subject=body.subject,
        visibility=body.visibility,
    )
    return success_response(post=post.to_dict())


@router.get("/{post_id}")
async def get_post(
    post_id: int,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    post = await store.get_post(post_id)
    if not post.is_public and post.author_id != user.user_id:
        raise NotFoundError("Post not found", resource_type="post", resource_id=post_id)
    post = await store.record_view(post_id)
    return success_response(post=post.to_dict())


@router.delete("/{post_id}")
async def delete_post(
    post_id: int,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    post = await store.get_post(post_id)
    if post.author_id != user.user_id:
        raise HTTPException(status_code=403, detail="Only the author can delete this post")
    await store.delete_post(post_id)
    return success_response(message="Post deleted successfully")


# === Likes ===


@router.post("/{post_id}/like")
async def like_post(
    post_id: int,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    post = await store.like(user.user_id, post_id)
    return success_response(message="Post liked successfully", likes=post.likes)


@router.delete("/{post_id}/like")
async def unlike_post(
    post_id: int,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    if not await store.unlike(user.user_id, post_id):
        raise NotFoundError("Like not found", resource_type="like", resource_id=post_id)
    return success_response(message="Post unliked successfully")


# === Saves ===


@router.post("/{post_id}/save")
async def save_post(
    post_id: int,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    post = await store.save(user.user_id, post_id)
    return success_response(message="Post saved successfully", saves=post.saves)


@router.delete("/{post_id}/save")
async def unsave_post(
    post_id: int,
    user: Principal = Depends(require_user),
    store: PostStore = Depends(get_post_store),
):
    if not await store.unsave(user.user_id, post_id):
        raise NotFoundError("Save not found", resource_type="save", resource_id=post_id)
    return success_response(message="Post unsaved successfully")
