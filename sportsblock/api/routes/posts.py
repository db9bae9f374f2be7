"""
Sportsblock API - Post Routes

Soft (custodial) long-form posts: create, list, read, edit and delete,
plus the unified Hive + soft feed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Response, status

from sportsblock.api.dependencies import (
    AuthorDep,
    CurrentUserDep,
    FeedServiceDep,
    PostRepoDep,
    RateLimiterDep,
    SettingsDep,
    enforce_rate_limit,
)
from sportsblock.hive.utils import generate_permlink, generate_unique_permlink
from sportsblock.models.base import LimitInfo
from sportsblock.models.content import SoftPost, SoftPostCreate, SoftPostUpdate
from sportsblock.services.feed import plain_excerpt

logger = structlog.get_logger(__name__)

router = APIRouter()

FEED_CACHE_CONTROL = "public, s-maxage=30, stale-while-revalidate=60"


def parse_cursor(value: str | None) -> datetime | None:
    """ISO8601 cursor to an aware datetime. Naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="before must be an ISO8601 timestamp",
        ) from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


# =============================================================================
# Soft Posts
# =============================================================================

@router.post("/soft/posts", status_code=status.HTTP_201_CREATED)
async def create_soft_post(
    body: SoftPostCreate,
    user: CurrentUserDep,
    author: AuthorDep,
    posts: PostRepoDep,
    limiter: RateLimiterDep,
    settings: SettingsDep,
) -> dict[str, Any]:
    """Create a long-form post stored off-chain until the author graduates."""
    await enforce_rate_limit(limiter, user.user_id, "soft_posts")

    cap = settings.soft_post_limit
    current = await posts.count_where(author_id=user.user_id)
    if user.auth_type == "soft" and current >= cap:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": f"Post limit reached ({cap}). Connect a Hive wallet to keep publishing.",
                "upgradeRequired": True,
                "limitInfo": LimitInfo(current=current, max=cap, remaining=0).model_dump(by_alias=True),
            },
        )

    base = generate_permlink(body.title) or "post"
    taken = await posts.permlinks_with_prefix(user.user_id, base)
    permlink = generate_unique_permlink(base, taken.__contains__)

    post = await posts.create(body, author, permlink, plain_excerpt(body.content))
    current += 1
    limit_info = LimitInfo(current=current, max=cap, remaining=max(0, cap - current))
    return {
        "success": True,
        "post": post.model_dump(by_alias=True, mode="json"),
        "limitInfo": limit_info.model_dump(by_alias=True),
    }


@router.get("/soft/posts")
async def list_soft_posts(
    posts: PostRepoDep,
    limit: int = Query(default=20, ge=1, le=100),
    author_id: str | None = Query(default=None, alias="authorId", min_length=1),
    community_id: str | None = Query(default=None, alias="communityId", min_length=1),
) -> dict[str, Any]:
    """Soft posts newest first, optionally by author or community. Bodies are omitted."""
    page = await posts.list_posts(limit, author_id=author_id, community_id=community_id)
    return {
        "success": True,
        "posts": [p.model_dump(by_alias=True, mode="json") for p in page],
        "count": len(page),
    }


@router.get("/soft/posts/{post_id}")
async def get_soft_post(post_id: str, posts: PostRepoDep) -> dict[str, Any]:
    post = await posts.increment_view_count(post_id.removeprefix("soft-"))
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return {"success": True, "post": post.model_dump(by_alias=True, mode="json")}


async def _own_post(posts: PostRepoDep, post_id: str, user_id: str, action: str) -> SoftPost:
    post = await posts.get_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    if post.author_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized to {action} this post",
        )
    return post


@router.patch("/soft/posts/{post_id}")
async def update_soft_post(
    post_id: str,
    body: SoftPostUpdate,
    user: CurrentUserDep,
    posts: PostRepoDep,
) -> dict[str, Any]:
    """Edit title, content or tags of the caller's own post."""
    post_id = post_id.removeprefix("soft-")
    await _own_post(posts, post_id, user.user_id, "update")

    changes: dict[str, Any] = {}
    if body.title is not None:
        if not body.title.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title cannot be empty")
        changes["title"] = body.title.strip()
    if body.content is not None:
        if not body.content.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Content cannot be empty")
        changes["content"] = body.content.strip()
        changes["excerpt"] = plain_excerpt(changes["content"])
    if body.tags is not None:
        changes["tags"] = body.tags
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid updates provided")

    updated = await posts.update_fields(post_id, **changes)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    logger.info("soft_post_updated", post_id=post_id, fields=sorted(changes))
    return {
        "success": True,
        "post": updated.model_dump(by_alias=True, mode="json"),
        "message": "Post updated successfully",
    }


@router.delete("/soft/posts/{post_id}")
async def delete_soft_post(post_id: str, user: CurrentUserDep, posts: PostRepoDep) -> dict[str, Any]:
    post_id = post_id.removeprefix("soft-")
    await _own_post(posts, post_id, user.user_id, "delete")

    await posts.delete(post_id)
    logger.info("soft_post_deleted", post_id=post_id, user_id=user.user_id)
    return {"success": True, "message": "Post deleted successfully"}


# =============================================================================
# Unified Feed
# =============================================================================

@router.get("/unified/posts")
async def get_unified_posts(
    response: Response,
    feed: FeedServiceDep,
    username: str | None = Query(default=None),
    author_id: str | None = Query(default=None, alias="authorId"),
    limit: int = Query(default=20, ge=1, le=100),
    before: str | None = Query(default=None),
    include_hive: bool = Query(default=True, alias="includeHive"),
    include_soft: bool = Query(default=True, alias="includeSoft"),
    sport_category: str | None = Query(default=None, alias="sportCategory"),
) -> dict[str, Any]:
    """
    One page of Hive and soft posts merged newest first.

    Either source failing is logged and the page is built from the other.
    """
    page = await feed.unified_posts(
        limit=limit,
        username=username,
        author_id=author_id,
        before=parse_cursor(before),
        include_hive=include_hive,
        include_soft=include_soft,
        sport_category=sport_category,
    )

    response.headers["Cache-Control"] = FEED_CACHE_CONTROL
    result: dict[str, Any] = {
        "success": True,
        "posts": [p.model_dump(by_alias=True, mode="json", exclude_none=True) for p in page.posts],
        "count": len(page.posts),
        "hasMore": page.has_more,
        "nextCursor": page.next_cursor,
        "sources": page.sources,
    }
    if page.is_soft_user is not None:
        result["isSoftUser"] = page.is_soft_user
    return result
