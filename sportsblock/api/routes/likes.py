"""
Sportsblock API - Like Routes

Likes on soft posts and comments.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Query
from pydantic import Field

from sportsblock.api.dependencies import (
    CurrentUserDep,
    LikeRepoDep,
    NotificationServiceDep,
    OptionalUserDep,
    RateLimiterDep,
    enforce_rate_limit,
)
from sportsblock.models.base import SportsblockModel
from sportsblock.models.social import LikeTargetType

logger = structlog.get_logger(__name__)

router = APIRouter()


class LikeToggleRequest(SportsblockModel):
    target_type: LikeTargetType
    target_id: str = Field(min_length=1)
    post_permlink: str | None = None


class LikeTarget(SportsblockModel):
    target_type: LikeTargetType
    target_id: str = Field(min_length=1)


class LikeBatchRequest(SportsblockModel):
    targets: list[LikeTarget] = Field(min_length=1, max_length=50)


@router.get("/likes")
async def get_like_status(
    likes: LikeRepoDep,
    user: OptionalUserDep,
    target_type: LikeTargetType = Query(alias="targetType"),
    target_id: str = Query(alias="targetId", min_length=1),
) -> dict[str, Any]:
    """Like count for a target and whether the caller has liked it."""
    target = target_type.value
    like_count = await likes.count_for_target(target, target_id)
    has_liked = False
    if user is not None:
        has_liked = await likes.has_liked(user.user_id, target, target_id)
    return {"success": True, "likeCount": like_count, "hasLiked": has_liked}


@router.post("/likes")
async def toggle_like(
    body: LikeToggleRequest,
    user: CurrentUserDep,
    likes: LikeRepoDep,
    notifier: NotificationServiceDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    """
    Like the target, or unlike it when the caller already has.

    A new like notifies the target's author and may trigger the
    trending milestone for posts.
    """
    await enforce_rate_limit(limiter, user.user_id, "likes")

    target_type = body.target_type
    if await likes.has_liked(user.user_id, target_type, body.target_id):
        await likes.remove(user.user_id, target_type, body.target_id)
        await likes.adjust_target_like_count(target_type, body.target_id, -1)
        liked = False
    else:
        await likes.create(user.user_id, user.username, target_type, body.target_id)
        await likes.adjust_target_like_count(target_type, body.target_id, 1)
        liked = True

    like_count = await likes.count_for_target(target_type, body.target_id)

    if liked:
        await notifier.notify_like(
            user.user_id, user.username, target_type, body.target_id, post_permlink=body.post_permlink
        )
        if target_type == LikeTargetType.POST.value:
            await notifier.notify_popular_post(body.target_id, like_count)

    logger.info(
        "like_toggled",
        user_id=user.user_id,
        target_type=target_type,
        target_id=body.target_id,
        liked=liked,
    )
    return {"success": True, "liked": liked, "likeCount": like_count}


@router.put("/likes")
async def batch_like_status(
    body: LikeBatchRequest,
    likes: LikeRepoDep,
    user: OptionalUserDep,
) -> dict[str, Any]:
    targets = [(t.target_type, t.target_id) for t in body.targets]
    status = await likes.batch_status(targets, user.user_id if user else None)
    results = {
        key: {"likeCount": value["like_count"], "hasLiked": value["has_liked"]}
        for key, value in status.items()
    }
    return {"success": True, "results": results}
