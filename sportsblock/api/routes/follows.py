"""
Sportsblock API - Follow Routes
"""

from __future__ import annotations

from typing import Any, Literal

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from pydantic import Field

from sportsblock.api.dependencies import (
    CurrentUserDep,
    FollowRepoDep,
    NotificationServiceDep,
    OptionalUserDep,
    RateLimiterDep,
    UserRepoDep,
    enforce_rate_limit,
)
from sportsblock.models.base import Pagination, SportsblockModel, convert_neo4j_datetime, to_iso

logger = structlog.get_logger(__name__)

router = APIRouter()


class FollowToggleRequest(SportsblockModel):
    target_user_id: str = Field(min_length=1)
    target_username: str = Field(min_length=1)


class FollowStatusRequest(SportsblockModel):
    target_user_id: str = Field(min_length=1)


@router.get("/follows")
async def list_follows(
    follows: FollowRepoDep,
    users: UserRepoDep,
    viewer: OptionalUserDep,
    user_id: str | None = Query(default=None, alias="userId"),
    username: str | None = Query(default=None),
    follow_type: Literal["followers", "following"] = Query(default="followers", alias="type"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    """Page through a user's followers or the users they follow."""
    if not user_id:
        if not username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="userId or username is required",
            )
        profile = await users.get_by_username(username)
        if profile is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        user_id = profile.id

    followers = follow_type == "followers"
    rows = await follows.list_related(
        user_id,
        followers=followers,
        limit=limit,
        offset=offset,
        viewer_id=viewer.user_id if viewer else None,
    )
    total = await (follows.count_followers(user_id) if followers else follows.count_following(user_id))

    related = [
        {
            "id": row["id"],
            "userId": row["user_id"],
            "username": row["username"],
            "createdAt": to_iso(convert_neo4j_datetime(row.get("created_at"))),
            "isFollowing": bool(row.get("is_following")),
        }
        for row in rows
    ]
    pagination = Pagination(
        total=total,
        offset=offset,
        limit=limit,
        has_more=offset + len(related) < total,
    )
    return {
        "success": True,
        "type": follow_type,
        "users": related,
        "pagination": pagination.model_dump(by_alias=True, exclude_none=True),
    }


@router.post("/follows")
async def toggle_follow(
    body: FollowToggleRequest,
    user: CurrentUserDep,
    follows: FollowRepoDep,
    users: UserRepoDep,
    notifier: NotificationServiceDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    """Follow the target user, or unfollow when already following."""
    if body.target_user_id == user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot follow yourself",
        )

    await enforce_rate_limit(limiter, user.user_id, "follows")

    if await follows.is_following(user.user_id, body.target_user_id):
        await follows.remove(user.user_id, body.target_user_id)
        await users.adjust_follow_counts(user.user_id, body.target_user_id, -1)
        is_following = False
    else:
        await follows.create(user.user_id, user.username, body.target_user_id, body.target_username)
        await users.adjust_follow_counts(user.user_id, body.target_user_id, 1)
        is_following = True
        await notifier.notify_follow(body.target_user_id, user.user_id, user.username)

    follower_count = await follows.count_followers(body.target_user_id)
    logger.info(
        "follow_toggled",
        follower_id=user.user_id,
        followed_id=body.target_user_id,
        is_following=is_following,
    )
    return {"success": True, "isFollowing": is_following, "followerCount": follower_count}


@router.put("/follows")
async def follow_status(
    body: FollowStatusRequest,
    follows: FollowRepoDep,
    viewer: OptionalUserDep,
) -> dict[str, Any]:
    is_following = False
    if viewer is not None:
        is_following = await follows.is_following(viewer.user_id, body.target_user_id)
    return {
        "success": True,
        "isFollowing": is_following,
        "stats": {
            "followerCount": await follows.count_followers(body.target_user_id),
            "followingCount": await follows.count_following(body.target_user_id),
        },
    }
