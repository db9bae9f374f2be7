"""
Sportsblock API - Comment Routes

Comments on soft posts, threaded one level through parent_comment_id.
Deletion is soft: the node stays with its body replaced.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from pydantic import Field

from sportsblock.api.dependencies import (
    AuthorDep,
    CommentRepoDep,
    CurrentUserDep,
    NotificationServiceDep,
    PostRepoDep,
    RateLimiterDep,
    SettingsDep,
    enforce_rate_limit,
)
from sportsblock.models.base import LimitInfo, SportsblockModel
from sportsblock.models.content import CommentCreate, CommentUpdate, SoftComment
from sportsblock.repositories.like_repository import stored_target_id

logger = structlog.get_logger(__name__)

router = APIRouter()


class CommentDeleteRequest(SportsblockModel):
    comment_id: str = Field(min_length=1)


def _dump(comment: SoftComment) -> dict[str, Any]:
    return comment.model_dump(by_alias=True, mode="json")


async def _own_comment(comments: CommentRepoDep, comment_id: str, user_id: str) -> SoftComment:
    comment = await comments.get_by_id(comment_id)
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    if comment.author_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only modify your own comments",
        )
    return comment


@router.get("/comments")
async def list_comments(
    comments: CommentRepoDep,
    post_id: str | None = Query(default=None, alias="postId"),
    post_permlink: str | None = Query(default=None, alias="postPermlink"),
    parent_comment_id: str | None = Query(default=None, alias="parentCommentId"),
    limit: int = Query(default=50, ge=1, le=100),
) -> dict[str, Any]:
    """List live comments on a post, oldest first."""
    if not post_id and not post_permlink:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="postId or postPermlink is required",
        )

    items = await comments.list_for_post(
        post_id=post_id,
        post_permlink=post_permlink,
        parent_comment_id=parent_comment_id,
        limit=limit,
    )
    return {"success": True, "comments": [_dump(c) for c in items], "count": len(items)}


@router.post("/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    body: CommentCreate,
    user: CurrentUserDep,
    author: AuthorDep,
    comments: CommentRepoDep,
    posts: PostRepoDep,
    notifier: NotificationServiceDep,
    limiter: RateLimiterDep,
    settings: SettingsDep,
) -> dict[str, Any]:
    """
    Comment on a post or reply to a comment.

    Custodial accounts are capped at a fixed number of live comments.
    """
    await enforce_rate_limit(limiter, user.user_id, "comments")

    if user.auth_type == "soft":
        current = await comments.count_live_by_author(user.user_id)
        cap = settings.soft_comment_limit
        if current >= cap:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": f"Comment limit reached ({cap}). Connect a Hive wallet to keep commenting.",
                    "upgradeRequired": True,
                    "limitInfo": LimitInfo(current=current, max=cap, remaining=0).model_dump(
                        by_alias=True
                    ),
                },
            )

    comment = await comments.create(body, author)

    stored_post_id = stored_target_id(body.post_id)
    post_author_id = await posts.get_author_id(stored_post_id)
    if post_author_id is not None:
        await posts.adjust_counter(stored_post_id, "comment_count", 1)
        await notifier.notify_comment(
            post_author_id,
            user.user_id,
            user.username,
            body.post_id,
            body.post_permlink,
            comment.id,
        )

    if body.parent_comment_id:
        parent = await comments.get_by_id(body.parent_comment_id)
        if parent is not None and parent.author_id != post_author_id:
            await notifier.notify_reply(
                parent.author_id,
                user.user_id,
                user.username,
                body.post_id,
                body.post_permlink,
                comment.id,
                body.parent_comment_id,
            )

    return {"success": True, "comment": _dump(comment)}


@router.patch("/comments")
async def update_comment(
    body: CommentUpdate,
    user: CurrentUserDep,
    comments: CommentRepoDep,
) -> dict[str, Any]:
    comment = await _own_comment(comments, body.comment_id, user.user_id)
    if comment.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot edit a deleted comment",
        )

    updated = await comments.update_body(body.comment_id, body.body)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return {"success": True, "comment": _dump(updated)}


@router.delete("/comments")
async def delete_comment(
    body: CommentDeleteRequest,
    user: CurrentUserDep,
    comments: CommentRepoDep,
    posts: PostRepoDep,
) -> dict[str, Any]:
    comment = await _own_comment(comments, body.comment_id, user.user_id)
    if comment.is_deleted:
        return {"success": True, "message": "Comment already deleted"}

    await comments.soft_delete(body.comment_id)
    await posts.adjust_counter(stored_target_id(comment.post_id), "comment_count", -1)

    logger.info("comment_deleted", comment_id=body.comment_id, user_id=user.user_id)
    return {"success": True, "message": "Comment deleted"}
