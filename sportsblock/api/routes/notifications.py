"""
Sportsblock API - Notification Routes

All operations are scoped to the caller's own notifications.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import Field

from sportsblock.api.dependencies import CurrentUserDep, NotificationRepoDep
from sportsblock.models.base import Pagination, SportsblockModel

router = APIRouter()


class MarkReadRequest(SportsblockModel):
    notification_ids: list[str] | None = Field(default=None, min_length=1, max_length=100)
    mark_all_read: bool = False


class DeleteNotificationsRequest(SportsblockModel):
    notification_ids: list[str] | None = Field(default=None, min_length=1, max_length=100)
    delete_all_read: bool = False


@router.get("/notifications")
async def list_notifications(
    user: CurrentUserDep,
    notifications: NotificationRepoDep,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
) -> dict[str, Any]:
    """The caller's notifications, newest first."""
    items = await notifications.list_for_recipient(
        user.user_id, limit=limit, offset=offset, unread_only=unread_only
    )
    unread_count = await notifications.count_unread(user.user_id)
    total = unread_count if unread_only else await notifications.count_for_recipient(user.user_id)

    pagination = Pagination(
        total=total,
        offset=offset,
        limit=limit,
        has_more=offset + len(items) < total,
        unread_count=unread_count,
    )
    return {
        "success": True,
        "notifications": [n.model_dump(by_alias=True, mode="json") for n in items],
        "pagination": pagination.model_dump(by_alias=True),
    }


@router.post("/notifications")
async def mark_notifications_read(
    body: MarkReadRequest,
    user: CurrentUserDep,
    notifications: NotificationRepoDep,
) -> dict[str, Any]:
    if body.mark_all_read:
        updated = await notifications.mark_read(user.user_id)
    elif body.notification_ids:
        updated = await notifications.mark_read(user.user_id, body.notification_ids)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide notificationIds or markAllRead",
        )

    unread_count = await notifications.count_unread(user.user_id)
    return {"success": True, "updatedCount": updated, "unreadCount": unread_count}


@router.delete("/notifications")
async def delete_notifications(
    body: DeleteNotificationsRequest,
    user: CurrentUserDep,
    notifications: NotificationRepoDep,
) -> dict[str, Any]:
    if body.notification_ids:
        deleted = await notifications.delete_for_recipient(user.user_id, body.notification_ids)
    elif body.delete_all_read:
        deleted = await notifications.delete_for_recipient(user.user_id)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide notificationIds or deleteAllRead",
        )

    return {"success": True, "deletedCount": deleted}
