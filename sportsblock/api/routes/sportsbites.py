"""
Sportsblock API - Sportsbite Routes

Short-form posts (280 characters) from custodial users.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Response, status
from pydantic import Field

from sportsblock.api.dependencies import (
    AuthorDep,
    CurrentUserDep,
    RateLimiterDep,
    SettingsDep,
    SportsbiteRepoDep,
    enforce_rate_limit,
)
from sportsblock.models.base import LimitInfo, SportsblockModel
from sportsblock.models.content import SportsbiteCreate

logger = structlog.get_logger(__name__)

router = APIRouter()

FEED_CACHE_CONTROL = "public, s-maxage=30, stale-while-revalidate=60"


class SportsbiteDeleteRequest(SportsblockModel):
    sportsbite_id: str = Field(min_length=1)


@router.get("/sportsbites")
async def list_sportsbites(
    response: Response,
    sportsbites: SportsbiteRepoDep,
    limit: int = Query(default=20, ge=1, le=50),
    before: str | None = Query(default=None),
    author: str | None = Query(default=None),
) -> dict[str, Any]:
    """Newest-first sportsbite feed with an id cursor."""
    items = await sportsbites.list_feed(limit + 1, before_id=before, author=author)
    has_more = len(items) > limit
    page = items[:limit]

    response.headers["Cache-Control"] = FEED_CACHE_CONTROL
    return {
        "success": True,
        "sportsbites": [s.model_dump(by_alias=True, mode="json") for s in page],
        "hasMore": has_more,
        "nextCursor": page[-1].id if has_more and page else None,
        "count": len(page),
    }


@router.post("/sportsbites", status_code=status.HTTP_201_CREATED)
async def create_sportsbite(
    body: SportsbiteCreate,
    user: CurrentUserDep,
    author: AuthorDep,
    sportsbites: SportsbiteRepoDep,
    limiter: RateLimiterDep,
    settings: SettingsDep,
) -> dict[str, Any]:
    await enforce_rate_limit(limiter, user.user_id, "soft_sportsbites")

    cap = settings.soft_sportsbite_limit
    current = await sportsbites.count_live_by_author(user.user_id)
    if user.auth_type == "soft" and current >= cap:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": f"Sportsbite limit reached ({cap}). Connect a Hive wallet for unlimited posting.",
                "upgradeRequired": True,
                "limitInfo": LimitInfo(current=current, max=cap, remaining=0).model_dump(by_alias=True),
            },
        )

    bite = await sportsbites.create(body, author)
    current += 1
    limit_info = LimitInfo(current=current, max=cap, remaining=max(0, cap - current))
    return {
        "success": True,
        "sportsbite": bite.model_dump(by_alias=True, mode="json"),
        "limitInfo": limit_info.model_dump(by_alias=True),
    }


@router.delete("/sportsbites")
async def delete_sportsbite(
    body: SportsbiteDeleteRequest,
    user: CurrentUserDep,
    sportsbites: SportsbiteRepoDep,
) -> dict[str, Any]:
    bite = await sportsbites.get_by_id(body.sportsbite_id)
    if bite is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sportsbite not found")
    if bite.author_id != user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own sportsbites",
        )

    await sportsbites.soft_delete(body.sportsbite_id)
    logger.info("sportsbite_deleted", sportsbite_id=body.sportsbite_id, user_id=user.user_id)
    return {"success": True, "message": "Sportsbite deleted"}
