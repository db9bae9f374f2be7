"""
Sportsblock API - Sportsbite Reaction Routes

One emoji reaction per user per sportsbite; sending the same emoji again
removes it.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Query
from pydantic import Field

from sportsblock.api.dependencies import (
    CurrentUserDep,
    OptionalUserDep,
    RateLimiterDep,
    ReactionRepoDep,
    enforce_rate_limit,
)
from sportsblock.models.base import SportsblockModel
from sportsblock.models.social import ReactionAction, ReactionEmoji
from sportsblock.repositories.reaction_repository import ReactionRepository
from sportsblock.security.session import AuthenticatedUser

router = APIRouter()


class ReactionRequest(SportsblockModel):
    sportsbite_id: str = Field(min_length=1)
    emoji: ReactionEmoji


class ReactionBatchRequest(SportsblockModel):
    sportsbite_ids: list[str] = Field(min_length=1, max_length=50)


async def _reaction_state(
    reactions: ReactionRepository,
    sportsbite_id: str,
    user: AuthenticatedUser | None,
) -> dict[str, Any]:
    counts = await reactions.get_counts(sportsbite_id)
    user_reaction = None
    if user is not None:
        user_reaction = await reactions.get_user_reaction(user.user_id, sportsbite_id)
    return {"counts": counts.model_dump(by_alias=True), "userReaction": user_reaction}


@router.get("/reactions")
async def get_reactions(
    reactions: ReactionRepoDep,
    user: OptionalUserDep,
    sportsbite_id: str = Query(alias="sportsbiteId", min_length=1),
) -> dict[str, Any]:
    state = await _reaction_state(reactions, sportsbite_id, user)
    return {"success": True, **state}


@router.post("/reactions")
async def toggle_reaction(
    body: ReactionRequest,
    user: CurrentUserDep,
    reactions: ReactionRepoDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    await enforce_rate_limit(limiter, user.user_id, "soft_reactions")

    action, counts = await reactions.toggle(user.user_id, body.sportsbite_id, body.emoji)
    return {
        "success": True,
        "action": action.value,
        "userReaction": None if action is ReactionAction.REMOVED else body.emoji,
        "counts": counts.model_dump(by_alias=True),
    }


@router.put("/reactions")
async def batch_reactions(
    body: ReactionBatchRequest,
    reactions: ReactionRepoDep,
    user: OptionalUserDep,
) -> dict[str, Any]:
    states = await asyncio.gather(
        *(_reaction_state(reactions, sid, user) for sid in body.sportsbite_ids)
    )
    return {"success": True, "results": dict(zip(body.sportsbite_ids, states))}
