"""
Sportsblock API - Sportsbite Poll Vote Routes
"""

from __future__ import annotations

import asyncio
from typing import Any, Literal

from fastapi import APIRouter, Query
from pydantic import Field

from sportsblock.api.dependencies import (
    CurrentUserDep,
    OptionalUserDep,
    PollRepoDep,
    RateLimiterDep,
    enforce_rate_limit,
)
from sportsblock.models.base import SportsblockModel
from sportsblock.repositories.poll_repository import PollRepository
from sportsblock.security.session import AuthenticatedUser

router = APIRouter()


class PollVoteRequest(SportsblockModel):
    sportsbite_id: str = Field(min_length=1)
    option: Literal[0, 1]


class PollBatchRequest(SportsblockModel):
    sportsbite_ids: list[str] = Field(min_length=1, max_length=50)


async def _poll_state(
    polls: PollRepository,
    sportsbite_id: str,
    user: AuthenticatedUser | None,
) -> dict[str, Any]:
    results = await polls.get_results(sportsbite_id)
    user_vote = None
    if user is not None:
        user_vote = await polls.get_user_vote(user.user_id, sportsbite_id)
    return {
        "results": results.model_dump(by_alias=True),
        "userVote": user_vote,
        "hasVoted": user_vote is not None,
    }


@router.get("/poll-votes")
async def get_poll(
    polls: PollRepoDep,
    user: OptionalUserDep,
    sportsbite_id: str = Query(alias="sportsbiteId", min_length=1),
) -> dict[str, Any]:
    state = await _poll_state(polls, sportsbite_id, user)
    return {"success": True, **state}


@router.post("/poll-votes")
async def cast_poll_vote(
    body: PollVoteRequest,
    user: CurrentUserDep,
    polls: PollRepoDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    """Vote, or move an existing vote to the other option."""
    await enforce_rate_limit(limiter, user.user_id, "soft_poll_votes")

    action, results = await polls.vote(user.user_id, body.sportsbite_id, body.option)
    return {
        "success": True,
        "action": action.value,
        "userVote": body.option,
        "results": results.model_dump(by_alias=True),
    }


@router.put("/poll-votes")
async def batch_poll_status(
    body: PollBatchRequest,
    polls: PollRepoDep,
    user: OptionalUserDep,
) -> dict[str, Any]:
    states = await asyncio.gather(*(_poll_state(polls, sid, user) for sid in body.sportsbite_ids))
    return {"success": True, "results": dict(zip(body.sportsbite_ids, states))}
