"""
Sportsbite Poll Repository

Two-option polls. PollVote holds one user's choice; PollResult holds the
per-option tallies for a sportsbite.
"""

from sportsblock.models.social import (
    PollResults,
    PollVoteAction,
    encode_sportsbite_id,
    user_sportsbite_key,
)
from sportsblock.repositories.base import BaseRepository


def option_field(option: int) -> str:
    return f"option{option}_count"


class PollRepository(BaseRepository[PollResults]):
    """Repository for PollVote and PollResult nodes."""

    @property
    def node_label(self) -> str:
        return "PollResult"

    @property
    def model_class(self) -> type[PollResults]:
        return PollResults

    async def get_results(self, sportsbite_id: str) -> PollResults:
        result = await self.client.execute_single(
            "MATCH (p:PollResult {id: $id}) RETURN p {.*} AS entity",
            {"id": encode_sportsbite_id(sportsbite_id)},
        )
        results = self._to_model(result["entity"]) if result and result.get("entity") else None
        return results or PollResults()

    async def get_user_vote(self, user_id: str, sportsbite_id: str) -> int | None:
        result = await self.client.execute_single(
            "MATCH (v:PollVote {id: $id}) RETURN v.option AS option",
            {"id": user_sportsbite_key(user_id, sportsbite_id)},
        )
        if not result or result.get("option") is None:
            return None
        return int(result["option"])

    async def vote(
        self,
        user_id: str,
        sportsbite_id: str,
        option: int,
    ) -> tuple[PollVoteAction, PollResults]:
        """
        Record a vote. Re-voting the same option is a no-op; a different
        option moves the vote without changing the total.
        """
        existing = await self.get_user_vote(user_id, sportsbite_id)
        if existing == option:
            return PollVoteAction.UNCHANGED, await self.get_results(sportsbite_id)

        vote_id = user_sportsbite_key(user_id, sportsbite_id)
        now = self._now_iso()
        new_field = option_field(option)

        if existing is None:
            tally = f"p.{new_field} = coalesce(p.{new_field}, 0) + 1, p.total_votes = coalesce(p.total_votes, 0) + 1"
            action = PollVoteAction.VOTED
        else:
            old_field = option_field(existing)
            tally = (
                f"p.{new_field} = coalesce(p.{new_field}, 0) + 1, "
                f"p.{old_field} = CASE WHEN coalesce(p.{old_field}, 0) > 0 "
                f"THEN p.{old_field} - 1 ELSE 0 END"
            )
            action = PollVoteAction.CHANGED

        query = f"""
        MERGE (v:PollVote {{id: $vote_id}})
        ON CREATE SET v.user_id = $user_id, v.sportsbite_id = $sportsbite_id, v.created_at = $now
        SET v.option = $option, v.updated_at = $now
        MERGE (p:PollResult {{id: $result_id}})
        ON CREATE SET p.sportsbite_id = $sportsbite_id,
                      p.option0_count = 0, p.option1_count = 0, p.total_votes = 0
        SET {tally}
        """
        await self.client.execute_write(
            query,
            {
                "vote_id": vote_id,
                "result_id": encode_sportsbite_id(sportsbite_id),
                "user_id": user_id,
                "sportsbite_id": sportsbite_id,
                "option": option,
                "now": now,
            },
        )
        return action, await self.get_results(sportsbite_id)
