"""
Sportsbite Reaction Repository

One Reaction node per (user, sportsbite), plus a ReactionCount node per
sportsbite holding a counter for every emoji and the total.
"""

from typing import Any

from sportsblock.models.social import (
    ReactionAction,
    ReactionCounts,
    ReactionEmoji,
    encode_sportsbite_id,
    user_sportsbite_key,
)
from sportsblock.repositories.base import BaseRepository, validate_identifier

EMOJI_FIELDS = tuple(e.value for e in ReactionEmoji)


class ReactionRepository(BaseRepository[ReactionCounts]):
    """Repository for Reaction and ReactionCount nodes."""

    @property
    def node_label(self) -> str:
        return "ReactionCount"

    @property
    def model_class(self) -> type[ReactionCounts]:
        return ReactionCounts

    async def get_counts(self, sportsbite_id: str) -> ReactionCounts:
        result = await self.client.execute_single(
            "MATCH (c:ReactionCount {id: $id}) RETURN c {.*} AS entity",
            {"id": encode_sportsbite_id(sportsbite_id)},
        )
        counts = self._to_model(result["entity"]) if result and result.get("entity") else None
        return counts or ReactionCounts()

    async def get_user_reaction(self, user_id: str, sportsbite_id: str) -> str | None:
        result = await self.client.execute_single(
            "MATCH (r:Reaction {id: $id}) RETURN r.emoji AS emoji",
            {"id": user_sportsbite_key(user_id, sportsbite_id)},
        )
        return result.get("emoji") if result else None

    async def _shift_counts(self, sportsbite_id: str, deltas: dict[str, int]) -> None:
        """Apply per-field deltas to the count node, creating it at zero and flooring at zero."""
        sets = []
        for field in deltas:
            validate_identifier(field, "field")
            sets.append(
                f"c.{field} = CASE WHEN coalesce(c.{field}, 0) + ${field} < 0 "
                f"THEN 0 ELSE coalesce(c.{field}, 0) + ${field} END"
            )
        query = f"""
        MERGE (c:ReactionCount {{id: $id}})
        ON CREATE SET c.sportsbite_id = $sportsbite_id,
                      c.fire = 0, c.shocked = 0, c.laughing = 0, c.angry = 0, c.total = 0
        SET {", ".join(sets)}
        """
        params: dict[str, Any] = {
            "id": encode_sportsbite_id(sportsbite_id),
            "sportsbite_id": sportsbite_id,
            **deltas,
        }
        await self.client.execute_write(query, params)

    async def toggle(
        self,
        user_id: str,
        sportsbite_id: str,
        emoji: str,
    ) -> tuple[ReactionAction, ReactionCounts]:
        """
        Add, swap or remove the user's reaction.

        Sending the current emoji again removes it; a different emoji swaps.
        """
        reaction_id = user_sportsbite_key(user_id, sportsbite_id)
        existing = await self.get_user_reaction(user_id, sportsbite_id)

        if existing == emoji:
            await self.client.execute_write(
                "MATCH (r:Reaction {id: $id}) DETACH DELETE r", {"id": reaction_id}
            )
            await self._shift_counts(sportsbite_id, {emoji: -1, "total": -1})
            action = ReactionAction.REMOVED
        elif existing:
            await self.client.execute_write(
                "MATCH (r:Reaction {id: $id}) SET r.emoji = $emoji, r.created_at = $now",
                {"id": reaction_id, "emoji": emoji, "now": self._now_iso()},
            )
            await self._shift_counts(sportsbite_id, {existing: -1, emoji: 1})
            action = ReactionAction.SWAPPED
        else:
            await self.client.execute_write(
                """
                MERGE (r:Reaction {id: $id})
                ON CREATE SET r.user_id = $user_id, r.sportsbite_id = $sportsbite_id,
                              r.emoji = $emoji, r.created_at = $now
                """,
                {
                    "id": reaction_id,
                    "user_id": user_id,
                    "sportsbite_id": sportsbite_id,
                    "emoji": emoji,
                    "now": self._now_iso(),
                },
            )
            await self._shift_counts(sportsbite_id, {emoji: 1, "total": 1})
            action = ReactionAction.ADDED

        self.logger.debug(
            "reaction_toggled", user_id=user_id, sportsbite_id=sportsbite_id, action=action.value
        )
        return action, await self.get_counts(sportsbite_id)
