"""
Soft Like Repository

Likes on posts and comments. The node id is the composite
{user_id}_{target_type}_{target_id}, so one user holds at most one like
per target and re-creating is a no-op.
"""

from typing import Any

from sportsblock.models.social import LikeTargetType, SoftLike, like_id
from sportsblock.repositories.base import BaseRepository

TARGET_LABELS = {
    LikeTargetType.POST.value: "SoftPost",
    LikeTargetType.COMMENT.value: "SoftComment",
}


def stored_target_id(target_id: str) -> str:
    """Feed ids carry a soft- prefix that the stored node does not."""
    return target_id.removeprefix("soft-")


class LikeRepository(BaseRepository[SoftLike]):
    """Repository for SoftLike nodes."""

    @property
    def node_label(self) -> str:
        return "SoftLike"

    @property
    def model_class(self) -> type[SoftLike]:
        return SoftLike

    async def get(self, user_id: str, target_type: str, target_id: str) -> SoftLike | None:
        return await self.get_by_id(like_id(user_id, target_type, target_id))

    async def has_liked(self, user_id: str, target_type: str, target_id: str) -> bool:
        return await self.exists(like_id(user_id, target_type, target_id))

    async def create(
        self,
        user_id: str,
        username: str,
        target_type: str,
        target_id: str,
    ) -> SoftLike | None:
        query = """
        MERGE (l:SoftLike {id: $id})
        ON CREATE SET
            l.user_id = $user_id,
            l.username = $username,
            l.target_type = $target_type,
            l.target_id = $target_id,
            l.created_at = $now,
            l.updated_at = $now
        RETURN l {.*} AS entity
        """
        params = {
            "id": like_id(user_id, target_type, target_id),
            "user_id": user_id,
            "username": username,
            "target_type": target_type,
            "target_id": target_id,
            "now": self._now_iso(),
        }
        result = await self.client.execute_single(query, params)
        return self._to_model(result["entity"]) if result and result.get("entity") else None

    async def remove(self, user_id: str, target_type: str, target_id: str) -> bool:
        return await self.delete(like_id(user_id, target_type, target_id))

    async def count_for_target(self, target_type: str, target_id: str) -> int:
        return await self.count_where(target_type=target_type, target_id=target_id)

    async def batch_status(
        self,
        targets: list[tuple[str, str]],
        user_id: str | None,
    ) -> dict[str, dict[str, Any]]:
        """
        Like counts and the caller's like state for many targets in one query.

        Returns:
            Mapping of "type:id" to {"like_count", "has_liked"}
        """
        query = """
        UNWIND $targets AS t
        OPTIONAL MATCH (l:SoftLike {target_type: t.target_type, target_id: t.target_id})
        WITH t, count(l) AS like_count,
             sum(CASE WHEN l.user_id = $user_id THEN 1 ELSE 0 END) AS mine
        RETURN t.target_type AS target_type, t.target_id AS target_id,
               like_count, mine > 0 AS has_liked
        """
        params = {
            "targets": [{"target_type": tt, "target_id": tid} for tt, tid in targets],
            "user_id": user_id,
        }
        results = await self.client.execute(query, params)
        status = {
            f"{tt}:{tid}": {"like_count": 0, "has_liked": False} for tt, tid in targets
        }
        for row in results:
            status[f"{row['target_type']}:{row['target_id']}"] = {
                "like_count": int(row.get("like_count") or 0),
                "has_liked": bool(row.get("has_liked")) and user_id is not None,
            }
        return status

    async def adjust_target_like_count(self, target_type: str, target_id: str, delta: int) -> None:
        """Move like_count on the liked node when it is a stored soft post or comment."""
        label = TARGET_LABELS[target_type]
        await self.client.execute_write(
            f"""
            MATCH (n:{label} {{id: $id}})
            WITH n, coalesce(n.like_count, 0) + $delta AS next
            SET n.like_count = CASE WHEN next < 0 THEN 0 ELSE next END
            """,
            {"id": stored_target_id(target_id), "delta": delta},
        )

    async def get_target_context(self, target_type: str, target_id: str) -> dict[str, Any] | None:
        """
        Author and owning post of a like target.

        Returns:
            {"author_id", "post_id", "post_permlink"} or None when the target
            is not a stored soft node
        """
        stored_id = stored_target_id(target_id)
        if target_type == LikeTargetType.POST.value:
            query = """
            MATCH (p:SoftPost {id: $id})
            RETURN p.author_id AS author_id, $target_id AS post_id,
                   p.permlink AS post_permlink
            """
        else:
            query = """
            MATCH (c:SoftComment {id: $id})
            RETURN c.author_id AS author_id, c.post_id AS post_id,
                   c.post_permlink AS post_permlink
            """
        return await self.client.execute_single(query, {"id": stored_id, "target_id": target_id})
