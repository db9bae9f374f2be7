"""
Soft Follow Repository
"""

from typing import Any

from sportsblock.models.social import SoftFollow, follow_id
from sportsblock.repositories.base import BaseRepository, clamp_limit


class FollowRepository(BaseRepository[SoftFollow]):
    """Repository for SoftFollow nodes keyed by {follower_id}_{followed_id}."""

    @property
    def node_label(self) -> str:
        return "SoftFollow"

    @property
    def model_class(self) -> type[SoftFollow]:
        return SoftFollow

    async def is_following(self, follower_id: str, followed_id: str) -> bool:
        if follower_id == followed_id:
            return False
        return await self.exists(follow_id(follower_id, followed_id))

    async def create(
        self,
        follower_id: str,
        follower_username: str,
        followed_id: str,
        followed_username: str,
    ) -> SoftFollow | None:
        query = """
        MERGE (f:SoftFollow {id: $id})
        ON CREATE SET
            f.follower_id = $follower_id,
            f.follower_username = $follower_username,
            f.followed_id = $followed_id,
            f.followed_username = $followed_username,
            f.created_at = $now,
            f.updated_at = $now
        RETURN f {.*} AS entity
        """
        params = {
            "id": follow_id(follower_id, followed_id),
            "follower_id": follower_id,
            "follower_username": follower_username,
            "followed_id": followed_id,
            "followed_username": followed_username,
            "now": self._now_iso(),
        }
        result = await self.client.execute_single(query, params)
        return self._to_model(result["entity"]) if result and result.get("entity") else None

    async def remove(self, follower_id: str, followed_id: str) -> bool:
        return await self.delete(follow_id(follower_id, followed_id))

    async def count_followers(self, user_id: str) -> int:
        return await self.count_where(followed_id=user_id)

    async def count_following(self, user_id: str) -> int:
        return await self.count_where(follower_id=user_id)

    async def list_related(
        self,
        user_id: str,
        followers: bool,
        limit: int,
        offset: int,
        viewer_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Page through a user's followers (or the users they follow).

        Each row carries the related user and whether the viewer follows them.
        """
        anchor = "followed_id" if followers else "follower_id"
        related = "follower" if followers else "followed"
        query = f"""
        MATCH (f:SoftFollow {{{anchor}: $user_id}})
        WITH f ORDER BY f.created_at DESC SKIP $offset LIMIT $limit
        OPTIONAL MATCH (mine:SoftFollow {{follower_id: $viewer_id, followed_id: f.{related}_id}})
        RETURN f.id AS id,
               f.{related}_id AS user_id,
               f.{related}_username AS username,
               f.created_at AS created_at,
               mine IS NOT NULL AND f.{related}_id <> $viewer_id AS is_following
        """
        params = {
            "user_id": user_id,
            "offset": max(0, offset),
            "limit": clamp_limit(limit),
            "viewer_id": viewer_id,
        }
        return await self.client.execute(query, params)
