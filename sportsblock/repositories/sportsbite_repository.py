"""
Sportsbite Repository

Short-form posts by custodial users. Deletion is soft so replies and
reactions keep a stable target.
"""

from typing import Any

from sportsblock.models.content import DELETED_BODY, Sportsbite, SportsbiteCreate
from sportsblock.models.user import SoftUser
from sportsblock.repositories.base import BaseRepository, clamp_limit


class SportsbiteRepository(BaseRepository[Sportsbite]):
    """Repository for Sportsbite nodes."""

    @property
    def node_label(self) -> str:
        return "Sportsbite"

    @property
    def model_class(self) -> type[Sportsbite]:
        return Sportsbite

    async def create(self, data: SportsbiteCreate, author: SoftUser) -> Sportsbite:
        bite_id = self._generate_id()
        now = self._now_iso()

        query = """
        CREATE (s:Sportsbite {
            id: $id,
            author_id: $author_id,
            author_username: $author_username,
            author_display_name: $author_display_name,
            author_avatar: $author_avatar,
            body: $body,
            sport_category: $sport_category,
            images: $images,
            gifs: $gifs,
            match_thread_id: $match_thread_id,
            like_count: 0,
            comment_count: 0,
            is_deleted: false,
            created_at: $now,
            updated_at: $now
        })
        RETURN s {.*} AS entity
        """
        params = {
            "id": bite_id,
            "author_id": author.id,
            "author_username": author.username,
            "author_display_name": author.display_name,
            "author_avatar": author.avatar,
            "body": data.body,
            "sport_category": data.sport_category,
            "images": [str(u) for u in data.images],
            "gifs": [str(u) for u in data.gifs],
            "match_thread_id": data.match_thread_id,
            "now": now,
        }
        result = await self.client.execute_single(query, params)
        bite = self._to_model(result["entity"]) if result and result.get("entity") else None
        if bite is None:
            raise RuntimeError(f"Failed to create sportsbite for {author.username}")
        self.logger.info("sportsbite_created", sportsbite_id=bite_id, author=author.username)
        return bite

    async def count_live_by_author(self, author_id: str) -> int:
        return await self.count_where(author_id=author_id, is_deleted=False)

    async def list_feed(
        self,
        limit: int,
        before_id: str | None = None,
        author: str | None = None,
    ) -> list[Sportsbite]:
        """
        Newest-first feed of live sportsbites that are not match-thread replies.

        The cursor is a sportsbite id; an unknown cursor is ignored and the
        feed starts from the top.
        """
        params: dict[str, Any] = {"limit": clamp_limit(limit)}
        clauses = ["s.is_deleted = false", "s.match_thread_id IS NULL"]

        if author:
            clauses.append("s.author_username = $author")
            params["author"] = author

        cursor_match = ""
        if before_id:
            cursor_match = "OPTIONAL MATCH (cursor:Sportsbite {id: $before_id})"
            clauses.append("(cursor IS NULL OR s.created_at < cursor.created_at)")
            params["before_id"] = before_id

        query = f"""
        {cursor_match}
        MATCH (s:Sportsbite)
        WHERE {' AND '.join(clauses)}
        RETURN s {{.*}} AS entity
        ORDER BY s.created_at DESC
        LIMIT $limit
        """
        results = await self.client.execute(query, params)
        return self._entities(results)

    async def soft_delete(self, sportsbite_id: str) -> Sportsbite | None:
        return await self.update_fields(sportsbite_id, is_deleted=True, body=DELETED_BODY)
