"""
Soft Comment Repository
"""

from typing import Any

from sportsblock.models.content import DELETED_BODY, CommentCreate, SoftComment
from sportsblock.models.user import SoftUser
from sportsblock.repositories.base import BaseRepository, clamp_limit


class CommentRepository(BaseRepository[SoftComment]):
    """Repository for SoftComment nodes."""

    @property
    def node_label(self) -> str:
        return "SoftComment"

    @property
    def model_class(self) -> type[SoftComment]:
        return SoftComment

    async def create(self, data: CommentCreate, author: SoftUser) -> SoftComment:
        comment_id = self._generate_id()
        now = self._now_iso()

        query = """
        CREATE (c:SoftComment {
            id: $id,
            post_id: $post_id,
            post_permlink: $post_permlink,
            author_id: $author_id,
            author_username: $author_username,
            author_display_name: $author_display_name,
            author_avatar: $author_avatar,
            parent_comment_id: $parent_comment_id,
            body: $body,
            like_count: 0,
            is_deleted: false,
            created_at: $now,
            updated_at: $now
        })
        RETURN c {.*} AS entity
        """
        params = {
            "id": comment_id,
            "post_id": data.post_id,
            "post_permlink": data.post_permlink,
            "author_id": author.id,
            "author_username": author.username,
            "author_display_name": author.display_name,
            "author_avatar": author.avatar,
            "parent_comment_id": data.parent_comment_id or None,
            "body": data.body,
            "now": now,
        }
        result = await self.client.execute_single(query, params)
        comment = self._to_model(result["entity"]) if result and result.get("entity") else None
        if comment is None:
            raise RuntimeError(f"Failed to create comment on {data.post_id}")
        self.logger.info("comment_created", comment_id=comment_id, post_id=data.post_id)
        return comment

    async def count_live_by_author(self, author_id: str) -> int:
        return await self.count_where(author_id=author_id, is_deleted=False)

    async def list_for_post(
        self,
        post_id: str | None = None,
        post_permlink: str | None = None,
        parent_comment_id: str | None = None,
        limit: int = 50,
    ) -> list[SoftComment]:
        """
        Live comments on a post, oldest first.

        Args:
            parent_comment_id: None for every comment, "" for top-level only,
                otherwise replies to that comment
        """
        clauses = ["c.is_deleted = false"]
        params: dict[str, Any] = {"limit": clamp_limit(limit)}

        if post_id:
            clauses.append("c.post_id = $post_id")
            params["post_id"] = post_id
        else:
            clauses.append("c.post_permlink = $post_permlink")
            params["post_permlink"] = post_permlink

        if parent_comment_id == "":
            clauses.append("c.parent_comment_id IS NULL")
        elif parent_comment_id is not None:
            clauses.append("c.parent_comment_id = $parent_comment_id")
            params["parent_comment_id"] = parent_comment_id

        query = f"""
        MATCH (c:SoftComment)
        WHERE {' AND '.join(clauses)}
        RETURN c {{.*}} AS entity
        ORDER BY c.created_at ASC
        LIMIT $limit
        """
        results = await self.client.execute(query, params)
        return self._entities(results)

    async def update_body(self, comment_id: str, body: str) -> SoftComment | None:
        return await self.update_fields(comment_id, body=body)

    async def soft_delete(self, comment_id: str) -> SoftComment | None:
        return await self.update_fields(comment_id, is_deleted=True, body=DELETED_BODY)
