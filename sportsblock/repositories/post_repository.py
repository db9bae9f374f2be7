"""
Soft Post Repository

Long-form posts written by custodial users before they graduate to Hive.
"""

from datetime import datetime
from typing import Any

from sportsblock.models.base import to_iso
from sportsblock.models.content import SoftPost, SoftPostCreate
from sportsblock.models.user import SoftUser
from sportsblock.repositories.base import BaseRepository, clamp_limit

# List queries skip the full body, which can be tens of kilobytes per post
POST_LIST_FIELDS = """
    .id, .author_id, .author_username, .author_display_name, .author_avatar,
    .title, .excerpt, .permlink, .tags, .sport_category, .featured_image,
    .community_id, .created_at, .updated_at, .is_published_to_hive,
    .hive_permlink, .view_count, .like_count, .comment_count
""".strip()


class PostRepository(BaseRepository[SoftPost]):
    """Repository for SoftPost nodes."""

    @property
    def node_label(self) -> str:
        return "SoftPost"

    @property
    def model_class(self) -> type[SoftPost]:
        return SoftPost

    async def create(
        self,
        data: SoftPostCreate,
        author: SoftUser,
        permlink: str,
        excerpt: str,
    ) -> SoftPost:
        post_id = self._generate_id()
        now = self._now_iso()

        query = """
        CREATE (p:SoftPost {
            id: $id,
            author_id: $author_id,
            author_username: $author_username,
            author_display_name: $author_display_name,
            author_avatar: $author_avatar,
            title: $title,
            content: $content,
            excerpt: $excerpt,
            permlink: $permlink,
            tags: $tags,
            sport_category: $sport_category,
            featured_image: $featured_image,
            community_id: $community_id,
            is_published_to_hive: false,
            hive_permlink: null,
            view_count: 0,
            like_count: 0,
            comment_count: 0,
            created_at: $now,
            updated_at: $now
        })
        RETURN p {.*} AS entity
        """
        params = {
            "id": post_id,
            "author_id": author.id,
            "author_username": author.username,
            "author_display_name": author.display_name,
            "author_avatar": author.avatar,
            "title": data.title,
            "content": data.content,
            "excerpt": excerpt,
            "permlink": permlink,
            "tags": data.tags,
            "sport_category": data.sport_category,
            "featured_image": str(data.featured_image) if data.featured_image else None,
            "community_id": data.community_id,
            "now": now,
        }

        result = await self.client.execute_single(query, params)
        post = self._to_model(result["entity"]) if result and result.get("entity") else None
        if post is None:
            raise RuntimeError(f"Failed to create soft post for {author.username}")

        self.logger.info("soft_post_created", post_id=post_id, author=author.username)
        return post

    async def permlinks_with_prefix(self, author_id: str, prefix: str) -> set[str]:
        """Every permlink of the author's that starts with prefix."""
        results = await self.client.execute(
            "MATCH (p:SoftPost {author_id: $author_id}) "
            "WHERE p.permlink STARTS WITH $prefix "
            "RETURN p.permlink AS permlink",
            {"author_id": author_id, "prefix": prefix},
        )
        return {r["permlink"] for r in results if r.get("permlink")}

    async def increment_view_count(self, post_id: str) -> SoftPost | None:
        result = await self.client.execute_single(
            "MATCH (p:SoftPost {id: $id}) "
            "SET p.view_count = coalesce(p.view_count, 0) + 1 "
            "RETURN p {.*} AS entity",
            {"id": post_id},
        )
        return self._to_model(result["entity"]) if result and result.get("entity") else None

    async def get_author_id(self, post_id: str) -> str | None:
        result = await self.client.execute_single(
            "MATCH (p:SoftPost {id: $id}) RETURN p.author_id AS author_id",
            {"id": post_id},
        )
        return result.get("author_id") if result else None

    async def list_posts(
        self,
        limit: int,
        author_id: str | None = None,
        author_username: str | None = None,
        before: datetime | None = None,
        community_id: str | None = None,
        exclude_published_to_hive: bool = False,
    ) -> list[SoftPost]:
        """
        List posts newest first.

        Args:
            limit: Maximum rows (callers pass page size + 1 to detect more)
            author_id: Restrict to one author by id
            author_username: Restrict to one author by username
            before: Only posts created strictly before this instant
            community_id: Restrict to posts filed under one community
            exclude_published_to_hive: Drop posts already mirrored on-chain
        """
        clauses: list[str] = []
        params: dict[str, Any] = {"limit": clamp_limit(limit)}

        if author_id:
            clauses.append("p.author_id = $author_id")
            params["author_id"] = author_id
        if author_username:
            clauses.append("p.author_username = $author_username")
            params["author_username"] = author_username
        if before:
            clauses.append("p.created_at < $before")
            params["before"] = to_iso(before)
        if exclude_published_to_hive:
            clauses.append("coalesce(p.is_published_to_hive, false) = false")
        if community_id:
            clauses.append("p.community_id = $community_id")
            params["community_id"] = community_id

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"""
        MATCH (p:SoftPost)
        {where}
        RETURN p {{{POST_LIST_FIELDS}}} AS entity
        ORDER BY p.created_at DESC
        LIMIT $limit
        """
        results = await self.client.execute(query, params)
        return self._entities(results)
