"""
Unified Feed Service

Merges on-chain Hive posts with custodial soft posts into one newest-first
page. Either source may fail; the other is still returned.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
import structlog
from neo4j.exceptions import DriverError, Neo4jError

from sportsblock.config import get_settings
from sportsblock.hive.client import HiveClient
from sportsblock.hive.errors import HiveAPIError
from sportsblock.hive.utils import get_sport_category, parse_hive_timestamp, parse_json_metadata
from sportsblock.models.base import to_iso, utc_now
from sportsblock.models.content import ActiveVoteSummary, PostSource, SoftPost, UnifiedPost
from sportsblock.monitoring.logging import log_duration
from sportsblock.repositories.post_repository import PostRepository
from sportsblock.repositories.user_repository import UserRepository
from sportsblock.resilience.retry import RetryableHTTPError, RetryOptions, retry_with_backoff

logger = structlog.get_logger(__name__)

EXCERPT_LENGTH = 200
MAX_ACTIVE_VOTES = 10
MARKDOWN_CHARS = re.compile(r"[#*_`~\[\]()>]")

HIVE_FEED_RETRY = RetryOptions(max_retries=1, initial_delay=0.5, max_delay=2.0, backoff_multiplier=2.0)
HIVE_FETCH_ERRORS = (HiveAPIError, RetryableHTTPError, httpx.HTTPError)
STORE_FETCH_ERRORS = (Neo4jError, DriverError)


@dataclass
class FeedPage:
    posts: list[UnifiedPost]
    has_more: bool
    next_cursor: str | None
    sources: dict[str, int] = field(default_factory=dict)
    is_soft_user: bool | None = None


def soft_post_to_unified(post: SoftPost) -> UnifiedPost:
    return UnifiedPost(
        id=f"soft-{post.id}",
        author=post.author_username or "unknown",
        permlink=post.permlink,
        title=post.title,
        body=post.excerpt or "",
        excerpt=post.excerpt,
        created=post.created_at,
        tags=post.tags or [],
        sport_category=post.sport_category,
        featured_image=post.featured_image,
        author_display_name=post.author_display_name,
        author_avatar=post.author_avatar,
        view_count=post.view_count or 0,
        like_count=post.like_count or 0,
        source=PostSource.SOFT,
        is_hive_post=False,
        is_soft_post=True,
        soft_post_id=post.id,
    )


def plain_excerpt(body: str) -> str:
    """Markdown-stripped first characters of a post body."""
    excerpt = MARKDOWN_CHARS.sub("", body)[:EXCERPT_LENGTH].strip()
    return excerpt + "..." if len(body) > EXCERPT_LENGTH else excerpt


def hive_post_to_unified(post: dict[str, Any]) -> UnifiedPost:
    metadata = parse_json_metadata(post.get("json_metadata"))
    images = metadata.get("image")
    featured_image = images[0] if isinstance(images, list) and images else None
    tags = metadata.get("tags")
    body = post.get("body") or ""

    votes = [
        ActiveVoteSummary(
            voter=v.get("voter", ""),
            weight=int(v.get("weight") or 0),
            percent=int(v.get("percent") or 0),
        )
        for v in (post.get("active_votes") or [])[:MAX_ACTIVE_VOTES]
    ]

    return UnifiedPost(
        id=f"hive-{post['author']}-{post['permlink']}",
        author=post["author"],
        permlink=post["permlink"],
        title=post.get("title") or "",
        body=body,
        excerpt=plain_excerpt(body),
        created=parse_hive_timestamp(post.get("created")) or utc_now(),
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
        sport_category=get_sport_category(post),
        featured_image=featured_image,
        net_votes=post.get("net_votes"),
        children=post.get("children"),
        pending_payout=post.get("pending_payout_value"),
        source=PostSource.HIVE,
        is_hive_post=True,
        is_soft_post=False,
        active_votes=votes,
    )


def merge_page(posts: list[UnifiedPost], limit: int, before: datetime | None = None) -> FeedPage:
    """
    Sort newest first and cut one page.

    Hive nodes cannot filter by date, so Hive posts at or after the cursor
    are dropped here; soft posts were already filtered by the query.
    """
    if before is not None:
        posts = [p for p in posts if p.source != PostSource.HIVE.value or p.created < before]
    posts = sorted(posts, key=lambda p: p.created, reverse=True)

    has_more = len(posts) > limit
    page = posts[:limit]
    next_cursor = to_iso(page[-1].created) if has_more and page else None
    sources = {
        "hive": sum(1 for p in page if p.source == PostSource.HIVE.value),
        "soft": sum(1 for p in page if p.source == PostSource.SOFT.value),
    }
    return FeedPage(posts=page, has_more=has_more, next_cursor=next_cursor, sources=sources)


class FeedService:
    """Builds unified post pages from the soft store and the Hive API."""

    def __init__(self, posts: PostRepository, users: UserRepository, hive: HiveClient):
        self.posts = posts
        self.users = users
        self.hive = hive

    async def _soft_posts(
        self,
        limit: int,
        before: datetime | None,
        exclude_published: bool,
        author_id: str | None = None,
        author_username: str | None = None,
    ) -> list[UnifiedPost]:
        try:
            posts = await self.posts.list_posts(
                limit,
                author_id=author_id,
                author_username=author_username,
                before=before,
                exclude_published_to_hive=exclude_published,
            )
        except STORE_FETCH_ERRORS as e:
            logger.warning("soft_posts_fetch_failed", username=author_username, error=str(e))
            return []
        return [soft_post_to_unified(p) for p in posts]

    async def _hive_user_posts(self, username: str, limit: int) -> list[UnifiedPost]:
        try:
            posts = await retry_with_backoff(
                lambda: self.hive.get_discussions_by_author_before_date(username, limit),
                HIVE_FEED_RETRY,
            )
        except HIVE_FETCH_ERRORS as e:
            logger.warning("hive_posts_fetch_failed", username=username, error=str(e))
            return []
        return [hive_post_to_unified(p) for p in posts]

    async def _hive_feed_posts(self, limit: int, sport_category: str | None) -> list[UnifiedPost]:
        tag = get_settings().community_id
        try:
            with log_duration(logger, "hive_feed_fetch", level="debug", tag=tag):
                posts = await retry_with_backoff(
                    lambda: self.hive.get_discussions_by_created(tag, limit),
                    HIVE_FEED_RETRY,
                )
        except HIVE_FETCH_ERRORS as e:
            logger.warning("hive_feed_unavailable", error=str(e))
            return []
        if sport_category:
            posts = [p for p in posts if get_sport_category(p) == sport_category]
        return [hive_post_to_unified(p) for p in posts]

    async def unified_posts(
        self,
        limit: int = 20,
        username: str | None = None,
        author_id: str | None = None,
        before: datetime | None = None,
        include_hive: bool = True,
        include_soft: bool = True,
        sport_category: str | None = None,
    ) -> FeedPage:
        """
        Fetch one page of the merged feed.

        Args:
            limit: Page size
            username: Restrict to one author across both sources
            author_id: Restrict to one soft author; Hive is never queried
            before: Cursor, only posts created strictly before it
            include_hive: Query Hive, and hide soft posts already mirrored there
            include_soft: Query the soft store
            sport_category: Restrict the general feed to one sport
        """
        # One extra row tells us whether another page exists
        fetch_limit = limit + 1

        if author_id:
            posts: list[UnifiedPost] = []
            if include_soft:
                posts = await self._soft_posts(fetch_limit, before, include_hive, author_id=author_id)
            page = merge_page(posts, limit)
            page.sources = {"hive": 0, "soft": len(page.posts)}
            return page

        if username:
            return await self._user_feed(username, limit, fetch_limit, before, include_hive, include_soft)

        tasks = []
        if include_soft:
            tasks.append(self._soft_posts(fetch_limit, before, include_hive))
        if include_hive:
            tasks.append(self._hive_feed_posts(limit, sport_category))
        results = await asyncio.gather(*tasks)

        merged = [p for batch in results for p in batch]
        if sport_category:
            merged = [
                p for p in merged
                if p.source == PostSource.HIVE.value or p.sport_category == sport_category
            ]
        return merge_page(merged, limit, before)

    async def _user_feed(
        self,
        username: str,
        limit: int,
        fetch_limit: int,
        before: datetime | None,
        include_hive: bool,
        include_soft: bool,
    ) -> FeedPage:
        profile_task = asyncio.ensure_future(self.users.get_by_username(username))

        async def hive_posts() -> list[UnifiedPost]:
            try:
                profile = await profile_task
            except STORE_FETCH_ERRORS as e:
                logger.warning("soft_profile_lookup_failed", username=username, error=str(e))
                profile = None
            if profile is not None and not profile.is_hive_user:
                return []
            return await self._hive_user_posts(username, limit)

        tasks = []
        if include_soft:
            tasks.append(
                self._soft_posts(fetch_limit, before, include_hive, author_username=username)
            )
        if include_hive:
            tasks.append(hive_posts())
        results = await asyncio.gather(*tasks)

        try:
            profile = await profile_task
        except STORE_FETCH_ERRORS:
            profile = None

        page = merge_page([p for batch in results for p in batch], limit, before)
        page.is_soft_user = profile is not None and not profile.is_hive_user
        return page
