"""
Content Models

Soft posts, sportsbites, comments and the unified Hive + soft post shape.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field, HttpUrl

from sportsblock.models.base import SportsblockModel, TimestampMixin

SPORTSBITE_MAX_CHARS = 280
COMMENT_MAX_CHARS = 10000
DELETED_BODY = "[deleted]"


# ═══════════════════════════════════════════════════════════════
# SOFT POSTS
# ═══════════════════════════════════════════════════════════════

class SoftPostCreate(SportsblockModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1, max_length=65535)
    tags: list[str] = Field(default_factory=list, max_length=10)
    sport_category: str | None = Field(default=None, max_length=50)
    featured_image: HttpUrl | None = None
    community_id: str | None = None


class SoftPostUpdate(SportsblockModel):
    """Partial edit; omitted fields keep their stored value."""

    title: str | None = Field(default=None, max_length=255)
    content: str | None = Field(default=None, max_length=65535)
    tags: list[str] | None = Field(default=None, max_length=10)


class SoftPost(SportsblockModel, TimestampMixin):
    id: str
    author_id: str
    author_username: str = "unknown"
    author_display_name: str | None = None
    author_avatar: str | None = None
    title: str
    content: str = ""
    excerpt: str | None = None
    permlink: str
    tags: list[str] = Field(default_factory=list)
    sport_category: str | None = None
    featured_image: str | None = None
    community_id: str | None = None
    is_published_to_hive: bool = False
    hive_permlink: str | None = None
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0


# ═══════════════════════════════════════════════════════════════
# SPORTSBITES
# ═══════════════════════════════════════════════════════════════

class SportsbiteCreate(SportsblockModel):
    body: str = Field(min_length=1, max_length=SPORTSBITE_MAX_CHARS)
    sport_category: str | None = None
    images: list[HttpUrl] = Field(default_factory=list, max_length=4)
    gifs: list[HttpUrl] = Field(default_factory=list, max_length=2)
    match_thread_id: str | None = None


class Sportsbite(SportsblockModel, TimestampMixin):
    id: str
    author_id: str
    author_username: str
    author_display_name: str | None = None
    author_avatar: str | None = None
    body: str
    sport_category: str | None = None
    images: list[str] = Field(default_factory=list)
    gifs: list[str] = Field(default_factory=list)
    match_thread_id: str | None = None
    like_count: int = 0
    comment_count: int = 0
    is_deleted: bool = False


# ═══════════════════════════════════════════════════════════════
# COMMENTS
# ═══════════════════════════════════════════════════════════════

class CommentCreate(SportsblockModel):
    post_id: str = Field(min_length=1)
    post_permlink: str = Field(min_length=1)
    body: str = Field(min_length=1, max_length=COMMENT_MAX_CHARS)
    parent_comment_id: str | None = None


class CommentUpdate(SportsblockModel):
    comment_id: str = Field(min_length=1)
    body: str = Field(min_length=1, max_length=COMMENT_MAX_CHARS)


class SoftComment(SportsblockModel, TimestampMixin):
    id: str
    post_id: str
    post_permlink: str
    author_id: str
    author_username: str
    author_display_name: str | None = None
    author_avatar: str | None = None
    parent_comment_id: str | None = None
    body: str
    like_count: int = 0
    is_deleted: bool = False


# ═══════════════════════════════════════════════════════════════
# UNIFIED FEED
# ═══════════════════════════════════════════════════════════════

class PostSource(str, Enum):
    HIVE = "hive"
    SOFT = "soft"


class ActiveVoteSummary(SportsblockModel):
    voter: str
    weight: int = 0
    percent: int = 0


class UnifiedPost(SportsblockModel):
    """A post from either store, normalised for the feed."""

    id: str
    author: str
    permlink: str
    title: str
    body: str
    excerpt: str | None = None
    created: datetime
    tags: list[str] = Field(default_factory=list)
    sport_category: str | None = None
    featured_image: str | None = None
    author_display_name: str | None = None
    author_avatar: str | None = None
    view_count: int | None = None
    like_count: int | None = None
    net_votes: int | None = None
    children: int | None = None
    pending_payout: str | None = None
    source: PostSource
    is_hive_post: bool
    is_soft_post: bool
    soft_post_id: str | None = None
    active_votes: list[ActiveVoteSummary] | None = None
