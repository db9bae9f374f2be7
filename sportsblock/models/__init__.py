"""
Sportsblock Models

Pydantic models for custodial users, their content and social interactions.
"""

from sportsblock.models.base import (
    CheckStatus,
    HealthStatus,
    LimitInfo,
    Pagination,
    SportsblockModel,
    TimestampMixin,
    generate_id,
    to_iso,
    utc_now,
)
from sportsblock.models.content import (
    CommentCreate,
    CommentUpdate,
    PostSource,
    SoftComment,
    SoftPost,
    SoftPostCreate,
    Sportsbite,
    SportsbiteCreate,
    UnifiedPost,
)
from sportsblock.models.notification import (
    NotificationCreate,
    NotificationType,
    SoftNotification,
)
from sportsblock.models.social import (
    LikeTargetType,
    PollResults,
    PollVoteAction,
    ReactionAction,
    ReactionCounts,
    ReactionEmoji,
    SoftFollow,
    SoftLike,
)
from sportsblock.models.user import AuthType, SoftUser, SoftUserCreate, SoftUserInDB

__all__ = [
    "AuthType",
    "CheckStatus",
    "CommentCreate",
    "CommentUpdate",
    "HealthStatus",
    "LikeTargetType",
    "LimitInfo",
    "NotificationCreate",
    "NotificationType",
    "Pagination",
    "PollResults",
    "PollVoteAction",
    "PostSource",
    "ReactionAction",
    "ReactionCounts",
    "ReactionEmoji",
    "SoftComment",
    "SoftFollow",
    "SoftLike",
    "SoftNotification",
    "SoftPost",
    "SoftPostCreate",
    "SoftUser",
    "SoftUserCreate",
    "SoftUserInDB",
    "SportsblockModel",
    "Sportsbite",
    "SportsbiteCreate",
    "TimestampMixin",
    "UnifiedPost",
    "generate_id",
    "to_iso",
    "utc_now",
]
