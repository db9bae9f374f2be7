"""
Social Interaction Models

Likes, follows, sportsbite reactions and poll votes. All of them are keyed
by deterministic composite ids so a toggle is idempotent per user/target.
"""

from enum import Enum

from sportsblock.models.base import SportsblockModel, TimestampMixin


class LikeTargetType(str, Enum):
    POST = "post"
    COMMENT = "comment"


class ReactionEmoji(str, Enum):
    FIRE = "fire"
    SHOCKED = "shocked"
    LAUGHING = "laughing"
    ANGRY = "angry"


class ReactionAction(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    SWAPPED = "swapped"


class PollVoteAction(str, Enum):
    VOTED = "voted"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


def like_id(user_id: str, target_type: str, target_id: str) -> str:
    return f"{user_id}_{target_type}_{target_id}"


def follow_id(follower_id: str, followed_id: str) -> str:
    return f"{follower_id}_{followed_id}"


def encode_sportsbite_id(sportsbite_id: str) -> str:
    """Hive sportsbite ids are author/permlink; slashes are not allowed in keys."""
    return sportsbite_id.replace("/", "__")


def user_sportsbite_key(user_id: str, sportsbite_id: str) -> str:
    return f"{user_id}__{encode_sportsbite_id(sportsbite_id)}"


class SoftLike(SportsblockModel, TimestampMixin):
    id: str
    user_id: str
    username: str
    target_type: LikeTargetType
    target_id: str


class SoftFollow(SportsblockModel, TimestampMixin):
    id: str
    follower_id: str
    follower_username: str
    followed_id: str
    followed_username: str


class ReactionCounts(SportsblockModel):
    fire: int = 0
    shocked: int = 0
    laughing: int = 0
    angry: int = 0
    total: int = 0


class PollResults(SportsblockModel):
    option0_count: int = 0
    option1_count: int = 0
    total_votes: int = 0
