"""
Sportsblock Repositories

Data access layer for Neo4j operations.
"""

from sportsblock.repositories.base import BaseRepository
from sportsblock.repositories.comment_repository import CommentRepository
from sportsblock.repositories.follow_repository import FollowRepository
from sportsblock.repositories.like_repository import LikeRepository
from sportsblock.repositories.notification_repository import NotificationRepository
from sportsblock.repositories.poll_repository import PollRepository
from sportsblock.repositories.post_repository import PostRepository
from sportsblock.repositories.reaction_repository import ReactionRepository
from sportsblock.repositories.sportsbite_repository import SportsbiteRepository
from sportsblock.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "CommentRepository",
    "FollowRepository",
    "LikeRepository",
    "NotificationRepository",
    "PollRepository",
    "PostRepository",
    "ReactionRepository",
    "SportsbiteRepository",
    "UserRepository",
]
