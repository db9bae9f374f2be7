"""
Sportsblock Services Module

- NotificationService: fan-out of social interactions into notifications
- FeedService: merged Hive + soft post pages
"""

from .feed import FeedPage, FeedService, hive_post_to_unified, soft_post_to_unified
from .notifications import NotificationService

__all__ = [
    "FeedPage",
    "FeedService",
    "NotificationService",
    "hive_post_to_unified",
    "soft_post_to_unified",
]
