"""
Notification Service

Fans likes, comments, replies and follows out into in-app notifications for
custodial users. Delivery is best effort: a failed write is logged and never
fails the interaction that triggered it.
"""

from typing import Any

import structlog
from neo4j.exceptions import DriverError, Neo4jError

from sportsblock.models.notification import NotificationCreate, NotificationType, SoftNotification
from sportsblock.repositories.like_repository import LikeRepository
from sportsblock.repositories.notification_repository import NotificationRepository

logger = structlog.get_logger(__name__)

POPULAR_POST_THRESHOLD = 10
POPULAR_MILESTONE = "popular"


class NotificationService:
    """Builds and stores notifications on behalf of the social routes."""

    def __init__(self, notifications: NotificationRepository, likes: LikeRepository | None = None):
        self.notifications = notifications
        self.likes = likes

    async def notify(
        self,
        recipient_id: str | None,
        notification_type: NotificationType,
        title: str,
        message: str,
        source_user_id: str | None = None,
        source_username: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> SoftNotification | None:
        """
        Store one notification.

        Returns None without writing when there is no recipient or the
        recipient is the actor.
        """
        if not recipient_id or recipient_id == source_user_id:
            return None

        payload = NotificationCreate(
            recipient_id=recipient_id,
            type=notification_type,
            title=title,
            message=message,
            source_user_id=source_user_id,
            source_username=source_username,
            data=data or {},
        )
        try:
            notification = await self.notifications.create(payload)
        except (Neo4jError, DriverError) as e:
            logger.warning(
                "notification_create_failed",
                recipient_id=recipient_id,
                type=payload.type,
                error=str(e),
            )
            return None

        logger.debug("notification_created", recipient_id=recipient_id, type=payload.type)
        return notification

    async def notify_like(
        self,
        user_id: str,
        username: str,
        target_type: str,
        target_id: str,
        post_permlink: str | None = None,
    ) -> SoftNotification | None:
        """post_permlink is used when the stored target carries none."""
        if self.likes is None:
            return None
        context = await self.likes.get_target_context(target_type, target_id)
        if not context:
            return None

        noun = "post" if target_type == "post" else "comment"
        return await self.notify(
            context.get("author_id"),
            NotificationType.LIKE,
            "New Like",
            f"{username} liked your {noun}",
            source_user_id=user_id,
            source_username=username,
            data={
                "targetType": target_type,
                "targetId": target_id,
                "postId": context.get("post_id"),
                "postPermlink": context.get("post_permlink") or post_permlink,
            },
        )

    async def notify_popular_post(
        self,
        target_id: str,
        like_count: int,
    ) -> SoftNotification | None:
        """
        Tell a post author their post crossed the popularity threshold.

        Only fires at exactly the threshold and only once per post.
        """
        if like_count != POPULAR_POST_THRESHOLD or self.likes is None:
            return None
        context = await self.likes.get_target_context("post", target_id)
        if not context or not context.get("author_id"):
            return None

        author_id = context["author_id"]
        if await self.notifications.milestone_exists(author_id, POPULAR_MILESTONE, target_id):
            return None

        return await self.notify(
            author_id,
            NotificationType.SYSTEM,
            "Your post is trending!",
            f"Your post has reached {like_count}+ likes! Connect to Hive to start earning rewards.",
            data={
                "targetType": "post",
                "targetId": target_id,
                "postId": target_id,
                "postPermlink": context.get("post_permlink"),
                "milestone": POPULAR_MILESTONE,
                "likeCount": like_count,
            },
        )

    async def notify_comment(
        self,
        post_author_id: str | None,
        user_id: str,
        username: str,
        post_id: str,
        post_permlink: str,
        comment_id: str,
    ) -> SoftNotification | None:
        return await self.notify(
            post_author_id,
            NotificationType.COMMENT,
            "New Comment",
            f"{username} commented on your post",
            source_user_id=user_id,
            source_username=username,
            data={"postId": post_id, "postPermlink": post_permlink, "commentId": comment_id},
        )

    async def notify_reply(
        self,
        parent_author_id: str | None,
        user_id: str,
        username: str,
        post_id: str,
        post_permlink: str,
        comment_id: str,
        parent_comment_id: str,
    ) -> SoftNotification | None:
        return await self.notify(
            parent_author_id,
            NotificationType.REPLY,
            "New Reply",
            f"{username} replied to your comment",
            source_user_id=user_id,
            source_username=username,
            data={
                "postId": post_id,
                "postPermlink": post_permlink,
                "commentId": comment_id,
                "parentCommentId": parent_comment_id,
            },
        )

    async def notify_follow(
        self,
        followed_id: str,
        user_id: str,
        username: str,
    ) -> SoftNotification | None:
        return await self.notify(
            followed_id,
            NotificationType.FOLLOW,
            "New Follower",
            f"{username} started following you",
            source_user_id=user_id,
            source_username=username,
        )
