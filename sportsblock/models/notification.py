"""
Notification Models
"""

from enum import Enum
from typing import Any

from pydantic import Field

from sportsblock.models.base import SportsblockModel, TimestampMixin


class NotificationType(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    REPLY = "reply"
    FOLLOW = "follow"
    MENTION = "mention"
    SYSTEM = "system"


class NotificationCreate(SportsblockModel):
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    source_user_id: str | None = None
    source_username: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class SoftNotification(NotificationCreate, TimestampMixin):
    id: str
    read: bool = False
