"""
User Models

Custodial ("soft") users and the session identity they carry.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import EmailStr, Field, field_validator

from sportsblock.models.base import SportsblockModel, TimestampMixin, convert_neo4j_datetime


class AuthType(str, Enum):
    """How the session holder proved their identity."""

    HIVE = "hive"
    SOFT = "soft"
    GUEST = "guest"
    # Legacy cookies issued before the custodial rename
    FIREBASE = "firebase"


class SoftUserBase(SportsblockModel):
    """Base fields shared across soft user schemas."""

    username: str = Field(
        min_length=3,
        max_length=30,
        pattern=r"^[a-zA-Z0-9_-]+$",
        description="Unique username",
    )
    display_name: str | None = Field(default=None, max_length=100)
    avatar: str | None = Field(default=None, max_length=500)

    @field_validator("avatar")
    @classmethod
    def validate_avatar(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("Avatar URL must use http or https scheme")
        return v


class SoftUserCreate(SoftUserBase):
    """Registration payload."""

    email: EmailStr
    # Bcrypt truncates at 72 bytes
    password: str = Field(min_length=8, max_length=72)


class SoftUser(SoftUserBase, TimestampMixin):
    """A custodial account as exposed to the API."""

    id: str
    email: str | None = None
    is_hive_user: bool = False
    hive_username: str | None = None
    keys_downloaded: bool = False
    follower_count: int = 0
    following_count: int = 0
    last_active_at: datetime | None = None

    @field_validator("last_active_at", mode="before")
    @classmethod
    def convert_last_active(cls, v: Any) -> datetime | None:
        return None if v is None else convert_neo4j_datetime(v)


class SoftUserInDB(SoftUser):
    """Soft user including credential material. Never returned by the API."""

    password_hash: str | None = None
    has_custodial_keys: bool = False
