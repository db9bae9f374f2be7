"""
Base Models and Common Types

Foundation classes for all Sportsblock models. Field names are snake_case in
Python and in Neo4j; the HTTP wire format is camelCase through the alias
generator, matching what the web client sends and expects.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """Fixed-width ISO8601 so stored timestamps sort lexicographically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def convert_neo4j_datetime(value: Any) -> datetime:
    """Convert a Neo4j DateTime, ISO string or naive datetime to aware UTC."""
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
    if hasattr(value, "to_native"):
        return convert_neo4j_datetime(value.to_native())
    if isinstance(value, str):
        return convert_neo4j_datetime(datetime.fromisoformat(value.replace("Z", "+00:00")))
    return value


def generate_id() -> str:
    return str(uuid4())


class SportsblockModel(BaseModel):
    """Base model for all Sportsblock entities."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class TimestampMixin(BaseModel):
    """Mixin providing created_at and updated_at fields."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def convert_datetime(cls, v: Any) -> datetime:
        return convert_neo4j_datetime(v)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class CheckStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class Pagination(SportsblockModel):
    """Offset pagination block returned by list endpoints."""

    total: int
    offset: int
    limit: int
    has_more: bool
    unread_count: int | None = None


class LimitInfo(SportsblockModel):
    """Custodial account quota usage."""

    current: int
    max: int
    remaining: int
