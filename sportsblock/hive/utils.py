"""
Hive value helpers

Stateless conversions for the shapes returned by condenser_api: reputation,
assets, payout windows, resource credits, permlinks and account names.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple
from urllib.parse import urlencode

import structlog

from sportsblock.config import settings

logger = structlog.get_logger(__name__)

PAYOUT_WINDOW = timedelta(days=7)
MAX_PERMLINK_LENGTH = 255

ASSET_PATTERN = re.compile(r"^([\d.]+)\s+([A-Z]+)$")
USERNAME_SEGMENT = re.compile(r"^[a-z][a-z0-9-]*[a-z0-9]$")
USERNAME_CHARS = re.compile(r"^[a-z][a-z0-9.-]{2,15}$")


class Asset(NamedTuple):
    amount: float
    symbol: str


# =============================================================================
# Reputation & permlinks
# =============================================================================


def calculate_reputation(raw: str | int | float | None) -> float:
    """
    Convert raw reputation (rshares-like) into the familiar 25-based score.

    Empty input and "0" mean "unknown" (0); a numeric zero is a fresh
    account (25).
    """
    if raw is None or raw == "" or raw == "0":
        return 0
    rep = int(raw) if isinstance(raw, str) else raw
    if rep == 0:
        return 25
    level = math.log10(abs(rep)) - 9
    if rep < 0:
        level = -level
    return max(0.0, level * 9 + 25)


def generate_permlink(title: str) -> str:
    permlink = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    permlink = re.sub(r"\s+", "-", permlink)
    permlink = re.sub(r"-+", "-", permlink)
    permlink = permlink[:MAX_PERMLINK_LENGTH]
    return permlink.strip("-")


def generate_unique_permlink(title: str, exists: Callable[[str], bool]) -> str:
    """Append -1, -2, ... to the title's permlink until exists() says it is free."""
    base = generate_permlink(title)
    candidate = base
    counter = 1
    while exists(candidate):
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate


# =============================================================================
# Assets & payouts
# =============================================================================


def parse_asset(value: str | None) -> Asset:
    """Parse "1.000 HIVE". Unparseable input gives Asset(0, "")."""
    if not value or not isinstance(value, str):
        return Asset(0.0, "")
    match = ASSET_PATTERN.match(value.strip())
    if not match:
        return Asset(0.0, "")
    try:
        return Asset(float(match.group(1)), match.group(2))
    except ValueError:
        return Asset(0.0, "")


def format_asset(amount: float, symbol: str, precision: int = 3) -> str:
    return f"{amount:.{precision}f} {symbol}"


def calculate_pending_payout(post: dict[str, Any]) -> float:
    """Pending plus already-paid author and curator payouts, in HBD."""
    return (
        parse_asset(post.get("pending_payout_value")).amount
        + parse_asset(post.get("total_payout_value")).amount
        + parse_asset(post.get("curator_payout_value")).amount
    )


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def parse_hive_timestamp(value: str | datetime | None) -> datetime | None:
    """Nodes return naive UTC timestamps like 2024-01-01T12:00:00."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    try:
        return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def is_in_payout_window(created: datetime | str, now: datetime | None = None) -> bool:
    created_at = parse_hive_timestamp(created)
    if created_at is None:
        return False
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    return now - created_at < PAYOUT_WINDOW


def get_time_until_payout(created: datetime | str, now: datetime | None = None) -> float:
    """Seconds until the 7-day payout, floored at 0."""
    created_at = parse_hive_timestamp(created)
    if created_at is None:
        return 0.0
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    return max(0.0, (created_at + PAYOUT_WINDOW - now).total_seconds())


def format_time_until_payout(seconds: float) -> str:
    if seconds <= 0:
        return "Paid out"
    total_minutes = int(seconds // 60)
    days, rem_minutes = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rem_minutes, 60)
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


# =============================================================================
# Votes & metadata
# =============================================================================


def calculate_vote_weight(percent: int | float) -> float:
    """Chain vote percent (10000 = 100%) as a display percentage."""
    return min(100.0, percent / 100)


def get_user_vote(post: dict[str, Any], username: str) -> dict[str, Any] | None:
    for vote in post.get("active_votes") or []:
        if vote.get("voter") == username:
            return vote
    return None


def parse_json_metadata(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("json_metadata_parse_failed", error=str(e), metadata=str(raw)[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


def is_from_sportsblock_app(post: dict[str, Any], community_id: str | None = None) -> bool:
    community_id = community_id or settings.community_id
    metadata = parse_json_metadata(post.get("json_metadata"))

    app = metadata.get("app")
    if isinstance(app, str) and app.startswith("sportsblock"):
        return True
    if post.get("category") == community_id or metadata.get("community") == community_id:
        return True
    tags = metadata.get("tags")
    return isinstance(tags, list) and "sportsblock" in tags


def get_sport_category(post: dict[str, Any]) -> str | None:
    metadata = parse_json_metadata(post.get("json_metadata"))
    category = metadata.get("sport_category")
    return category if isinstance(category, str) and category else None


# =============================================================================
# Resource credits & vesting
# =============================================================================


def calculate_rc_percentage(current: float | str, maximum: float | str) -> float:
    current_f = float(current)
    maximum_f = float(maximum)
    if maximum_f == 0:
        return 0.0
    return min(100.0, max(0.0, current_f / maximum_f * 100))


_RC_SUFFIXES = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K"))


def format_resource_credits(value: float | str) -> str:
    amount = float(value)
    for threshold, suffix in _RC_SUFFIXES:
        if abs(amount) >= threshold:
            return f"{amount / threshold:.1f}{suffix}"
    return f"{amount:.0f}"


def has_enough_rc(percentage: float, threshold: float = 10) -> bool:
    return percentage >= threshold


def vesting_shares_to_hive(
    shares: float | str,
    total_shares: float | str,
    total_fund: float | str,
) -> float:
    total = float(total_shares)
    if total == 0:
        return 0.0
    return float(shares) / total * float(total_fund)


# =============================================================================
# URLs, names & text
# =============================================================================


def generate_hive_url(author: str, permlink: str) -> str:
    return f"https://hive.blog/@{author}/{permlink}"


def hivesigner_vote_url(voter: str, author: str, permlink: str, weight: int) -> str:
    query = urlencode({"voter": voter, "author": author, "permlink": permlink, "weight": weight})
    return f"https://hivesigner.com/sign/vote?{query}"


def hivesigner_comment_url(
    author: str,
    title: str,
    body: str,
    json_metadata: str,
    permlink: str,
    parent_author: str = "",
    parent_permlink: str = "",
) -> str:
    query = urlencode(
        {
            "parent_author": parent_author,
            "parent_permlink": parent_permlink,
            "author": author,
            "permlink": permlink,
            "title": title,
            "body": body,
            "json_metadata": json_metadata,
        }
    )
    return f"https://hivesigner.com/sign/comment?{query}"


def is_valid_hive_username(name: str | None) -> bool:
    """
    Hive account rules: 3-16 chars of [a-z0-9.-], starting with a letter;
    each dot-separated segment is 3+ chars, starts with a letter and ends
    with a letter or digit.
    """
    if not name or not USERNAME_CHARS.match(name):
        return False
    return all(len(segment) >= 3 and USERNAME_SEGMENT.match(segment) for segment in name.split("."))


def truncate_text(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[: max(0, length - 3)] + "..."
