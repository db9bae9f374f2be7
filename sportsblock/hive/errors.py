"""
Hive error types
"""

from typing import Any


class HiveError(Exception):
    """A Hive operation failed; code is one of the HIVE_ERROR_* values below."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class HiveAPIError(HiveError):
    """Every configured Hive API node failed for a call."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, code="UPSTREAM_ERROR", details=details)


# (substring in the node's error message, code, user-facing message)
HIVE_ERROR_PATTERNS: tuple[tuple[str, str, str], ...] = (
    (
        "Insufficient Resource Credits",
        "INSUFFICIENT_RC",
        "Insufficient Resource Credits. You need more HIVE POWER or delegation to perform this action.",
    ),
    (
        "missing required posting authority",
        "MISSING_AUTHORITY",
        "Missing posting authority. Please ensure you have the correct posting key.",
    ),
    (
        "Duplicate",
        "DUPLICATE_POST",
        "This post already exists. Please change the title or wait a moment.",
    ),
    (
        "Account does not exist",
        "ACCOUNT_NOT_FOUND",
        "Account does not exist on the Hive blockchain.",
    ),
)


def handle_hive_error(error: BaseException | str) -> HiveError:
    """Map a raw node error onto a HiveError with a stable code."""
    if isinstance(error, HiveError):
        return error
    message = str(error)
    for needle, code, friendly in HIVE_ERROR_PATTERNS:
        if needle in message:
            return HiveError(friendly, code, error)
    return HiveError(message or "An unknown error occurred", "UNKNOWN_ERROR", error)
