"""
Password Hashing

bcrypt hashing for custodial (soft) accounts, plus the strength rules
applied at registration.
"""

import hmac
import re
import unicodedata

import bcrypt
import structlog

from sportsblock.config import get_settings

logger = structlog.get_logger(__name__)

PASSWORD_MIN_LENGTH = 8
# bcrypt only reads the first 72 bytes
PASSWORD_MAX_BYTES = 72

COMMON_WEAK_PASSWORDS = frozenset({
    "password", "password1", "password123", "passw0rd", "p@ssw0rd",
    "12345678", "123456789", "1234567890", "qwerty123", "qwertyuiop",
    "letmein1", "welcome1", "iloveyou1", "sunshine1", "princess1",
    "abc12345", "abcd1234", "changeme1", "trustno1", "1q2w3e4r",
    "football1", "baseball1", "soccer123", "hockey123", "basketball1",
    "yankees1", "cowboys1", "lakers123", "patriots1", "steelers1",
    "sportsblock", "sportsblock1", "sportsblock123",
})

WEAK_PATTERNS = (
    re.compile(r"^(.)\1+$"),                                   # one repeated character
    re.compile(r"^(012|123|234|345|456|567|678|789|890)+"),    # ascending digits
)


class PasswordValidationError(Exception):
    """Password does not meet requirements."""


def validate_password_strength(password: str, username: str | None = None) -> None:
    """
    Raises:
        PasswordValidationError: With the first rule the password breaks
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise PasswordValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise PasswordValidationError(f"Password cannot exceed {PASSWORD_MAX_BYTES} bytes")
    if not any(c.isupper() for c in password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        raise PasswordValidationError("Password must contain at least one digit")

    lowered = password.lower()
    if lowered in COMMON_WEAK_PASSWORDS:
        raise PasswordValidationError("Password is too common and easily guessable")
    if username and len(username) >= 3 and username.lower() in lowered:
        raise PasswordValidationError("Password cannot contain your username")
    for pattern in WEAK_PATTERNS:
        if pattern.match(lowered):
            raise PasswordValidationError("Password contains a weak pattern")


def _normalize(password: str) -> bytes:
    return unicodedata.normalize("NFKC", password).encode("utf-8")


def hash_password(password: str, username: str | None = None, validate: bool = True) -> str:
    """
    Hash a password with bcrypt at the configured cost.

    Raises:
        PasswordValidationError: If validate is set and the password is weak
    """
    if validate:
        validate_password_strength(password, username=username)
    salt = bcrypt.gensalt(rounds=get_settings().password_bcrypt_rounds)
    return bcrypt.hashpw(_normalize(password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Timing-safe check of a password against a stored bcrypt hash."""
    if not plain_password or not hashed_password:
        hmac.compare_digest("dummy", "dummy")
        return False
    try:
        return bcrypt.checkpw(_normalize(plain_password), hashed_password.encode("utf-8"))
    except (ValueError, TypeError):
        hmac.compare_digest("dummy", "dummy")
        return False
