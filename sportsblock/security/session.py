"""
Encrypted Session Cookie

The sb_session cookie carries the signed-in identity as AES-256-GCM
ciphertext: base64(iv[16] || tag[16] || ciphertext). The key is derived
with scrypt from SESSION_SECRET, so the cookie is opaque to the browser
and any tampering fails authentication on decrypt.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Protocol

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi import Request, Response
from pydantic import ValidationError

from sportsblock.config import get_settings
from sportsblock.models.base import SportsblockModel
from sportsblock.models.user import SoftUser

logger = structlog.get_logger(__name__)

SESSION_COOKIE_NAME = "sb_session"
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32

DEV_FALLBACK_SECRET = "development-only-insecure-key"
DEV_FALLBACK_SALT = "salt"


class SessionError(Exception):
    """Session key material is unavailable."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class SessionData(SportsblockModel):
    """What the cookie stores. Serialised with camelCase keys."""

    user_id: str
    username: str
    auth_type: Literal["hive", "soft", "guest", "firebase"]
    hive_username: str | None = None
    login_at: int | None = None     # epoch milliseconds


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    username: str
    auth_type: str | None = None
    hive_username: str | None = None


class UserLookup(Protocol):
    async def get_by_id(self, entity_id: str) -> SoftUser | None: ...


# =============================================================================
# Key derivation & encryption
# =============================================================================


@lru_cache(maxsize=4)
def _derive_key(secret: str, salt: str) -> bytes:
    # n/r/p match the defaults other services use for the same cookie
    return hashlib.scrypt(
        secret.encode("utf-8"), salt=salt.encode("utf-8"), n=16384, r=8, p=1, dklen=KEY_LENGTH
    )


def get_session_key() -> bytes:
    """
    Derive the cookie key.

    Raises:
        SessionError: In production when SESSION_SECRET is not set
    """
    settings = get_settings()
    if not settings.session_secret:
        if settings.is_production:
            raise SessionError("SESSION_SECRET environment variable is required in production")
        return _derive_key(DEV_FALLBACK_SECRET, DEV_FALLBACK_SALT)
    return _derive_key(settings.session_secret, settings.session_encryption_salt)


def encrypt_session(data: SessionData) -> str:
    key = get_session_key()
    iv = os.urandom(IV_LENGTH)
    plaintext = data.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    # AESGCM appends the tag to the ciphertext; the cookie layout puts it first
    sealed = AESGCM(key).encrypt(iv, plaintext, None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(iv + tag + ciphertext).decode("ascii")


def decrypt_session(value: str | None) -> SessionData | None:
    """Decrypt and validate a cookie value. Anything malformed or tampered yields None."""
    if not value:
        return None
    try:
        combined = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(combined) < IV_LENGTH + TAG_LENGTH + 1:
        return None

    iv = combined[:IV_LENGTH]
    tag = combined[IV_LENGTH : IV_LENGTH + TAG_LENGTH]
    ciphertext = combined[IV_LENGTH + TAG_LENGTH :]
    try:
        plaintext = AESGCM(get_session_key()).decrypt(iv, ciphertext + tag, None)
    except InvalidTag:
        return None

    try:
        return SessionData.model_validate_json(plaintext)
    except ValidationError:
        return None


def now_ms() -> int:
    return int(time.time() * 1000)


def session_max_age_seconds() -> int:
    return get_settings().session_max_age_days * 24 * 60 * 60


def is_session_expired(data: SessionData, now: int | None = None) -> bool:
    """Absolute expiry measured from login_at; sessions without it never expire here."""
    if not data.login_at:
        return False
    now = now_ms() if now is None else now
    return now - data.login_at > session_max_age_seconds() * 1000


# =============================================================================
# Cookie helpers
# =============================================================================


def set_session_cookie(response: Response, data: SessionData) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=encrypt_session(data),
        max_age=session_max_age_seconds(),
        httponly=True,
        secure=get_settings().is_production,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        httponly=True,
        secure=get_settings().is_production,
        samesite="lax",
        path="/",
    )


def read_session(request: Request) -> SessionData | None:
    return decrypt_session(request.cookies.get(SESSION_COOKIE_NAME))


async def get_authenticated_user(
    request: Request,
    users: UserLookup | None = None,
) -> AuthenticatedUser | None:
    """
    Resolve the caller's identity.

    The session cookie is the trusted source. With ALLOW_HEADER_AUTH set,
    an x-user-id header naming an existing soft user is accepted instead.
    """
    session = read_session(request)
    if session is not None and not is_session_expired(session):
        return AuthenticatedUser(
            user_id=session.user_id,
            username=session.username,
            auth_type=session.auth_type,
            hive_username=session.hive_username,
        )

    if get_settings().allow_header_auth and users is not None:
        header_user_id = request.headers.get("x-user-id")
        if header_user_id:
            user = await users.get_by_id(header_user_id)
            if user is not None:
                logger.debug("header_auth_used", user_id=user.id)
                return AuthenticatedUser(
                    user_id=user.id,
                    username=user.username,
                    auth_type="soft",
                    hive_username=user.hive_username,
                )

    return None
