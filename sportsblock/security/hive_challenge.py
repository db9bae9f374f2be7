"""
Hive Wallet Login Challenge

Stateless challenge/response proving a caller controls a Hive account:

1. The server issues `sportsblock-auth:{username}:{nonce}:{ms}` plus an
   HMAC over it, so nothing has to be stored server-side.
2. The wallet signs the challenge with the account's posting key.
3. The server checks the HMAC and age, recovers the public key from the
   signature and requires it to be one of the account's posting keys.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Any

import structlog
from nectargraphenebase.account import PublicKey
from nectargraphenebase.ecdsasig import verify_message

from sportsblock.config import get_settings

logger = structlog.get_logger(__name__)

CHALLENGE_PREFIX = "sportsblock-auth"
CHALLENGE_TTL_MS = 5 * 60 * 1000
HMAC_DOMAIN = b"sportsblock-hive-auth-challenge-v1"
DEV_FALLBACK_SECRET = b"dev-only-insecure"
PUBLIC_KEY_PREFIX = "STM"


class ChallengeError(Exception):
    """A challenge, MAC or signature did not verify."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


@dataclass(frozen=True)
class IssuedChallenge:
    challenge: str
    mac: str
    expires_at: int     # epoch milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {"challenge": self.challenge, "mac": self.mac, "expiresAt": self.expires_at}


def _hmac_key() -> bytes:
    settings = get_settings()
    if not settings.session_secret:
        if settings.is_production:
            raise ChallengeError("SESSION_SECRET is required for challenge generation")
        return hmac.new(DEV_FALLBACK_SECRET, HMAC_DOMAIN, hashlib.sha256).digest()
    return hmac.new(settings.session_secret.encode("utf-8"), HMAC_DOMAIN, hashlib.sha256).digest()


def _mac(challenge: str) -> str:
    return hmac.new(_hmac_key(), challenge.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_challenge(username: str, now: int | None = None) -> IssuedChallenge:
    timestamp = int(time.time() * 1000) if now is None else now
    nonce = secrets.token_hex(16)
    challenge = f"{CHALLENGE_PREFIX}:{username}:{nonce}:{timestamp}"
    return IssuedChallenge(challenge, _mac(challenge), timestamp + CHALLENGE_TTL_MS)


def verify_challenge(challenge: str, mac: str, username: str, now: int | None = None) -> None:
    """
    Check format, username, MAC and age, in that order.

    Raises:
        ChallengeError: With the first failing reason
    """
    parts = challenge.split(":")
    if len(parts) != 4 or parts[0] != CHALLENGE_PREFIX:
        raise ChallengeError("Invalid challenge format")

    _, challenge_username, _, timestamp_str = parts
    if challenge_username != username:
        raise ChallengeError("Challenge username mismatch")

    if not hmac.compare_digest(mac.lower().encode("ascii", "ignore"), _mac(challenge).encode("ascii")):
        raise ChallengeError("Invalid MAC")

    try:
        timestamp = int(timestamp_str)
    except ValueError:
        raise ChallengeError("Challenge expired") from None
    now = int(time.time() * 1000) if now is None else now
    if now - timestamp > CHALLENGE_TTL_MS:
        raise ChallengeError("Challenge expired")


def posting_keys(account: dict[str, Any]) -> list[str]:
    """Public keys from an account's posting authority (condenser_api shape)."""
    posting = account.get("posting") or {}
    keys = []
    for auth in posting.get("key_auths") or []:
        if isinstance(auth, (list, tuple)) and auth:
            keys.append(str(auth[0]))
        elif isinstance(auth, dict) and auth.get("key"):
            keys.append(str(auth["key"]))
    return keys


def _signature_bytes(signature: str) -> bytes:
    try:
        return bytes.fromhex(signature)
    except ValueError:
        pass
    try:
        return base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError):
        raise ChallengeError("Signature is neither valid hex nor base64") from None


def recover_public_key(challenge: str, signature: str) -> str:
    sig_bytes = _signature_bytes(signature)
    try:
        recovered = verify_message(challenge, sig_bytes)
    except Exception as e:
        # The signature library raises bare assertion/value errors on malformed input
        raise ChallengeError(f"Signature verification failed: {e}") from e
    return str(PublicKey(recovered.hex(), prefix=PUBLIC_KEY_PREFIX))


def verify_signature(challenge: str, signature: str, authorized_keys: list[str]) -> None:
    """
    Require the signature over challenge to come from one of authorized_keys.

    Raises:
        ChallengeError: If no posting keys exist or none matches
    """
    if not authorized_keys:
        raise ChallengeError("No posting keys found on account")
    recovered = recover_public_key(challenge, signature)
    if recovered not in authorized_keys:
        logger.info("hive_signature_key_mismatch", recovered=recovered)
        raise ChallengeError("Signature does not match any posting key on account")
