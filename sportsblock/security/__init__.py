"""
Sportsblock Security Module

Session cookies, wallet login verification, passwords and CSRF checks.
"""

from .csrf import validate_csrf_origin
from .hive_challenge import (
    ChallengeError,
    IssuedChallenge,
    generate_challenge,
    posting_keys,
    verify_challenge,
    verify_signature,
)
from .hivesigner import verify_hivesigner_token
from .password import (
    PasswordValidationError,
    hash_password,
    validate_password_strength,
    verify_password,
)
from .session import (
    SESSION_COOKIE_NAME,
    AuthenticatedUser,
    SessionData,
    SessionError,
    clear_session_cookie,
    decrypt_session,
    encrypt_session,
    get_authenticated_user,
    is_session_expired,
    read_session,
    set_session_cookie,
)

__all__ = [
    # Session
    "SESSION_COOKIE_NAME",
    "AuthenticatedUser",
    "SessionData",
    "SessionError",
    "clear_session_cookie",
    "decrypt_session",
    "encrypt_session",
    "get_authenticated_user",
    "is_session_expired",
    "read_session",
    "set_session_cookie",
    # Wallet login
    "ChallengeError",
    "IssuedChallenge",
    "generate_challenge",
    "posting_keys",
    "verify_challenge",
    "verify_hivesigner_token",
    "verify_signature",
    # Passwords
    "PasswordValidationError",
    "hash_password",
    "validate_password_strength",
    "verify_password",
    # CSRF
    "validate_csrf_origin",
]
