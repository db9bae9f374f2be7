"""
Sportsblock API - Authentication Routes
Session cookie management and the login flows that establish it.

Provides:
- sb_session read / create / clear
- Hive wallet challenge issuance
- Custodial (soft) registration and password login

Hive sessions are only created after the caller proves control of the
account, either with a signed challenge or a HiveSigner access token.
"""

from __future__ import annotations

from typing import Any, Literal

import structlog
from fastapi import APIRouter, HTTPException, Request, Response, status
from neo4j.exceptions import ConstraintError, DriverError, Neo4jError
from pydantic import Field

from sportsblock.api.dependencies import (
    HiveClientDep,
    RateLimiterDep,
    UserRepoDep,
    enforce_rate_limit,
)
from sportsblock.hive.client import HiveClient
from sportsblock.hive.errors import HiveAPIError
from sportsblock.hive.utils import is_valid_hive_username
from sportsblock.models.base import SportsblockModel
from sportsblock.models.user import SoftUserCreate
from sportsblock.resilience.rate_limit import get_client_identifier
from sportsblock.security.hive_challenge import (
    ChallengeError,
    generate_challenge,
    posting_keys,
    verify_challenge,
    verify_signature,
)
from sportsblock.security.hivesigner import verify_hivesigner_token
from sportsblock.security.password import (
    PasswordValidationError,
    hash_password,
    validate_password_strength,
    verify_password,
)
from sportsblock.security.session import (
    SessionData,
    clear_session_cookie,
    get_authenticated_user,
    is_session_expired,
    now_ms,
    read_session,
    set_session_cookie,
)

logger = structlog.get_logger(__name__)

router = APIRouter()

STORE_ERRORS = (Neo4jError, DriverError)


# =============================================================================
# Request Models
# =============================================================================

class SessionRequest(SportsblockModel):
    """Session creation payload. Proof fields never reach the cookie."""

    user_id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    auth_type: Literal["hive", "soft", "guest"]
    hive_username: str | None = None
    login_at: int | None = None
    challenge: str | None = None
    challenge_mac: str | None = None
    signature: str | None = None
    hivesigner_token: str | None = None
    display_name: str | None = Field(default=None, max_length=100)


class ChallengeRequest(SportsblockModel):
    username: str = Field(min_length=1, max_length=16)


class SoftLoginRequest(SportsblockModel):
    username: str = Field(min_length=1, max_length=30)
    password: str = Field(min_length=1, max_length=128)


# =============================================================================
# Helpers
# =============================================================================

def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


async def _verify_wallet_signature(body: SessionRequest, hive: HiveClient) -> None:
    """Check challenge integrity, then the signature against on-chain posting keys."""
    try:
        verify_challenge(body.challenge or "", body.challenge_mac or "", body.username)
    except ChallengeError as e:
        logger.warning("hive_challenge_rejected", username=body.username, reason=e.reason)
        raise _unauthorized(f"Challenge verification failed: {e.reason}") from e

    try:
        account = await hive.get_account(body.username)
    except HiveAPIError as e:
        logger.warning("hive_account_lookup_failed", username=body.username, error=str(e))
        raise _unauthorized("Signature verification failed: could not load account") from e
    if account is None:
        raise _unauthorized("Signature verification failed: account not found")

    try:
        verify_signature(body.challenge or "", body.signature or "", posting_keys(account))
    except ChallengeError as e:
        logger.warning("hive_signature_rejected", username=body.username, reason=e.reason)
        raise _unauthorized(f"Signature verification failed: {e.reason}") from e


# =============================================================================
# Session Endpoints
# =============================================================================

@router.get("/sb-session")
async def get_session(request: Request, response: Response, users: UserRepoDep) -> dict[str, Any]:
    """Report the current session, clearing cookies that are invalid or expired."""
    if not request.cookies.get("sb_session"):
        return {"success": True, "authenticated": False, "session": None}

    session = read_session(request)
    if session is None:
        clear_session_cookie(response)
        return {"success": True, "authenticated": False, "session": None}

    if is_session_expired(session):
        clear_session_cookie(response)
        return {
            "success": True,
            "authenticated": False,
            "session": None,
            "reason": "session_expired",
        }

    payload: dict[str, Any] = {
        "userId": session.user_id,
        "username": session.username,
        "authType": session.auth_type,
        "hiveUsername": session.hive_username,
        "loginAt": session.login_at,
    }
    if session.auth_type == "soft" and session.hive_username:
        user = await users.get_by_hive_username(session.hive_username)
        payload["keysDownloaded"] = bool(user and user.keys_downloaded)

    return {"success": True, "authenticated": True, "session": payload}


@router.post("/sb-session")
async def create_session(
    body: SessionRequest,
    request: Request,
    response: Response,
    users: UserRepoDep,
    hive: HiveClientDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    """Create or refresh the session cookie."""
    await enforce_rate_limit(limiter, get_client_identifier(request), "auth")

    session = SessionData(
        user_id=body.user_id,
        username=body.username,
        auth_type=body.auth_type,
        hive_username=body.hive_username,
    )

    if body.auth_type == "hive":
        existing = read_session(request)
        is_refresh = (
            existing is not None
            and existing.auth_type == "hive"
            and existing.username == body.username
            and not is_session_expired(existing)
        )

        if is_refresh and existing is not None:
            # Absolute expiry counts from the original login, never the client's value
            session.login_at = existing.login_at
        elif body.hivesigner_token:
            try:
                await verify_hivesigner_token(body.hivesigner_token, body.username)
            except ChallengeError as e:
                logger.warning("hivesigner_rejected", username=body.username, reason=e.reason)
                raise _unauthorized(f"HiveSigner verification failed: {e.reason}") from e
        elif body.challenge and body.challenge_mac and body.signature:
            await _verify_wallet_signature(body, hive)
        else:
            raise _unauthorized(
                "Hive auth requires verification (challenge-response or HiveSigner token)"
            )

        if not is_refresh and body.hive_username:
            try:
                await users.graduate_custodial_user(body.hive_username)
            except STORE_ERRORS as e:
                logger.warning("custodial_graduation_failed", hive_username=body.hive_username, error=str(e))

    elif body.auth_type == "soft":
        caller = await get_authenticated_user(request, users)
        if caller is None or caller.user_id != body.user_id:
            raise _unauthorized("Session identity mismatch")
        stored = await users.get_by_id(body.user_id)
        session.hive_username = stored.hive_username if stored else caller.hive_username

    if not session.login_at:
        session.login_at = now_ms()

    if body.display_name:
        try:
            await users.sync_display_name(body.username, body.display_name)
        except STORE_ERRORS as e:
            logger.warning("display_name_sync_failed", username=body.username, error=str(e))

    set_session_cookie(response, session)
    logger.info("session_created", username=session.username, auth_type=session.auth_type)
    return {"success": True, "message": "Session created"}


@router.delete("/sb-session")
async def delete_session(response: Response) -> dict[str, Any]:
    clear_session_cookie(response)
    return {"success": True, "message": "Session cleared"}


# =============================================================================
# Hive Wallet Challenge
# =============================================================================

@router.post("/hive/challenge")
async def create_hive_challenge(
    body: ChallengeRequest,
    request: Request,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    """Issue a short-lived challenge for the wallet to sign."""
    await enforce_rate_limit(limiter, get_client_identifier(request), "auth")

    username = body.username.lower()
    if not is_valid_hive_username(username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Hive username")

    issued = generate_challenge(username)
    return {"success": True, **issued.to_dict()}


# =============================================================================
# Custodial Accounts
# =============================================================================

@router.post("/soft/register", status_code=status.HTTP_201_CREATED)
async def register_soft_user(
    body: SoftUserCreate,
    request: Request,
    response: Response,
    users: UserRepoDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    """Create a custodial account and sign it in."""
    await enforce_rate_limit(limiter, get_client_identifier(request), "auth")

    try:
        validate_password_strength(body.password, username=body.username)
    except PasswordValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    if await users.username_or_email_taken(body.username, str(body.email)):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username or email already registered",
        )

    password_hash = hash_password(body.password, username=body.username, validate=False)
    try:
        user = await users.create(body, password_hash)
    except ConstraintError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username or email already registered",
        ) from e

    set_session_cookie(
        response,
        SessionData(user_id=user.id, username=user.username, auth_type="soft", login_at=now_ms()),
    )
    logger.info("soft_user_registered", user_id=user.id, username=user.username)
    return {"success": True, "user": user.model_dump(by_alias=True, mode="json")}


@router.post("/soft/login")
async def login_soft_user(
    body: SoftLoginRequest,
    request: Request,
    response: Response,
    users: UserRepoDep,
    limiter: RateLimiterDep,
) -> dict[str, Any]:
    await enforce_rate_limit(limiter, get_client_identifier(request), "auth")

    user = await users.get_credentials(body.username)
    if user is None or not verify_password(body.password, user.password_hash):
        logger.info("soft_login_failed", username=body.username)
        raise _unauthorized("Invalid username or password")

    await users.touch_last_active(user.id)
    set_session_cookie(
        response,
        SessionData(
            user_id=user.id,
            username=user.username,
            auth_type="soft",
            hive_username=user.hive_username,
            login_at=now_ms(),
        ),
    )
    logger.info("soft_user_logged_in", user_id=user.id)
    public = user.model_dump(
        by_alias=True, mode="json", exclude={"password_hash", "has_custodial_keys"}
    )
    return {"success": True, "user": public}
