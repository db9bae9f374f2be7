"""
Sportsblock API - FastAPI Dependencies
Dependency injection for API routes.

Provides:
- Database client injection
- Repository and service instances
- Current user extraction from the session cookie
- Hive client and rate limiter access
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from sportsblock.config import Settings, get_settings
from sportsblock.database.client import Neo4jClient
from sportsblock.hive.client import HiveClient, get_hive_client
from sportsblock.models.user import SoftUser
from sportsblock.repositories import (
    CommentRepository,
    FollowRepository,
    LikeRepository,
    NotificationRepository,
    PollRepository,
    PostRepository,
    ReactionRepository,
    SportsbiteRepository,
    UserRepository,
)
from sportsblock.resilience.rate_limit import RateLimiter, get_rate_limiter, rate_limit_headers
from sportsblock.security.session import AuthenticatedUser, get_authenticated_user
from sportsblock.services.feed import FeedService
from sportsblock.services.notifications import NotificationService

# =============================================================================
# Settings
# =============================================================================

def get_app_settings() -> Settings:
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


# =============================================================================
# Database
# =============================================================================

async def get_db_client(request: Request) -> Neo4jClient:
    """Get the connected database client held by the application container."""
    container = getattr(request.app.state, "sportsblock", None)
    db_client = getattr(container, "db_client", None)
    if db_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not connected",
        )
    return db_client


DbClientDep = Annotated[Neo4jClient, Depends(get_db_client)]


# =============================================================================
# Repositories
# =============================================================================

async def get_user_repository(db: DbClientDep) -> UserRepository:
    return UserRepository(db)


async def get_post_repository(db: DbClientDep) -> PostRepository:
    return PostRepository(db)


async def get_sportsbite_repository(db: DbClientDep) -> SportsbiteRepository:
    return SportsbiteRepository(db)


async def get_comment_repository(db: DbClientDep) -> CommentRepository:
    return CommentRepository(db)


async def get_like_repository(db: DbClientDep) -> LikeRepository:
    return LikeRepository(db)


async def get_follow_repository(db: DbClientDep) -> FollowRepository:
    return FollowRepository(db)


async def get_notification_repository(db: DbClientDep) -> NotificationRepository:
    return NotificationRepository(db)


async def get_reaction_repository(db: DbClientDep) -> ReactionRepository:
    return ReactionRepository(db)


async def get_poll_repository(db: DbClientDep) -> PollRepository:
    return PollRepository(db)


UserRepoDep = Annotated[UserRepository, Depends(get_user_repository)]
PostRepoDep = Annotated[PostRepository, Depends(get_post_repository)]
SportsbiteRepoDep = Annotated[SportsbiteRepository, Depends(get_sportsbite_repository)]
CommentRepoDep = Annotated[CommentRepository, Depends(get_comment_repository)]
LikeRepoDep = Annotated[LikeRepository, Depends(get_like_repository)]
FollowRepoDep = Annotated[FollowRepository, Depends(get_follow_repository)]
NotificationRepoDep = Annotated[NotificationRepository, Depends(get_notification_repository)]
ReactionRepoDep = Annotated[ReactionRepository, Depends(get_reaction_repository)]
PollRepoDep = Annotated[PollRepository, Depends(get_poll_repository)]


# =============================================================================
# Hive
# =============================================================================

def get_hive() -> HiveClient:
    return get_hive_client()


HiveClientDep = Annotated[HiveClient, Depends(get_hive)]


# =============================================================================
# Services
# =============================================================================

async def get_notification_service(
    notifications: NotificationRepoDep,
    likes: LikeRepoDep,
) -> NotificationService:
    return NotificationService(notifications, likes)


async def get_feed_service(
    posts: PostRepoDep,
    users: UserRepoDep,
    hive: HiveClientDep,
) -> FeedService:
    return FeedService(posts, users, hive)


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
FeedServiceDep = Annotated[FeedService, Depends(get_feed_service)]


# =============================================================================
# Authentication
# =============================================================================

async def get_current_user_optional(
    request: Request,
    users: UserRepoDep,
) -> AuthenticatedUser | None:
    """Resolve the caller from the session cookie (or header auth when enabled)."""
    return await get_authenticated_user(request, users)


async def get_current_user(
    user: Annotated[AuthenticatedUser | None, Depends(get_current_user_optional)],
) -> AuthenticatedUser:
    """Require an authenticated caller."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


OptionalUserDep = Annotated[AuthenticatedUser | None, Depends(get_current_user_optional)]
CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]


async def get_author(user: CurrentUserDep, users: UserRepoDep) -> SoftUser:
    """
    The caller as a content author.

    Soft users carry their stored profile (display name, avatar). Wallet
    users have no stored record, so only the session identity is used.
    """
    profile = await users.get_by_id(user.user_id)
    if profile is not None:
        return profile
    return SoftUser.model_construct(
        id=user.user_id,
        username=user.username,
        display_name=None,
        avatar=None,
        is_hive_user=user.auth_type == "hive",
        hive_username=user.hive_username,
    )


AuthorDep = Annotated[SoftUser, Depends(get_author)]


# =============================================================================
# Rate limiting
# =============================================================================

def get_limiter() -> RateLimiter:
    return get_rate_limiter()


RateLimiterDep = Annotated[RateLimiter, Depends(get_limiter)]


async def enforce_rate_limit(limiter: RateLimiter, identifier: str, action: str) -> None:
    """
    Count one request against an action limit.

    Raises:
        HTTPException: 429 with rate limit headers once the window is full
    """
    result = await limiter.check(identifier, action)
    if not result.success:
        retry_after = result.retry_after()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Rate limit exceeded",
                "message": f"Too many requests. Please try again in {retry_after} seconds.",
                "retryAfter": retry_after,
            },
            headers={**rate_limit_headers(result), "Retry-After": str(retry_after)},
        )
