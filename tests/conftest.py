"""
Sportsblock - Test Fixtures

Shared pytest fixtures for all test modules.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable, Generator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# TEST-ONLY values. Settings are cached on first import, so these must be in
# place before anything under sportsblock is imported.

if os.environ.get("APP_ENV", "") == "production":
    raise RuntimeError("Test fixtures cannot be loaded in the production environment")

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("NEO4J_URI", "bolt://localhost:7687")
os.environ.setdefault("NEO4J_USER", "neo4j")
os.environ.setdefault("NEO4J_PASSWORD", "testpassword")  # TEST ONLY
os.environ.setdefault(
    "SESSION_SECRET", "test-session-secret-0123456789-abcdefghijklmnop"
)  # TEST ONLY
os.environ.setdefault("PASSWORD_BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOW_HEADER_AUTH", "false")
os.environ.pop("SENTRY_DSN", None)
os.environ.pop("REDIS_URL", None)


# =============================================================================
# Global state resets
# =============================================================================


@pytest.fixture(autouse=True)
def reset_circuit_breakers() -> Generator[None, None, None]:
    """Hive node breakers are process-wide; start every test closed."""
    from sportsblock.resilience.circuit_breaker import get_circuit_registry

    get_circuit_registry().reset_all()
    yield
    get_circuit_registry().reset_all()


# =============================================================================
# Mock Database Client
# =============================================================================


@pytest.fixture
def mock_db_client() -> AsyncMock:
    """Create a mock Neo4j client."""
    client = AsyncMock()
    client.execute = AsyncMock(return_value=[])
    client.execute_single = AsyncMock(return_value=None)
    client.execute_write = AsyncMock(return_value=None)
    client.health_check = AsyncMock(return_value={"status": "healthy", "database": "neo4j"})
    client.connect = AsyncMock()
    client.close = AsyncMock()
    client.is_connected = True
    return client


# =============================================================================
# Test Data Generators
# =============================================================================


@pytest.fixture
def soft_user_factory() -> Callable[..., Any]:
    """Factory for SoftUser models."""
    from sportsblock.models.user import SoftUser

    def _create(
        user_id: str | None = None,
        username: str | None = None,
        **overrides: Any,
    ) -> SoftUser:
        data: dict[str, Any] = {
            "id": user_id or str(uuid4()),
            "username": username or f"fan_{uuid4().hex[:8]}",
            "email": "fan@example.com",
            "display_name": "Test Fan",
            "created_at": datetime.now(UTC).isoformat(),
            "updated_at": datetime.now(UTC).isoformat(),
        }
        data.update(overrides)
        return SoftUser.model_validate(data)

    return _create


@pytest.fixture
def soft_post_factory() -> Callable[..., Any]:
    """Factory for SoftPost models."""
    from sportsblock.models.content import SoftPost

    def _create(
        post_id: str | None = None,
        author_id: str = "user-1",
        created_at: str | None = None,
        **overrides: Any,
    ) -> SoftPost:
        data: dict[str, Any] = {
            "id": post_id or str(uuid4()),
            "author_id": author_id,
            "author_username": "fan",
            "title": "Derby day preview",
            "content": "Long form preview of the derby",
            "excerpt": "Long form preview of the derby",
            "permlink": "derby-day-preview",
            "tags": ["football"],
            "sport_category": "football",
            "created_at": created_at or datetime.now(UTC).isoformat(),
            "updated_at": created_at or datetime.now(UTC).isoformat(),
        }
        data.update(overrides)
        return SoftPost.model_validate(data)

    return _create


@pytest.fixture
def comment_factory() -> Callable[..., Any]:
    """Factory for SoftComment models."""
    from sportsblock.models.content import SoftComment

    def _create(
        comment_id: str = "comment-1",
        author_id: str = "user-1",
        **overrides: Any,
    ) -> SoftComment:
        data: dict[str, Any] = {
            "id": comment_id,
            "post_id": "post-1",
            "post_permlink": "derby-day-preview",
            "author_id": author_id,
            "author_username": "fan",
            "body": "Great preview",
        }
        data.update(overrides)
        return SoftComment.model_validate(data)

    return _create


# =============================================================================
# Mock Repositories & Services
# =============================================================================


def _repo_mock(cls: type) -> AsyncMock:
    return AsyncMock(spec=cls)


def _provide(value: Any) -> Callable[[], Any]:
    def _dependency() -> Any:
        return value

    return _dependency


@pytest.fixture
def mock_repos() -> dict[str, AsyncMock]:
    """
    Repository doubles (autospecced on the real classes) with neutral defaults.

    Tests override return values for the calls they care about.
    """
    from sportsblock.models.social import PollResults, ReactionCounts
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

    users = _repo_mock(UserRepository)
    users.get_by_id.return_value = None
    users.get_by_username.return_value = None
    users.get_by_hive_username.return_value = None
    users.get_credentials.return_value = None
    users.username_or_email_taken.return_value = False
    users.graduate_custodial_user.return_value = 0
    users.sync_display_name.return_value = None
    users.touch_last_active.return_value = None
    users.adjust_follow_counts.return_value = None

    posts = _repo_mock(PostRepository)
    posts.count_where.return_value = 0
    posts.permlinks_with_prefix.return_value = set()
    posts.increment_view_count.return_value = None
    posts.get_author_id.return_value = None
    posts.list_posts.return_value = []
    posts.adjust_counter.return_value = 0
    posts.get_by_id.return_value = None
    posts.update_fields.return_value = None
    posts.delete.return_value = True

    comments = _repo_mock(CommentRepository)
    comments.get_by_id.return_value = None
    comments.count_live_by_author.return_value = 0
    comments.list_for_post.return_value = []

    likes = _repo_mock(LikeRepository)
    likes.has_liked.return_value = False
    likes.count_for_target.return_value = 0
    likes.remove.return_value = True
    likes.adjust_target_like_count.return_value = None
    likes.get_target_context.return_value = None
    likes.batch_status.return_value = {}

    follows = _repo_mock(FollowRepository)
    follows.is_following.return_value = False
    follows.count_followers.return_value = 0
    follows.count_following.return_value = 0
    follows.list_related.return_value = []
    follows.remove.return_value = True

    notifications = _repo_mock(NotificationRepository)
    notifications.create.return_value = None
    notifications.list_for_recipient.return_value = []
    notifications.count_for_recipient.return_value = 0
    notifications.count_unread.return_value = 0
    notifications.mark_read.return_value = 0
    notifications.delete_for_recipient.return_value = 0
    notifications.milestone_exists.return_value = False

    sportsbites = _repo_mock(SportsbiteRepository)
    sportsbites.get_by_id.return_value = None
    sportsbites.count_live_by_author.return_value = 0
    sportsbites.list_feed.return_value = []

    reactions = _repo_mock(ReactionRepository)
    reactions.get_counts.return_value = ReactionCounts()
    reactions.get_user_reaction.return_value = None

    polls = _repo_mock(PollRepository)
    polls.get_results.return_value = PollResults()
    polls.get_user_vote.return_value = None

    return {
        "users": users,
        "posts": posts,
        "comments": comments,
        "likes": likes,
        "follows": follows,
        "notifications": notifications,
        "sportsbites": sportsbites,
        "reactions": reactions,
        "polls": polls,
    }


@pytest.fixture
def mock_hive() -> MagicMock:
    """HiveClient double; async methods become AsyncMocks automatically."""
    from sportsblock.hive.client import HiveClient

    hive = MagicMock(spec=HiveClient)
    hive.get_account.return_value = None
    hive.get_accounts.return_value = []
    hive.get_dynamic_global_properties.return_value = {}
    hive.get_discussions_by_created.return_value = []
    hive.get_discussions_by_author_before_date.return_value = []
    hive.ordered_nodes.return_value = ["https://api.hive.blog"]
    hive.check_node.return_value = True
    return hive


@pytest.fixture
def rate_limiter():
    """A fresh in-memory limiter with the configured per-action limits."""
    from sportsblock.config import get_settings
    from sportsblock.resilience.rate_limit import RateLimiter, build_rate_limits

    return RateLimiter(build_rate_limits(get_settings()))


# =============================================================================
# FastAPI Test Client
# =============================================================================


@pytest.fixture
def app(
    mock_db_client: AsyncMock,
    mock_repos: dict[str, AsyncMock],
    mock_hive: MagicMock,
    rate_limiter: Any,
) -> Generator[FastAPI, None, None]:
    """Create a test FastAPI application.

    Creates the app WITHOUT the production lifespan (which requires Neo4j).
    Repositories, the Hive client and the rate limiter are replaced through
    dependency overrides; authentication still runs through real session
    cookies.
    """
    from contextlib import asynccontextmanager

    from sportsblock.api import dependencies as deps
    from sportsblock.api.app import create_app, sportsblock_app

    @asynccontextmanager
    async def _test_lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
        yield

    application = create_app(
        title="Sportsblock Test",
        version="test",
        docs_url=None,
        redoc_url=None,
    )
    application.router.lifespan_context = _test_lifespan

    sportsblock_app.db_client = mock_db_client
    sportsblock_app.started_at = datetime.now(UTC)
    sportsblock_app.is_ready = True

    overrides: dict[Callable[..., Any], Any] = {
        deps.get_user_repository: mock_repos["users"],
        deps.get_post_repository: mock_repos["posts"],
        deps.get_comment_repository: mock_repos["comments"],
        deps.get_like_repository: mock_repos["likes"],
        deps.get_follow_repository: mock_repos["follows"],
        deps.get_notification_repository: mock_repos["notifications"],
        deps.get_sportsbite_repository: mock_repos["sportsbites"],
        deps.get_reaction_repository: mock_repos["reactions"],
        deps.get_poll_repository: mock_repos["polls"],
        deps.get_hive: mock_hive,
        deps.get_limiter: rate_limiter,
    }
    for dependency, value in overrides.items():
        application.dependency_overrides[dependency] = _provide(value)

    yield application

    sportsblock_app.db_client = None
    sportsblock_app.started_at = None
    sportsblock_app.is_ready = False


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a synchronous test client."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def session_cookie() -> Callable[..., str]:
    """Build an encrypted sb_session value."""
    from sportsblock.security.session import SessionData, encrypt_session, now_ms

    def _create(
        user_id: str = "user-1",
        username: str = "fan",
        auth_type: str = "soft",
        hive_username: str | None = None,
        login_at: int | None = None,
    ) -> str:
        return encrypt_session(
            SessionData(
                user_id=user_id,
                username=username,
                auth_type=auth_type,
                hive_username=hive_username,
                login_at=login_at if login_at is not None else now_ms(),
            )
        )

    return _create


@pytest.fixture
def login(client: TestClient, session_cookie: Callable[..., str]) -> Callable[..., None]:
    """Sign the test client in by planting a session cookie."""

    def _login(**kwargs: Any) -> None:
        client.cookies.set("sb_session", session_cookie(**kwargs))

    return _login
