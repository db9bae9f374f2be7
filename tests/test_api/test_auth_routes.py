"""
Authentication route tests

Session cookie lifecycle, wallet proof requirements and custodial
registration/login.
"""

from unittest.mock import AsyncMock

import pytest

from sportsblock.security.hive_challenge import ChallengeError, generate_challenge
from sportsblock.security.password import hash_password
from sportsblock.security.session import decrypt_session, now_ms

SESSION_URL = "/api/v1/auth/sb-session"


def session_from(response):
    # Starlette quotes cookie values containing '/' or '='
    return decrypt_session(response.cookies["sb_session"].strip('"'))


class TestGetSession:
    """Tests for GET /sb-session."""

    def test_anonymous(self, client):
        response = client.get(SESSION_URL)
        assert response.status_code == 200
        assert response.json() == {"success": True, "authenticated": False, "session": None}

    def test_authenticated(self, client, login):
        login(user_id="user-1", username="fan")

        data = client.get(SESSION_URL).json()

        assert data["authenticated"] is True
        assert data["session"]["userId"] == "user-1"
        assert data["session"]["authType"] == "soft"

    def test_garbage_cookie_is_cleared(self, client):
        client.cookies.set("sb_session", "garbage")

        response = client.get(SESSION_URL)

        assert response.json()["authenticated"] is False
        assert "Max-Age=0" in response.headers["set-cookie"]

    def test_expired_cookie(self, client, login):
        login(login_at=1)

        data = client.get(SESSION_URL).json()
        assert data["authenticated"] is False
        assert data["reason"] == "session_expired"

    def test_keys_downloaded_for_custodial_hive_user(self, client, login, mock_repos, soft_user_factory):
        mock_repos["users"].get_by_hive_username.return_value = soft_user_factory(
            "user-1", "fan", hive_username="fan-hive", keys_downloaded=True
        )
        login(hive_username="fan-hive")

        assert client.get(SESSION_URL).json()["session"]["keysDownloaded"] is True


class TestCreateSession:
    """Tests for POST /sb-session."""

    def test_hive_requires_proof(self, client):
        response = client.post(
            SESSION_URL,
            json={"userId": "hive-alice", "username": "alice", "authType": "hive"},
        )

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "UNAUTHORIZED"
        assert "requires verification" in body["error"]

    def test_hive_with_bad_challenge(self, client):
        issued = generate_challenge("bob")
        response = client.post(
            SESSION_URL,
            json={
                "userId": "hive-alice",
                "username": "alice",
                "authType": "hive",
                "challenge": issued.challenge,
                "challengeMac": issued.mac,
                "signature": "00" * 65,
            },
        )

        assert response.status_code == 401
        assert "Challenge username mismatch" in response.json()["error"]

    def test_hive_signature(self, client, mock_hive, mock_repos, monkeypatch):
        issued = generate_challenge("alice")
        mock_hive.get_account.return_value = {"posting": {"key_auths": [["STM6abc", 1]]}}
        checked = []
        monkeypatch.setattr(
            "sportsblock.api.routes.auth.verify_signature",
            lambda challenge, signature, keys: checked.append(keys),
        )

        response = client.post(
            SESSION_URL,
            json={
                "userId": "hive-alice",
                "username": "alice",
                "authType": "hive",
                "hiveUsername": "alice",
                "challenge": issued.challenge,
                "challengeMac": issued.mac,
                "signature": "00" * 65,
            },
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Session created"}
        session = session_from(response)
        assert session.auth_type == "hive"
        assert session.login_at is not None
        assert checked == [["STM6abc"]]
        mock_repos["users"].graduate_custodial_user.assert_awaited_once_with("alice")

    def test_hive_signature_unknown_account(self, client, mock_hive):
        issued = generate_challenge("alice")
        mock_hive.get_account.return_value = None

        response = client.post(
            SESSION_URL,
            json={
                "userId": "hive-alice",
                "username": "alice",
                "authType": "hive",
                "challenge": issued.challenge,
                "challengeMac": issued.mac,
                "signature": "00" * 65,
            },
        )

        assert response.status_code == 401
        assert "account not found" in response.json()["error"]

    def test_hivesigner_token(self, client, monkeypatch):
        verify = AsyncMock(return_value=None)
        monkeypatch.setattr("sportsblock.api.routes.auth.verify_hivesigner_token", verify)

        response = client.post(
            SESSION_URL,
            json={"userId": "hive-alice", "username": "alice", "authType": "hive", "hivesignerToken": "tok"},
        )

        assert response.status_code == 200
        verify.assert_awaited_once_with("tok", "alice")

    def test_hivesigner_rejected(self, client, monkeypatch):
        verify = AsyncMock(side_effect=ChallengeError("HiveSigner token username mismatch"))
        monkeypatch.setattr("sportsblock.api.routes.auth.verify_hivesigner_token", verify)

        response = client.post(
            SESSION_URL,
            json={"userId": "hive-alice", "username": "alice", "authType": "hive", "hivesignerToken": "tok"},
        )

        assert response.status_code == 401
        assert "HiveSigner verification failed" in response.json()["error"]

    def test_hive_refresh_keeps_login_time(self, client, login):
        original_login = now_ms() - 60_000
        login(user_id="hive-alice", username="alice", auth_type="hive", login_at=original_login)

        response = client.post(
            SESSION_URL,
            json={"userId": "hive-alice", "username": "alice", "authType": "hive", "loginAt": 1},
        )

        assert response.status_code == 200
        assert session_from(response).login_at == original_login

    def test_soft_requires_matching_identity(self, client, login):
        login(user_id="user-1")

        response = client.post(
            SESSION_URL,
            json={"userId": "user-2", "username": "other", "authType": "soft"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Session identity mismatch"

    def test_soft_refresh_uses_stored_hive_username(self, client, login, mock_repos, soft_user_factory):
        login(user_id="user-1")
        mock_repos["users"].get_by_id.return_value = soft_user_factory(
            "user-1", "fan", hive_username="fan-hive"
        )

        response = client.post(
            SESSION_URL,
            json={"userId": "user-1", "username": "fan", "authType": "soft", "hiveUsername": "someone-else"},
        )

        assert response.status_code == 200
        assert session_from(response).hive_username == "fan-hive"

    def test_invalid_payload(self, client):
        response = client.post(SESSION_URL, json={"username": "alice"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_delete(self, client, login):
        login()
        response = client.delete(SESSION_URL)

        assert response.json() == {"success": True, "message": "Session cleared"}
        assert "Max-Age=0" in response.headers["set-cookie"]


class TestChallenge:
    """Tests for POST /hive/challenge."""

    def test_issue(self, client):
        data = client.post("/api/v1/auth/hive/challenge", json={"username": "Alice"}).json()

        assert data["success"] is True
        assert data["challenge"].startswith("sportsblock-auth:alice:")
        assert len(data["mac"]) == 64
        assert data["expiresAt"] > 0

    def test_invalid_username(self, client):
        response = client.post("/api/v1/auth/hive/challenge", json={"username": "a"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid Hive username"

    def test_rate_limited(self, client, rate_limiter):
        limit = rate_limiter.limits["auth"].limit
        for _ in range(limit):
            client.post("/api/v1/auth/hive/challenge", json={"username": "alice"})

        response = client.post("/api/v1/auth/hive/challenge", json={"username": "alice"})

        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "RATE_LIMITED"
        assert body["retryAfter"] >= 1
        assert "Retry-After" in response.headers
        assert response.headers["X-RateLimit-Remaining"] == "0"


class TestSoftAccounts:
    """Tests for custodial registration and login."""

    @pytest.fixture
    def registration(self):
        return {"username": "new_fan", "email": "new@example.com", "password": "Derby2024Win"}

    def test_register(self, client, mock_repos, soft_user_factory, registration):
        mock_repos["users"].create.return_value = soft_user_factory("user-7", "new_fan")

        response = client.post("/api/v1/auth/soft/register", json=registration)

        assert response.status_code == 201
        assert response.json()["user"]["id"] == "user-7"
        assert session_from(response).user_id == "user-7"
        stored_hash = mock_repos["users"].create.await_args.args[1]
        assert stored_hash.startswith("$2")

    def test_register_weak_password(self, client, registration):
        registration["password"] = "password123"
        response = client.post("/api/v1/auth/soft/register", json=registration)
        assert response.status_code == 400

    def test_register_taken(self, client, mock_repos, registration):
        mock_repos["users"].username_or_email_taken.return_value = True
        response = client.post("/api/v1/auth/soft/register", json=registration)
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_login(self, client, mock_repos, soft_user_factory):
        from sportsblock.models.user import SoftUserInDB

        user = soft_user_factory("user-1", "fan")
        mock_repos["users"].get_credentials.return_value = SoftUserInDB(
            **user.model_dump(), password_hash=hash_password("Derby2024Win")
        )

        response = client.post("/api/v1/auth/soft/login", json={"username": "fan", "password": "Derby2024Win"})

        assert response.status_code == 200
        assert "passwordHash" not in response.json()["user"]
        mock_repos["users"].touch_last_active.assert_awaited_once_with("user-1")

    def test_login_wrong_password(self, client, mock_repos, soft_user_factory):
        from sportsblock.models.user import SoftUserInDB

        user = soft_user_factory("user-1", "fan")
        mock_repos["users"].get_credentials.return_value = SoftUserInDB(
            **user.model_dump(), password_hash=hash_password("Derby2024Win")
        )

        response = client.post("/api/v1/auth/soft/login", json={"username": "fan", "password": "Wrong2024Pass"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid username or password"

    def test_login_unknown_user(self, client):
        response = client.post("/api/v1/auth/soft/login", json={"username": "ghost", "password": "x"})
        assert response.status_code == 401
