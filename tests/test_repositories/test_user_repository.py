"""
Soft user and post repository tests
"""

from datetime import UTC, datetime

import pytest

from sportsblock.models.user import SoftUserCreate
from sportsblock.repositories.post_repository import PostRepository
from sportsblock.repositories.user_repository import UserRepository


class TestUserRepository:
    """Tests for UserRepository."""

    @pytest.mark.asyncio
    async def test_create(self, mock_db_client, soft_user_factory):
        mock_db_client.execute_single.return_value = {
            "user": soft_user_factory("user-1", "fan").model_dump()
        }
        data = SoftUserCreate(username="fan", email="Fan@Example.com", password="Derby2024Win")

        user = await UserRepository(mock_db_client).create(data, "$2b$04$hash")

        assert user.username == "fan"
        _, params = mock_db_client.execute_single.await_args.args
        assert params["email"] == "fan@example.com"
        assert params["password_hash"] == "$2b$04$hash"

    @pytest.mark.asyncio
    async def test_create_failure(self, mock_db_client):
        mock_db_client.execute_single.return_value = None
        data = SoftUserCreate(username="fan", email="fan@example.com", password="Derby2024Win")

        with pytest.raises(RuntimeError):
            await UserRepository(mock_db_client).create(data, "hash")

    @pytest.mark.asyncio
    async def test_lookup_omits_password_hash(self, mock_db_client):
        await UserRepository(mock_db_client).get_by_username("fan")

        query, _ = mock_db_client.execute_single.await_args.args
        assert "password_hash" not in query

    @pytest.mark.asyncio
    async def test_credentials(self, mock_db_client, soft_user_factory):
        record = soft_user_factory("user-1", "fan").model_dump()
        record["password_hash"] = "$2b$04$hash"
        mock_db_client.execute_single.return_value = {"user": record}

        user = await UserRepository(mock_db_client).get_credentials("fan")
        assert user.password_hash == "$2b$04$hash"

    @pytest.mark.asyncio
    async def test_graduate(self, mock_db_client):
        mock_db_client.execute_single.return_value = {"wiped": 1}

        assert await UserRepository(mock_db_client).graduate_custodial_user("alice") == 1
        query, params = mock_db_client.execute_single.await_args.args
        assert "u.encrypted_keys = null" in query
        assert params["hive_username"] == "alice"

    @pytest.mark.asyncio
    async def test_follow_counts(self, mock_db_client):
        mock_db_client.execute_single.return_value = {"value": 1}

        await UserRepository(mock_db_client).adjust_follow_counts("user-1", "user-2", 1)

        queries = [call.args[0] for call in mock_db_client.execute_single.await_args_list]
        assert "following_count" in queries[0]
        assert "follower_count" in queries[1]

    @pytest.mark.asyncio
    async def test_sync_display_name(self, mock_db_client):
        await UserRepository(mock_db_client).sync_display_name("fan", "The Fan")

        queries = [call.args[0] for call in mock_db_client.execute_write.await_args_list]
        assert len(queries) == 4
        assert any("Sportsbite" in q for q in queries)


class TestPostRepository:
    """Tests for PostRepository."""

    @pytest.mark.asyncio
    async def test_permlinks_with_prefix(self, mock_db_client):
        mock_db_client.execute.return_value = [{"permlink": "derby"}, {"permlink": "derby-1"}]

        permlinks = await PostRepository(mock_db_client).permlinks_with_prefix("user-1", "derby")
        assert permlinks == {"derby", "derby-1"}

    @pytest.mark.asyncio
    async def test_list_posts_filters(self, mock_db_client, soft_post_factory):
        mock_db_client.execute.return_value = [{"entity": soft_post_factory("p1").model_dump()}]
        before = datetime(2024, 3, 1, tzinfo=UTC)

        posts = await PostRepository(mock_db_client).list_posts(
            21, author_username="fan", before=before, exclude_published_to_hive=True
        )

        assert [p.id for p in posts] == ["p1"]
        query, params = mock_db_client.execute.await_args.args
        assert "p.author_username = $author_username" in query
        assert "coalesce(p.is_published_to_hive, false) = false" in query
        assert "p.content" not in query
        assert params["before"] == "2024-03-01T00:00:00.000000+00:00"
        assert params["limit"] == 21

    @pytest.mark.asyncio
    async def test_list_posts_by_community(self, mock_db_client):
        await PostRepository(mock_db_client).list_posts(20, community_id="c-arsenal")

        query, params = mock_db_client.execute.await_args.args
        assert "p.community_id = $community_id" in query
        assert params["community_id"] == "c-arsenal"
        assert "author_id" not in params
