"""
Like route tests
"""

LIKES_URL = "/api/v1/soft/likes"


class TestLikeStatus:
    """Tests for GET /likes."""

    def test_anonymous(self, client, mock_repos):
        mock_repos["likes"].count_for_target.return_value = 5

        response = client.get(LIKES_URL, params={"targetType": "post", "targetId": "p1"})

        assert response.json() == {"success": True, "likeCount": 5, "hasLiked": False}
        mock_repos["likes"].has_liked.assert_not_called()

    def test_signed_in(self, client, login, mock_repos):
        login()
        mock_repos["likes"].has_liked.return_value = True

        data = client.get(LIKES_URL, params={"targetType": "comment", "targetId": "c1"}).json()

        assert data["hasLiked"] is True
        mock_repos["likes"].has_liked.assert_awaited_once_with("user-1", "comment", "c1")

    def test_invalid_target_type(self, client):
        response = client.get(LIKES_URL, params={"targetType": "video", "targetId": "v1"})
        assert response.status_code == 400


class TestToggleLike:
    """Tests for POST /likes."""

    def test_requires_auth(self, client):
        response = client.post(LIKES_URL, json={"targetType": "post", "targetId": "p1"})

        assert response.status_code == 401
        assert response.json()["error"] == "Authentication required"

    def test_like(self, client, login, mock_repos):
        login()
        likes = mock_repos["likes"]
        likes.count_for_target.return_value = 1
        likes.get_target_context.return_value = {"author_id": "user-2", "post_id": "p1"}

        response = client.post(LIKES_URL, json={"targetType": "post", "targetId": "soft-p1"})

        assert response.json() == {"success": True, "liked": True, "likeCount": 1}
        likes.create.assert_awaited_once_with("user-1", "fan", "post", "soft-p1")
        likes.adjust_target_like_count.assert_awaited_once_with("post", "soft-p1", 1)
        mock_repos["notifications"].create.assert_awaited_once()

    def test_client_permlink_fills_notification(self, client, login, mock_repos):
        """A Hive-mirrored target has no stored permlink; the request supplies it."""
        login()
        mock_repos["likes"].get_target_context.return_value = {"author_id": "user-2", "post_id": "p1"}

        client.post(LIKES_URL, json={"targetType": "post", "targetId": "p1", "postPermlink": "derby-day"})

        payload = mock_repos["notifications"].create.await_args_list[0].args[0]
        assert payload.data["postPermlink"] == "derby-day"

    def test_unlike(self, client, login, mock_repos):
        login()
        likes = mock_repos["likes"]
        likes.has_liked.return_value = True

        response = client.post(LIKES_URL, json={"targetType": "comment", "targetId": "c1"})

        assert response.json()["liked"] is False
        likes.remove.assert_awaited_once_with("user-1", "comment", "c1")
        likes.adjust_target_like_count.assert_awaited_once_with("comment", "c1", -1)
        mock_repos["notifications"].create.assert_not_called()

    def test_trending_milestone(self, client, login, mock_repos):
        login()
        mock_repos["likes"].count_for_target.return_value = 10
        mock_repos["likes"].get_target_context.return_value = {"author_id": "user-2", "post_id": "p1"}

        client.post(LIKES_URL, json={"targetType": "post", "targetId": "p1"})

        types = [call.args[0].type for call in mock_repos["notifications"].create.await_args_list]
        assert types == ["like", "system"]

    def test_rate_limited(self, client, login, rate_limiter):
        login()
        for _ in range(rate_limiter.limits["likes"].limit):
            client.post(LIKES_URL, json={"targetType": "post", "targetId": "p1"})

        response = client.post(LIKES_URL, json={"targetType": "post", "targetId": "p1"})
        assert response.status_code == 429


class TestBatchStatus:
    """Tests for PUT /likes."""

    def test_batch(self, client, login, mock_repos):
        login()
        mock_repos["likes"].batch_status.return_value = {
            "post:p1": {"like_count": 2, "has_liked": True},
        }

        response = client.put(LIKES_URL, json={"targets": [{"targetType": "post", "targetId": "p1"}]})

        assert response.json() == {
            "success": True,
            "results": {"post:p1": {"likeCount": 2, "hasLiked": True}},
        }
        mock_repos["likes"].batch_status.assert_awaited_once_with([("post", "p1")], "user-1")

    def test_empty_batch(self, client):
        assert client.put(LIKES_URL, json={"targets": []}).status_code == 400
