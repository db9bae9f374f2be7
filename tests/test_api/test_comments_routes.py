"""
Comment route tests
"""

COMMENTS_URL = "/api/v1/soft/comments"


class TestListComments:
    """Tests for GET /comments."""

    def test_requires_post(self, client):
        response = client.get(COMMENTS_URL)
        assert response.status_code == 400
        assert response.json()["error"] == "postId or postPermlink is required"

    def test_list(self, client, mock_repos, comment_factory):
        mock_repos["comments"].list_for_post.return_value = [comment_factory()]

        data = client.get(COMMENTS_URL, params={"postPermlink": "derby-day-preview"}).json()

        assert data["count"] == 1
        assert data["comments"][0]["authorUsername"] == "fan"
        mock_repos["comments"].list_for_post.assert_awaited_once_with(
            post_id=None, post_permlink="derby-day-preview", parent_comment_id=None, limit=50
        )


class TestCreateComment:
    """Tests for POST /comments."""

    payload = {"postId": "soft-post-1", "postPermlink": "derby-day-preview", "body": "Great preview"}

    def test_create(self, client, login, mock_repos, comment_factory, soft_user_factory):
        login()
        mock_repos["users"].get_by_id.return_value = soft_user_factory("user-1", "fan")
        mock_repos["comments"].create.return_value = comment_factory()
        mock_repos["posts"].get_author_id.return_value = "user-2"

        response = client.post(COMMENTS_URL, json=self.payload)

        assert response.status_code == 201
        assert response.json()["comment"]["id"] == "comment-1"
        mock_repos["posts"].get_author_id.assert_awaited_once_with("post-1")
        mock_repos["posts"].adjust_counter.assert_awaited_once_with("post-1", "comment_count", 1)
        assert mock_repos["notifications"].create.await_args.args[0].type == "comment"

    def test_reply_notifies_parent_author(self, client, login, mock_repos, comment_factory):
        login()
        mock_repos["comments"].create.return_value = comment_factory("comment-2")
        mock_repos["comments"].get_by_id.return_value = comment_factory("comment-1", author_id="user-3")
        mock_repos["posts"].get_author_id.return_value = "user-2"

        client.post(COMMENTS_URL, json={**self.payload, "parentCommentId": "comment-1"})

        recipients = [c.args[0].recipient_id for c in mock_repos["notifications"].create.await_args_list]
        assert recipients == ["user-2", "user-3"]

    def test_soft_limit(self, client, login, mock_repos):
        login()
        mock_repos["comments"].count_live_by_author.return_value = 200

        response = client.post(COMMENTS_URL, json=self.payload)

        assert response.status_code == 403
        body = response.json()
        assert body["upgradeRequired"] is True
        assert body["limitInfo"] == {"current": 200, "max": 200, "remaining": 0}
        mock_repos["comments"].create.assert_not_called()

    def test_hive_users_are_not_capped(self, client, login, mock_repos, comment_factory):
        login(user_id="hive-alice", username="alice", auth_type="hive", hive_username="alice")
        mock_repos["comments"].create.return_value = comment_factory(author_id="hive-alice")

        response = client.post(COMMENTS_URL, json=self.payload)

        assert response.status_code == 201
        mock_repos["comments"].count_live_by_author.assert_not_called()
        author = mock_repos["comments"].create.await_args.args[1]
        assert author.id == "hive-alice"
        assert author.is_hive_user is True

    def test_body_too_long(self, client, login):
        login()
        response = client.post(COMMENTS_URL, json={**self.payload, "body": "x" * 10001})
        assert response.status_code == 400


class TestUpdateComment:
    """Tests for PATCH /comments."""

    def test_update(self, client, login, mock_repos, comment_factory):
        login()
        mock_repos["comments"].get_by_id.return_value = comment_factory()
        mock_repos["comments"].update_body.return_value = comment_factory(body="Edited")

        response = client.patch(COMMENTS_URL, json={"commentId": "comment-1", "body": "Edited"})

        assert response.json()["comment"]["body"] == "Edited"

    def test_not_owner(self, client, login, mock_repos, comment_factory):
        login()
        mock_repos["comments"].get_by_id.return_value = comment_factory(author_id="user-2")

        response = client.patch(COMMENTS_URL, json={"commentId": "comment-1", "body": "Edited"})
        assert response.status_code == 403

    def test_missing(self, client, login):
        login()
        response = client.patch(COMMENTS_URL, json={"commentId": "nope", "body": "Edited"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_deleted(self, client, login, mock_repos, comment_factory):
        login()
        mock_repos["comments"].get_by_id.return_value = comment_factory(is_deleted=True)

        response = client.patch(COMMENTS_URL, json={"commentId": "comment-1", "body": "Edited"})
        assert response.status_code == 400


class TestDeleteComment:
    """Tests for DELETE /comments."""

    def test_delete(self, client, login, mock_repos, comment_factory):
        login()
        mock_repos["comments"].get_by_id.return_value = comment_factory(post_id="soft-post-1")

        response = client.request("DELETE", COMMENTS_URL, json={"commentId": "comment-1"})

        assert response.json() == {"success": True, "message": "Comment deleted"}
        mock_repos["comments"].soft_delete.assert_awaited_once_with("comment-1")
        mock_repos["posts"].adjust_counter.assert_awaited_once_with("post-1", "comment_count", -1)

    def test_already_deleted(self, client, login, mock_repos, comment_factory):
        login()
        mock_repos["comments"].get_by_id.return_value = comment_factory(is_deleted=True)

        response = client.request("DELETE", COMMENTS_URL, json={"commentId": "comment-1"})

        assert response.json()["message"] == "Comment already deleted"
        mock_repos["comments"].soft_delete.assert_not_called()
