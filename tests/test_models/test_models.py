"""
Model validation and wire format tests
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from sportsblock.models.base import LimitInfo, Pagination, convert_neo4j_datetime, to_iso
from sportsblock.models.content import CommentCreate, SoftPostCreate, SportsbiteCreate
from sportsblock.models.notification import NotificationCreate
from sportsblock.models.social import (
    PollResults,
    encode_sportsbite_id,
    follow_id,
    like_id,
    user_sportsbite_key,
)
from sportsblock.models.user import SoftUser, SoftUserCreate


class TestTimestamps:
    """Tests for datetime helpers."""

    def test_to_iso_fixed_width(self):
        assert to_iso(datetime(2024, 3, 1, 12, 0)) == "2024-03-01T12:00:00.000000+00:00"

    def test_to_iso_normalises_offset(self):
        value = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_iso(value) == "2024-03-01T12:00:00.000000+00:00"

    def test_convert_string(self):
        assert convert_neo4j_datetime("2024-03-01T12:00:00Z") == datetime(2024, 3, 1, 12, tzinfo=UTC)

    def test_convert_naive(self):
        assert convert_neo4j_datetime(datetime(2024, 3, 1)).tzinfo is UTC

    def test_convert_driver_value(self):
        class DriverDateTime:
            def to_native(self):
                return datetime(2024, 3, 1, 12)

        assert convert_neo4j_datetime(DriverDateTime()) == datetime(2024, 3, 1, 12, tzinfo=UTC)


class TestWireFormat:
    """camelCase out, either case in."""

    def test_camel_case_dump(self):
        page = Pagination(total=3, offset=0, limit=20, has_more=False, unread_count=1)
        assert page.model_dump(by_alias=True) == {
            "total": 3, "offset": 0, "limit": 20, "hasMore": False, "unreadCount": 1,
        }

    def test_accepts_camel_and_snake(self):
        assert CommentCreate.model_validate(
            {"postId": "p1", "postPermlink": "x", "body": "hi"}
        ).post_id == "p1"
        assert CommentCreate(post_id="p1", post_permlink="x", body="hi").post_id == "p1"

    def test_enum_values_stored_as_strings(self):
        notification = NotificationCreate(recipient_id="u1", type="follow", title="t", message="m")
        assert notification.type == "follow"

    def test_poll_results_aliases(self):
        assert PollResults(total_votes=2).model_dump(by_alias=True)["totalVotes"] == 2

    def test_limit_info(self):
        assert LimitInfo(current=1, max=5, remaining=4).model_dump(by_alias=True)["max"] == 5


class TestContentValidation:
    """Tests for create payload limits."""

    def test_sportsbite_length(self):
        SportsbiteCreate(body="x" * 280)
        with pytest.raises(ValidationError):
            SportsbiteCreate(body="x" * 281)

    def test_sportsbite_media_limits(self):
        with pytest.raises(ValidationError):
            SportsbiteCreate(body="gif", gifs=[f"https://gif.example/{i}.gif" for i in range(3)])

    def test_whitespace_body_rejected(self):
        with pytest.raises(ValidationError):
            SportsbiteCreate(body="   ")

    def test_post_tag_limit(self):
        with pytest.raises(ValidationError):
            SoftPostCreate(title="t", content="c", tags=[f"t{i}" for i in range(11)])

    def test_post_featured_image_must_be_url(self):
        with pytest.raises(ValidationError):
            SoftPostCreate(title="t", content="c", featured_image="not a url")


class TestUserValidation:
    """Tests for soft user schemas."""

    @pytest.mark.parametrize("username", ["ab", "has space", "x" * 31, "bad!"])
    def test_bad_usernames(self, username):
        with pytest.raises(ValidationError):
            SoftUserCreate(username=username, email="fan@example.com", password="longenough1")

    def test_bad_email(self):
        with pytest.raises(ValidationError):
            SoftUserCreate(username="fan_1", email="not-an-email", password="longenough1")

    def test_avatar_scheme(self):
        with pytest.raises(ValidationError):
            SoftUser(id="u1", username="fan_1", avatar="javascript:alert(1)")

    def test_blank_avatar_is_none(self):
        assert SoftUser(id="u1", username="fan_1", avatar="  ").avatar is None

    def test_last_active_conversion(self):
        user = SoftUser(id="u1", username="fan_1", last_active_at="2024-03-01T12:00:00Z")
        assert user.last_active_at == datetime(2024, 3, 1, 12, tzinfo=UTC)


class TestCompositeIds:
    """Deterministic ids behind the idempotent toggles."""

    def test_like_id(self):
        assert like_id("u1", "post", "p1") == "u1_post_p1"

    def test_follow_id(self):
        assert follow_id("u1", "u2") == "u1_u2"

    def test_hive_sportsbite_ids_lose_slashes(self):
        assert encode_sportsbite_id("alice/bite-1") == "alice__bite-1"
        assert user_sportsbite_key("u1", "alice/bite-1") == "u1__alice__bite-1"
