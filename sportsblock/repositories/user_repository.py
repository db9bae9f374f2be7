"""
Soft User Repository

Custodial account storage, follow counters, activity tracking and the
graduation step that wipes custodial keys once a user proves self-custody.
"""

from typing import Any

from sportsblock.models.user import SoftUser, SoftUserCreate, SoftUserInDB
from sportsblock.repositories.base import BaseRepository

# Fields safe to return through the API (no password_hash, no key material)
USER_SAFE_FIELDS = """
    .id, .username, .email, .display_name, .avatar, .is_hive_user,
    .hive_username, .keys_downloaded, .follower_count, .following_count,
    .last_active_at, .created_at, .updated_at
""".strip()

# Denormalised author fields that follow a display name change
AUTHORED_LABELS = ("SoftPost", "Sportsbite", "SoftComment")


class UserRepository(BaseRepository[SoftUser]):
    """Repository for SoftUser nodes."""

    @property
    def node_label(self) -> str:
        return "SoftUser"

    @property
    def model_class(self) -> type[SoftUser]:
        return SoftUser

    async def create(self, data: SoftUserCreate, password_hash: str) -> SoftUser:
        """
        Create a new custodial user.

        Args:
            data: Registration payload
            password_hash: Bcrypt hash of the password
        """
        user_id = self._generate_id()
        now = self._now_iso()

        query = """
        CREATE (u:SoftUser {
            id: $id,
            username: $username,
            email: $email,
            display_name: $display_name,
            avatar: $avatar,
            password_hash: $password_hash,
            is_hive_user: false,
            hive_username: null,
            keys_downloaded: false,
            has_custodial_keys: false,
            follower_count: 0,
            following_count: 0,
            last_active_at: $now,
            created_at: $now,
            updated_at: $now
        })
        RETURN u {.*} AS user
        """

        params = {
            "id": user_id,
            "username": data.username,
            "email": str(data.email).lower(),
            "display_name": data.display_name,
            "avatar": data.avatar,
            "password_hash": password_hash,
            "now": now,
        }

        result = await self.client.execute_single(query, params)
        if result and result.get("user"):
            self.logger.info("soft_user_created", user_id=user_id, username=data.username)
            user = self._to_model(result["user"])
            if user is not None:
                return user

        raise RuntimeError(f"Failed to create soft user {data.username}")

    async def get_by_id(self, entity_id: str) -> SoftUser | None:
        query = f"""
        MATCH (u:SoftUser {{id: $id}})
        RETURN u {{{USER_SAFE_FIELDS}}} AS user
        """
        result = await self.client.execute_single(query, {"id": entity_id})
        return self._to_model(result["user"]) if result and result.get("user") else None

    async def get_by_username(self, username: str) -> SoftUser | None:
        query = f"""
        MATCH (u:SoftUser {{username: $username}})
        RETURN u {{{USER_SAFE_FIELDS}}} AS user
        """
        result = await self.client.execute_single(query, {"username": username})
        return self._to_model(result["user"]) if result and result.get("user") else None

    async def get_credentials(self, username: str) -> SoftUserInDB | None:
        """Load a user with the password hash, for login only."""
        query = """
        MATCH (u:SoftUser {username: $username})
        RETURN u {.*} AS user
        """
        result = await self.client.execute_single(query, {"username": username})
        if not result or not result.get("user"):
            return None
        return SoftUserInDB.model_validate(result["user"])

    async def username_or_email_taken(self, username: str, email: str) -> bool:
        query = """
        MATCH (u:SoftUser)
        WHERE u.username = $username OR u.email = $email
        RETURN count(u) > 0 AS taken
        """
        result = await self.client.execute_single(
            query, {"username": username, "email": email.lower()}
        )
        return bool(result.get("taken")) if result else False

    async def touch_last_active(self, user_id: str) -> None:
        await self.client.execute_write(
            "MATCH (u:SoftUser {id: $id}) SET u.last_active_at = $now",
            {"id": user_id, "now": self._now_iso()},
        )

    async def adjust_follow_counts(self, follower_id: str, followed_id: str, delta: int) -> None:
        """Move following_count on the follower and follower_count on the followed user."""
        await self.adjust_counter(follower_id, "following_count", delta)
        await self.adjust_counter(followed_id, "follower_count", delta)

    async def graduate_custodial_user(self, hive_username: str) -> int:
        """
        Wipe stored custodial keys for a user who just logged in with a wallet.

        Returns:
            Number of accounts whose keys were wiped (0 when already graduated)
        """
        query = """
        MATCH (u:SoftUser {hive_username: $hive_username})
        WHERE u.has_custodial_keys = true OR u.encrypted_keys IS NOT NULL
        SET u.encrypted_keys = null,
            u.encryption_iv = null,
            u.encryption_salt = null,
            u.has_custodial_keys = false,
            u.is_hive_user = true,
            u.updated_at = $now
        RETURN count(u) AS wiped
        """
        result = await self.client.execute_single(
            query, {"hive_username": hive_username, "now": self._now_iso()}
        )
        wiped = int(result.get("wiped", 0)) if result else 0
        if wiped:
            self.logger.info("custodial_keys_wiped", hive_username=hive_username)
        return wiped

    async def sync_display_name(self, username: str, display_name: str) -> None:
        """Propagate a display name to the user and every denormalised author field."""
        params: dict[str, Any] = {"username": username, "display_name": display_name}
        await self.client.execute_write(
            "MATCH (u:SoftUser {username: $username}) SET u.display_name = $display_name",
            params,
        )
        for label in AUTHORED_LABELS:
            await self.client.execute_write(
                f"MATCH (n:{label} {{author_username: $username}}) "
                "WHERE coalesce(n.author_display_name, '') <> $display_name "
                "SET n.author_display_name = $display_name",
                params,
            )

    async def get_by_hive_username(self, hive_username: str) -> SoftUser | None:
        query = f"""
        MATCH (u:SoftUser {{hive_username: $hive_username}})
        RETURN u {{{USER_SAFE_FIELDS}}} AS user
        LIMIT 1
        """
        result = await self.client.execute_single(query, {"hive_username": hive_username})
        return self._to_model(result["user"]) if result and result.get("user") else None
