"""
Soft Notification Repository

Every query is scoped by recipient_id so a user can only read, mark or
delete their own notifications.
"""

from typing import Any

from sportsblock.models.notification import NotificationCreate, SoftNotification
from sportsblock.repositories.base import (
    BaseRepository,
    clamp_limit,
    dump_json_property,
    load_json_property,
)


class NotificationRepository(BaseRepository[SoftNotification]):
    """Repository for SoftNotification nodes."""

    @property
    def node_label(self) -> str:
        return "SoftNotification"

    @property
    def model_class(self) -> type[SoftNotification]:
        return SoftNotification

    def _to_model(self, record: dict[str, Any] | None) -> SoftNotification | None:
        if record and "data" in record:
            record = {**record, "data": load_json_property(record["data"])}
        return super()._to_model(record)

    async def create(self, data: NotificationCreate) -> SoftNotification | None:
        now = self._now_iso()
        query = """
        CREATE (n:SoftNotification {
            id: $id,
            recipient_id: $recipient_id,
            type: $type,
            title: $title,
            message: $message,
            source_user_id: $source_user_id,
            source_username: $source_username,
            data: $data,
            milestone: $milestone,
            post_id: $post_id,
            read: false,
            created_at: $now,
            updated_at: $now
        })
        RETURN n {.*} AS entity
        """
        params = {
            "id": self._generate_id(),
            "recipient_id": data.recipient_id,
            "type": data.type,
            "title": data.title,
            "message": data.message,
            "source_user_id": data.source_user_id,
            "source_username": data.source_username,
            "data": dump_json_property(data.data),
            # Lifted out of the JSON payload so milestone lookups can use an index
            "milestone": data.data.get("milestone"),
            "post_id": data.data.get("postId"),
            "now": now,
        }
        result = await self.client.execute_single(query, params)
        return self._to_model(result["entity"]) if result and result.get("entity") else None

    async def list_for_recipient(
        self,
        recipient_id: str,
        limit: int,
        offset: int = 0,
        unread_only: bool = False,
    ) -> list[SoftNotification]:
        unread_clause = "AND n.read = false" if unread_only else ""
        query = f"""
        MATCH (n:SoftNotification)
        WHERE n.recipient_id = $recipient_id {unread_clause}
        RETURN n {{.*}} AS entity
        ORDER BY n.created_at DESC
        SKIP $offset
        LIMIT $limit
        """
        results = await self.client.execute(
            query,
            {"recipient_id": recipient_id, "offset": max(0, offset), "limit": clamp_limit(limit)},
        )
        return self._entities(results)

    async def count_for_recipient(self, recipient_id: str) -> int:
        return await self.count_where(recipient_id=recipient_id)

    async def count_unread(self, recipient_id: str) -> int:
        return await self.count_where(recipient_id=recipient_id, read=False)

    async def mark_read(self, recipient_id: str, notification_ids: list[str] | None = None) -> int:
        """
        Mark notifications read. None marks every unread notification.

        Returns:
            Number of notifications that changed
        """
        id_clause = "AND n.id IN $ids" if notification_ids is not None else ""
        query = f"""
        MATCH (n:SoftNotification)
        WHERE n.recipient_id = $recipient_id AND n.read = false {id_clause}
        SET n.read = true, n.updated_at = $now
        RETURN count(n) AS updated
        """
        result = await self.client.execute_single(
            query,
            {"recipient_id": recipient_id, "ids": notification_ids or [], "now": self._now_iso()},
        )
        return int(result.get("updated", 0)) if result else 0

    async def delete_for_recipient(
        self,
        recipient_id: str,
        notification_ids: list[str] | None = None,
    ) -> int:
        """
        Delete the given notifications, or every read one when ids is None.

        Returns:
            Number of notifications deleted
        """
        if notification_ids is None:
            clause = "n.read = true"
        else:
            clause = "n.id IN $ids"
        query = f"""
        MATCH (n:SoftNotification)
        WHERE n.recipient_id = $recipient_id AND {clause}
        WITH n, n.id AS id
        DETACH DELETE n
        RETURN count(id) AS deleted
        """
        result = await self.client.execute_single(
            query, {"recipient_id": recipient_id, "ids": notification_ids or []}
        )
        deleted = int(result.get("deleted", 0)) if result else 0
        if deleted:
            self.logger.info("notifications_deleted", recipient_id=recipient_id, count=deleted)
        return deleted

    async def milestone_exists(self, recipient_id: str, milestone: str, post_id: str) -> bool:
        return (
            await self.count_where(recipient_id=recipient_id, milestone=milestone, post_id=post_id)
            > 0
        )
