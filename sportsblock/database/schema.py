"""
Neo4j Schema Manager

Creates the uniqueness constraints and lookup indexes the repositories
rely on. Every statement uses IF NOT EXISTS so setup is idempotent.
"""

import structlog
from neo4j.exceptions import ClientError, DatabaseError, ServiceUnavailable

from sportsblock.database.client import Neo4jClient

logger = structlog.get_logger(__name__)

# Labels whose `id` must be unique
UNIQUE_ID_LABELS = (
    "SoftUser",
    "SoftPost",
    "Sportsbite",
    "SoftComment",
    "SoftLike",
    "SoftFollow",
    "SoftNotification",
    "Reaction",
    "ReactionCount",
    "PollVote",
    "PollResult",
)

INDEXES = (
    ("softpost_author_created", "SoftPost", "author_id, n.created_at"),
    ("softpost_username_created", "SoftPost", "author_username, n.created_at"),
    ("sportsbite_created", "Sportsbite", "created_at"),
    ("softcomment_post", "SoftComment", "post_id, n.created_at"),
    ("softcomment_permlink", "SoftComment", "post_permlink"),
    ("softlike_target", "SoftLike", "target_type, n.target_id"),
    ("softfollow_followed", "SoftFollow", "followed_id"),
    ("softfollow_follower", "SoftFollow", "follower_id"),
    ("notification_recipient", "SoftNotification", "recipient_id, n.created_at"),
)


class SchemaManager:
    """Manages Neo4j schema setup."""

    def __init__(self, client: Neo4jClient):
        self.client = client

    def _statements(self) -> list[tuple[str, str]]:
        statements = [
            (
                f"{label.lower()}_id_unique",
                f"CREATE CONSTRAINT {label.lower()}_id_unique IF NOT EXISTS "
                f"FOR (n:{label}) REQUIRE n.id IS UNIQUE",
            )
            for label in UNIQUE_ID_LABELS
        ]
        statements.extend([
            (
                "softuser_username_unique",
                "CREATE CONSTRAINT softuser_username_unique IF NOT EXISTS "
                "FOR (n:SoftUser) REQUIRE n.username IS UNIQUE",
            ),
            (
                "softuser_email_unique",
                "CREATE CONSTRAINT softuser_email_unique IF NOT EXISTS "
                "FOR (n:SoftUser) REQUIRE n.email IS UNIQUE",
            ),
        ])
        statements.extend(
            (name, f"CREATE INDEX {name} IF NOT EXISTS FOR (n:{label}) ON (n.{fields})")
            for name, label, fields in INDEXES
        )
        return statements

    async def setup_all(self) -> dict[str, bool]:
        """
        Set up all schema elements.

        Returns:
            Dict of schema element names to success status
        """
        results: dict[str, bool] = {}
        for name, query in self._statements():
            try:
                await self.client.execute(query)
                results[name] = True
            except ServiceUnavailable:
                logger.critical("schema_setup_database_unavailable", element=name)
                raise
            except (ClientError, DatabaseError) as e:
                results[name] = False
                logger.error("schema_element_failed", element=name, error=str(e))

        logger.info(
            "schema_setup_complete",
            total=len(results),
            successful=sum(1 for v in results.values() if v),
            failed=sum(1 for v in results.values() if not v),
        )
        return results
