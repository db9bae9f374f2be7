"""
Base Repository

Abstract base class for all repositories with common CRUD operations
and Neo4j query patterns.
"""

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import uuid4

import structlog
from pydantic import BaseModel

from sportsblock.database.client import Neo4jClient
from sportsblock.models.base import to_iso, utc_now

logger = structlog.get_logger(__name__)

# Regex for valid Cypher identifiers (property names, etc.)
VALID_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

MAX_QUERY_LIMIT = 1000


def validate_identifier(name: str, param_name: str = "identifier") -> str:
    """
    Validate that a string is a safe Cypher identifier.

    Prevents Cypher injection through field/property names.

    Raises:
        ValueError: If the identifier is invalid
    """
    if not name:
        raise ValueError(f"{param_name} cannot be empty")
    if not VALID_IDENTIFIER_PATTERN.match(name):
        raise ValueError(
            f"Invalid {param_name}: must be alphanumeric with underscores, starting with letter or underscore"
        )
    if len(name) > 64:
        raise ValueError(f"{param_name} too long (max 64 characters)")
    return name


def clamp_limit(limit: int) -> int:
    return min(max(1, limit), MAX_QUERY_LIMIT)


def dump_json_property(value: dict[str, Any] | None) -> str:
    """Neo4j properties cannot hold maps, so nested dicts are stored as JSON text."""
    return json.dumps(value or {}, separators=(",", ":"))


def load_json_property(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if not value:
        return {}
    try:
        loaded = json.loads(value)
    except (TypeError, ValueError):
        return {}
    return loaded if isinstance(loaded, dict) else {}


T = TypeVar("T", bound=BaseModel)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository with common operations.

    Subclasses declare the node label and model class; Cypher for
    entity-specific behaviour lives in the subclass.
    """

    def __init__(self, client: Neo4jClient):
        self.client = client
        self.logger = structlog.get_logger(self.__class__.__name__)

    @property
    @abstractmethod
    def node_label(self) -> str:
        """The Neo4j node label for this entity."""

    @property
    @abstractmethod
    def model_class(self) -> type[T]:
        """The Pydantic model class for this entity."""

    def _generate_id(self) -> str:
        return str(uuid4())

    def _now(self) -> datetime:
        return utc_now()

    def _now_iso(self) -> str:
        return to_iso(self._now())

    def _to_model(self, record: dict[str, Any] | None) -> T | None:
        """
        Convert a Neo4j record to a Pydantic model.

        Returns None (and logs) when the stored node does not validate.
        """
        if not record:
            return None
        try:
            return self.model_class.model_validate(record)
        except Exception as e:
            self.logger.error(
                "record_conversion_failed",
                error=str(e),
                record_keys=list(record.keys()),
            )
            return None

    def _to_models(self, records: list[dict[str, Any]]) -> list[T]:
        return [m for m in (self._to_model(r) for r in records) if m is not None]

    def _entities(self, results: list[dict[str, Any]], key: str = "entity") -> list[T]:
        return self._to_models([r[key] for r in results if r.get(key)])

    async def get_by_id(self, entity_id: str) -> T | None:
        """Get an entity by its ID."""
        query = f"""
        MATCH (n:{self.node_label} {{id: $id}})
        RETURN n {{.*}} AS entity
        """
        result = await self.client.execute_single(query, {"id": entity_id})
        if result and result.get("entity"):
            return self._to_model(result["entity"])
        return None

    async def exists(self, entity_id: str) -> bool:
        query = f"""
        MATCH (n:{self.node_label} {{id: $id}})
        RETURN count(n) > 0 AS exists
        """
        result = await self.client.execute_single(query, {"id": entity_id})
        return bool(result.get("exists", False)) if result else False

    async def delete(self, entity_id: str) -> bool:
        """Delete an entity by ID."""
        query = f"""
        MATCH (n:{self.node_label} {{id: $id}})
        DETACH DELETE n
        RETURN count(n) AS deleted
        """
        result = await self.client.execute_single(query, {"id": entity_id})
        deleted = result.get("deleted", 0) if result else 0
        if deleted > 0:
            self.logger.info("entity_deleted", entity_type=self.node_label, entity_id=entity_id)
        return deleted > 0

    async def count_where(self, **filters: Any) -> int:
        """Count nodes whose properties equal the given values."""
        clauses = []
        for field in filters:
            validate_identifier(field, "field")
            clauses.append(f"n.{field} = ${field}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"MATCH (n:{self.node_label}) {where} RETURN count(n) AS count"
        result = await self.client.execute_single(query, filters)
        return int(result.get("count", 0)) if result else 0

    async def update_fields(self, entity_id: str, **fields: Any) -> T | None:
        """Set several properties and bump updated_at."""
        set_clauses = ["n.updated_at = $now"]
        params: dict[str, Any] = {"id": entity_id, "now": self._now_iso()}
        for field, value in fields.items():
            validate_identifier(field, "field")
            set_clauses.append(f"n.{field} = ${field}")
            params[field] = value

        query = f"""
        MATCH (n:{self.node_label} {{id: $id}})
        SET {", ".join(set_clauses)}
        RETURN n {{.*}} AS entity
        """
        result = await self.client.execute_single(query, params)
        if result and result.get("entity"):
            return self._to_model(result["entity"])
        return None

    async def adjust_counter(self, entity_id: str, field: str, delta: int) -> int | None:
        """
        Atomically add delta to a counter property, flooring at zero.

        Returns:
            The new value, or None when the node does not exist
        """
        field = validate_identifier(field, "field")
        query = f"""
        MATCH (n:{self.node_label} {{id: $id}})
        WITH n, coalesce(n.{field}, 0) + $delta AS next
        SET n.{field} = CASE WHEN next < 0 THEN 0 ELSE next END
        RETURN n.{field} AS value
        """
        result = await self.client.execute_single(query, {"id": entity_id, "delta": delta})
        if not result:
            return None
        return int(result.get("value") or 0)
