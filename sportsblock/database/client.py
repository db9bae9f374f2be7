"""
Neo4j Async Client

One pooled AsyncDriver for the process. Reads and writes go through
short-lived sessions; transient cluster errors are retried by tenacity
before they reach the API's 503 handlers.
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncResult, AsyncSession
from neo4j.exceptions import (
    DriverError,
    Neo4jError,
    ServiceUnavailable,
    SessionExpired,
    TransientError,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sportsblock.config import settings

logger = structlog.get_logger(__name__)

Record = dict[str, Any]

RETRYABLE_EXCEPTIONS = (ServiceUnavailable, SessionExpired, TransientError)

_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
    reraise=True,
)


class Neo4jClient:
    """Async Neo4j access for the repositories."""

    def __init__(
        self,
        uri: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str | None = None,
    ):
        self._uri = uri or settings.neo4j_uri
        self._auth = (user or settings.neo4j_user, password or settings.neo4j_password)
        self._database = database or settings.neo4j_database
        self._driver: AsyncDriver | None = None

    @property
    def database(self) -> str:
        return self._database

    @property
    def is_connected(self) -> bool:
        return self._driver is not None

    async def connect(self) -> None:
        """Open the driver and check the server answers. Idempotent."""
        if self._driver is not None:
            return

        logger.info("neo4j_connecting", uri=self._uri, database=self._database)
        driver = AsyncGraphDatabase.driver(
            self._uri,
            auth=self._auth,
            max_connection_lifetime=settings.neo4j_max_connection_lifetime,
            max_connection_pool_size=settings.neo4j_max_connection_pool_size,
            connection_timeout=settings.neo4j_connection_timeout,
        )
        try:
            await driver.verify_connectivity()
        except (Neo4jError, DriverError, OSError) as e:
            logger.error("neo4j_connect_failed", uri=self._uri, error=str(e))
            await driver.close()
            raise

        self._driver = driver
        logger.info("neo4j_connected", database=self._database)

    async def close(self) -> None:
        if self._driver is None:
            return
        driver, self._driver = self._driver, None
        await driver.close()
        logger.info("neo4j_closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._driver is None:
            raise RuntimeError("Neo4j client not connected. Call connect() first.")
        async with self._driver.session(database=self._database) as session:
            yield session

    async def _run(self, session: AsyncSession, query: str, parameters: Record | None) -> AsyncResult:
        return await session.run(query, parameters or {})

    @_retry_transient
    async def execute(self, query: str, parameters: Record | None = None) -> list[Record]:
        """Run a read query and return every record as a dict."""
        async with self.session() as session:
            result = await self._run(session, query, parameters)
            return [record.data() async for record in result]

    @_retry_transient
    async def execute_single(self, query: str, parameters: Record | None = None) -> Record | None:
        """First record of a query, or None when nothing matched."""
        async with self.session() as session:
            result = await self._run(session, query, parameters)
            record = await result.single()
            return record.data() if record is not None else None

    @_retry_transient
    async def execute_write(self, query: str, parameters: Record | None = None) -> Record:
        """Run a write query and return its update counters."""
        async with self.session() as session:
            result = await self._run(session, query, parameters)
            counters = (await result.consume()).counters
            return {
                "nodes_created": counters.nodes_created,
                "nodes_deleted": counters.nodes_deleted,
                "properties_set": counters.properties_set,
            }

    async def health_check(self) -> dict[str, Any]:
        """Round-trip a trivial query; never raises."""
        start = time.perf_counter()
        try:
            await self.execute_single("RETURN 1 AS ok")
        except (Neo4jError, DriverError, OSError, RuntimeError) as e:
            logger.warning("neo4j_health_check_failed", error=str(e))
            return {"status": "unhealthy", "database": self._database, "error": str(e)}
        return {
            "status": "healthy",
            "database": self._database,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
        }
