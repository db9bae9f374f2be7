"""
Hive JSON-RPC client

Read-only client for public Hive API nodes. Each call walks the configured
node list, healthiest first, skipping nodes whose circuit breaker is open.
An HTTP failure or a JSON-RPC error moves on to the next node.
"""

from __future__ import annotations

import itertools
from typing import Any

import httpx
import structlog

from sportsblock.config import get_settings
from sportsblock.hive.errors import HiveAPIError
from sportsblock.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
    hive_node_breaker,
)

logger = structlog.get_logger(__name__)


class NodeCallError(Exception):
    """One node failed to answer a call."""


class HiveClient:
    """
    Failover JSON-RPC client.

    Usage:
        client = HiveClient()
        account = await client.get_account("alice")
        await client.close()
    """

    def __init__(
        self,
        nodes: list[str] | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.nodes = list(dict.fromkeys(nodes or settings.hive_api_nodes_list))
        if not self.nodes:
            raise ValueError("At least one Hive API node is required")
        self._timeout = timeout or settings.hive_request_timeout
        self._http_client = http_client
        self._owns_client = http_client is None
        self._ids = itertools.count(1)

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def breaker(self, node_url: str) -> CircuitBreaker:
        return hive_node_breaker(node_url)

    def ordered_nodes(self) -> list[str]:
        """Configured order, but closed circuits before half-open ones; open circuits dropped."""
        rank = {CircuitState.CLOSED: 0, CircuitState.HALF_OPEN: 1}
        usable = [
            (rank[state], index, url)
            for index, url in enumerate(self.nodes)
            if (state := self.breaker(url).state) != CircuitState.OPEN
        ]
        return [url for _, _, url in sorted(usable)]

    async def _post(self, node_url: str, payload: dict[str, Any]) -> Any:
        response = await self._get_client().post(node_url, json=payload)
        if response.status_code >= 400:
            raise NodeCallError(f"HTTP error! status: {response.status_code} from {node_url}")
        try:
            body = response.json()
        except ValueError as e:
            raise NodeCallError(f"Invalid JSON from {node_url}") from e
        if not isinstance(body, dict):
            raise NodeCallError(f"Unexpected response shape from {node_url}")
        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise NodeCallError(f"API error from {node_url}: {message}")
        return body.get("result")

    async def call(self, api: str, method: str, params: Any = None) -> Any:
        """
        Call api.method on the first node that answers.

        Raises:
            HiveAPIError: If every node failed (or every circuit is open)
        """
        payload = {
            "jsonrpc": "2.0",
            "method": f"{api}.{method}",
            "params": params if params is not None else [],
            "id": next(self._ids),
        }
        last_error: str | None = None

        nodes = self.ordered_nodes()
        if not nodes:
            last_error = "all node circuits are open"

        for node_url in nodes:
            breaker = self.breaker(node_url)
            try:
                result = await breaker.call(self._post, node_url, payload)
            except (NodeCallError, httpx.HTTPError) as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning("hive_node_failed", node=node_url, method=payload["method"], error=last_error)
                continue
            except CircuitBreakerError as e:
                # A half-open node ran out of probe calls
                last_error = str(e) or e.__class__.__name__
                logger.warning("hive_node_skipped", node=node_url, error=last_error)
                continue
            logger.debug("hive_call_succeeded", node=node_url, method=payload["method"])
            return result

        raise HiveAPIError(f"All Hive API nodes failed. Last error: {last_error}")

    # =========================================================================
    # condenser_api helpers
    # =========================================================================

    async def get_accounts(self, names: list[str]) -> list[dict[str, Any]]:
        result = await self.call("condenser_api", "get_accounts", [names])
        return result or []

    async def get_account(self, name: str) -> dict[str, Any] | None:
        accounts = await self.get_accounts([name])
        return accounts[0] if accounts else None

    async def get_dynamic_global_properties(self) -> dict[str, Any]:
        return await self.call("condenser_api", "get_dynamic_global_properties", [])

    async def get_discussions_by_created(self, tag: str, limit: int = 20) -> list[dict[str, Any]]:
        result = await self.call(
            "condenser_api", "get_discussions_by_created", [{"tag": tag, "limit": limit}]
        )
        return result or []

    async def get_discussions_by_author_before_date(
        self,
        author: str,
        limit: int = 20,
        start_permlink: str = "",
        before_date: str = "1970-01-01T00:00:00",
    ) -> list[dict[str, Any]]:
        result = await self.call(
            "condenser_api",
            "get_discussions_by_author_before_date",
            [author, start_permlink, before_date, limit],
        )
        return result or []

    async def check_node(self, node_url: str) -> bool:
        """True when the node answers get_dynamic_global_properties."""
        payload = {
            "jsonrpc": "2.0",
            "method": "condenser_api.get_dynamic_global_properties",
            "params": [],
            "id": next(self._ids),
        }
        try:
            await self._post(node_url, payload)
        except (NodeCallError, httpx.HTTPError) as e:
            logger.info("hive_node_check_failed", node=node_url, error=str(e))
            return False
        return True


_hive_client: HiveClient | None = None


def get_hive_client() -> HiveClient:
    global _hive_client
    if _hive_client is None:
        _hive_client = HiveClient()
    return _hive_client


async def close_hive_client() -> None:
    global _hive_client
    if _hive_client is not None:
        await _hive_client.close()
        _hive_client = None
