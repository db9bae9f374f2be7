"""
Hive JSON-RPC client tests

Node failover, JSON-RPC error handling and circuit breaker integration,
driven through httpx.MockTransport.
"""

import json

import httpx
import pytest

from sportsblock.hive.client import HiveClient
from sportsblock.hive.errors import HiveAPIError, HiveError, handle_hive_error
from sportsblock.resilience.circuit_breaker import CircuitState

NODE_A = "https://node-a.example"
NODE_B = "https://node-b.example"


def make_client(handler, nodes=(NODE_A, NODE_B)) -> HiveClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HiveClient(nodes=list(nodes), http_client=http)


def rpc_result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


class TestCall:
    """Tests for HiveClient.call failover."""

    @pytest.mark.asyncio
    async def test_first_node_answers(self):
        seen = []

        def handler(request):
            seen.append(str(request.url).rstrip("/"))
            return rpc_result(request, {"head_block_number": 1})

        client = make_client(handler)
        result = await client.call("condenser_api", "get_dynamic_global_properties")

        assert result == {"head_block_number": 1}
        assert seen == [NODE_A]

    @pytest.mark.asyncio
    async def test_sends_jsonrpc_envelope(self):
        payloads = []

        def handler(request):
            payloads.append(json.loads(request.content))
            return rpc_result(request, [])

        client = make_client(handler)
        await client.get_accounts(["alice"])

        assert payloads[0]["jsonrpc"] == "2.0"
        assert payloads[0]["method"] == "condenser_api.get_accounts"
        assert payloads[0]["params"] == [["alice"]]

    @pytest.mark.asyncio
    async def test_http_error_fails_over(self):
        def handler(request):
            if str(request.url).startswith(NODE_A):
                return httpx.Response(503)
            return rpc_result(request, [{"name": "alice"}])

        client = make_client(handler)
        assert await client.get_account("alice") == {"name": "alice"}

    @pytest.mark.asyncio
    async def test_rpc_error_fails_over(self):
        def handler(request):
            if str(request.url).startswith(NODE_A):
                return httpx.Response(200, json={"error": {"message": "Internal Error"}})
            return rpc_result(request, [{"name": "bob"}])

        client = make_client(handler)
        assert await client.get_account("bob") == {"name": "bob"}

    @pytest.mark.asyncio
    async def test_non_object_body_fails_over(self):
        """A node answering 200 with a bare JSON array is treated as failed."""

        def handler(request):
            if str(request.url).startswith(NODE_A):
                return httpx.Response(200, json=["maintenance"])
            return rpc_result(request, {"head_block_number": 7})

        client = make_client(handler)
        result = await client.call("condenser_api", "get_dynamic_global_properties")

        assert result == {"head_block_number": 7}
        assert client.breaker(NODE_A).get_status()["stats"]["failed_calls"] == 1

    @pytest.mark.asyncio
    async def test_transport_error_fails_over(self):
        def handler(request):
            if str(request.url).startswith(NODE_A):
                raise httpx.ConnectError("connection refused", request=request)
            return rpc_result(request, [])

        client = make_client(handler)
        assert await client.get_account("nobody") is None

    @pytest.mark.asyncio
    async def test_all_nodes_fail(self):
        client = make_client(lambda request: httpx.Response(500))

        with pytest.raises(HiveAPIError) as exc_info:
            await client.get_dynamic_global_properties()

        assert "All Hive API nodes failed" in str(exc_info.value)
        assert exc_info.value.code == "UPSTREAM_ERROR"

    @pytest.mark.asyncio
    async def test_invalid_json_fails_over(self):
        def handler(request):
            if str(request.url).startswith(NODE_A):
                return httpx.Response(200, content=b"<html>")
            return rpc_result(request, [])

        client = make_client(handler)
        assert await client.get_discussions_by_created("hive-115814") == []

    def test_requires_nodes(self, monkeypatch):
        from sportsblock.config import get_settings

        monkeypatch.setattr(get_settings(), "hive_api_nodes", "")
        with pytest.raises(ValueError):
            HiveClient(nodes=[])


class TestCircuitBreaking:
    """Tests for per-node breakers."""

    @pytest.mark.asyncio
    async def test_failing_node_is_skipped_once_open(self):
        calls = {NODE_A: 0, NODE_B: 0}

        def handler(request):
            node = NODE_A if str(request.url).startswith(NODE_A) else NODE_B
            calls[node] += 1
            if node == NODE_A:
                return httpx.Response(500)
            return rpc_result(request, {})

        client = make_client(handler)
        for _ in range(5):
            await client.get_dynamic_global_properties()

        assert client.breaker(NODE_A).state == CircuitState.OPEN
        # Three failures open node A; later calls go straight to node B
        assert calls[NODE_A] == 3
        assert calls[NODE_B] == 5
        assert client.ordered_nodes() == [NODE_B]

    @pytest.mark.asyncio
    async def test_all_circuits_open(self):
        client = make_client(lambda request: httpx.Response(500))
        for node in (NODE_A, NODE_B):
            for _ in range(3):
                client.breaker(node).record_failure()

        with pytest.raises(HiveAPIError) as exc_info:
            await client.get_dynamic_global_properties()
        assert "all node circuits are open" in str(exc_info.value)

    def test_ordered_nodes_prefers_closed(self):
        client = make_client(lambda request: httpx.Response(200))
        breaker = client.breaker(NODE_A)
        breaker._set_state(CircuitState.HALF_OPEN)

        assert client.ordered_nodes() == [NODE_B, NODE_A]


class TestCheckNode:
    """Tests for the health probe."""

    @pytest.mark.asyncio
    async def test_reachable(self):
        client = make_client(lambda request: rpc_result(request, {}))
        assert await client.check_node(NODE_A) is True

    @pytest.mark.asyncio
    async def test_unreachable(self):
        client = make_client(lambda request: httpx.Response(502))
        assert await client.check_node(NODE_A) is False


class TestHandleHiveError:
    """Tests for node error mapping."""

    @pytest.mark.parametrize(
        ("message", "code"),
        [
            ("Insufficient Resource Credits to broadcast", "INSUFFICIENT_RC"),
            ("missing required posting authority: alice", "MISSING_AUTHORITY"),
            ("Duplicate transaction check failed", "DUPLICATE_POST"),
            ("Account does not exist: bob", "ACCOUNT_NOT_FOUND"),
            ("something else", "UNKNOWN_ERROR"),
        ],
    )
    def test_maps_known_messages(self, message, code):
        assert handle_hive_error(Exception(message)).code == code

    def test_passes_hive_errors_through(self):
        original = HiveAPIError("down")
        assert handle_hive_error(original) is original

    def test_empty_message(self):
        error = handle_hive_error("")
        assert isinstance(error, HiveError)
        assert error.message == "An unknown error occurred"
