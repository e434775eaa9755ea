"""Tests for RpcClient and BlockTimeResolver."""

import json

import httpx
import pytest

from services.incentives.src.incentives.adapters.aave_v3.rpc import (
    BlockTimeResolver,
    RpcClient,
    RpcError,
)
from services.incentives.src.incentives.domain.errors import BlockNotFoundError


def make_client(handler, **kwargs) -> RpcClient:
    return RpcClient(
        "http://rpc.mock",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
        **kwargs,
    )


def rpc_result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


class TestRpcClient:

    def test_sends_json_rpc_payload(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return rpc_result(request, "0x10")

        client = make_client(handler)

        assert client.get_block_number() == 16
        assert seen[0]["method"] == "eth_blockNumber"
        assert seen[0]["jsonrpc"] == "2.0"
        assert seen[0]["params"] == []

    def test_raises_on_json_rpc_error(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "boom"}})

        with pytest.raises(RpcError, match="boom"):
            make_client(handler).call("eth_blockNumber", [])

    def test_retries_transient_http_errors(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(503)
            return rpc_result(request, "0x1")

        assert make_client(handler).get_block_number() == 1
        assert len(calls) == 3

    def test_gives_up_after_max_tries(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(429)

        with pytest.raises(RpcError) as exc_info:
            make_client(handler, max_tries=2).get_block_number()

        assert exc_info.value.status_code == 429
        assert len(calls) == 2

    def test_does_not_retry_client_errors(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(401)

        with pytest.raises(RpcError):
            make_client(handler).get_block_number()

        assert len(calls) == 1

    def test_get_logs_returns_empty_list_for_null(self):
        client = make_client(lambda request: rpc_result(request, None))

        assert client.get_logs({"address": "0xpool"}) == []


class TestBlockTimeResolver:

    def test_parses_hex_timestamp(self):
        client = make_client(lambda request: rpc_result(request, {"timestamp": "0x6553f100"}))

        assert BlockTimeResolver(client).timestamp_of(100) == 0x6553F100

    def test_caches_lookups(self):
        calls = []

        def handler(request):
            calls.append(json.loads(request.content)["params"][0])
            return rpc_result(request, {"timestamp": "0x10"})

        resolver = BlockTimeResolver(make_client(handler))
        resolver(7)
        resolver(7)

        assert calls == [hex(7)]

    def test_missing_block_raises_block_not_found(self):
        resolver = BlockTimeResolver(make_client(lambda request: rpc_result(request, None)))

        with pytest.raises(BlockNotFoundError):
            resolver.timestamp_of(999)
