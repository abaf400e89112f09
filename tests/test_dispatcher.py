"""
Tests for the CallDispatcher, ResponseNormalizer and CallResult.

Tests cover:
- Ok / NotFound / TransportError classification
- Release on every exit path
- Call serialization
- Failover reporting to the provider
- Payload normalization
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import aiohttp
import grpc
import pytest
from conftest import FakeMasternode, core_pb2, platform_pb2, rpc_error

from dapi_client.config import ClientConfig
from dapi_client.dispatcher import CallDispatcher
from dapi_client.errors import HttpError, TransportError
from dapi_client.node.manager import ConnectionManager
from dapi_client.node.providers import RotatingNodeSet, RoundRobin
from dapi_client.node.state import TransportKind
from dapi_client.normalizer import classify_failure, normalize_payload
from dapi_client.result import CallResult, Outcome
from dapi_client.schema import PROCEDURES

GRPC = TransportKind.GRPC


def make_dispatcher(provider, masternode: FakeMasternode, messages, *, rotate: bool = True) -> CallDispatcher:
    manager = ConnectionManager(
        provider,
        ClientConfig(rotate_connection_per_call=rotate),
        connectors=masternode.connectors(),
    )
    return CallDispatcher(manager, messages)


# =============================================================================
# CALL RESULT TESTS
# =============================================================================


class TestCallResult:
    """Tests for CallResult."""

    def test_ok_unwraps_payload(self):
        result = CallResult.ok(b"payload")
        assert result.outcome is Outcome.OK
        assert result.is_ok
        assert result.unwrap() == b"payload"

    def test_not_found_unwraps_to_none(self):
        result = CallResult.not_found()
        assert result.is_not_found
        assert result.unwrap() is None

    def test_transport_error_raises(self):
        result = CallResult.transport_error("UNAVAILABLE", "connection refused")
        with pytest.raises(TransportError) as exc_info:
            result.unwrap()
        assert exc_info.value.code == "UNAVAILABLE"
        assert exc_info.value.message == "connection refused"


# =============================================================================
# NORMALIZER TESTS
# =============================================================================


class TestNormalizer:
    """Tests for normalize_payload and classify_failure."""

    @pytest.mark.parametrize("raw", [None, b"", bytearray(), ""])
    def test_empty_payloads_are_absent(self, raw):
        assert normalize_payload(raw) is None

    def test_non_empty_payload_unchanged(self):
        assert normalize_payload(b"\x01") == b"\x01"
        assert normalize_payload([]) == []

    def test_not_found_absent_when_allowed(self):
        result = classify_failure(grpc.StatusCode.NOT_FOUND, "missing", not_found_is_absent=True)
        assert result.is_not_found

    def test_not_found_is_error_when_not_allowed(self):
        result = classify_failure(grpc.StatusCode.NOT_FOUND, "missing", not_found_is_absent=False)
        assert result.outcome is Outcome.TRANSPORT_ERROR
        assert result.code == "NOT_FOUND"

    def test_other_status_is_error(self, caplog):
        with caplog.at_level("WARNING"):
            result = classify_failure(grpc.StatusCode.INTERNAL, "oops", not_found_is_absent=True)
        assert result.code == "INTERNAL"
        assert "INTERNAL" in caplog.text


# =============================================================================
# DISPATCH TESTS
# =============================================================================


class TestInvoke:
    """Tests for CallDispatcher.invoke."""

    @pytest.mark.asyncio
    async def test_success_returns_ok(self, provider, masternode, messages):
        response = platform_pb2.GetIdentityResponse(identity=b"\x01\x02")
        masternode.respond("getIdentity", response)
        dispatcher = make_dispatcher(provider, masternode, messages)

        result = await dispatcher.invoke(GRPC, PROCEDURES["getIdentity"], {"id": "abc"})

        assert result.is_ok
        assert result.payload is response

    @pytest.mark.asyncio
    async def test_request_built_from_fields(self, provider, masternode, messages):
        masternode.respond("getIdentity", platform_pb2.GetIdentityResponse())
        dispatcher = make_dispatcher(provider, masternode, messages)

        await dispatcher.invoke(GRPC, PROCEDURES["getIdentity"], {"id": "abc"})

        _, name, request = masternode.requests[0]
        assert name == "getIdentity"
        assert request == platform_pb2.GetIdentityRequest(id="abc")

    @pytest.mark.asyncio
    async def test_not_found_for_lookup(self, provider, masternode, messages):
        masternode.fail("getIdentity", grpc.StatusCode.NOT_FOUND, "Identity not found")
        dispatcher = make_dispatcher(provider, masternode, messages)

        result = await dispatcher.invoke(GRPC, PROCEDURES["getIdentity"], {"id": "abc"})

        assert result.is_not_found
        assert dispatcher.stats["not_found"] == 1

    @pytest.mark.asyncio
    async def test_not_found_for_broadcast_is_error(self, provider, masternode, messages):
        masternode.fail("sendTransaction", grpc.StatusCode.NOT_FOUND)
        dispatcher = make_dispatcher(provider, masternode, messages)

        result = await dispatcher.invoke(GRPC, PROCEDURES["sendTransaction"], {"transaction": b"tx"})

        assert result.outcome is Outcome.TRANSPORT_ERROR
        assert result.code == "NOT_FOUND"
        assert dispatcher.stats["transport_errors"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome",
        ["ok", "not_found", "error"],
    )
    async def test_release_on_every_path(self, provider, masternode, messages, outcome):
        if outcome == "ok":
            masternode.respond("getBlock", core_pb2.GetBlockResponse(block=b"blk"))
        elif outcome == "not_found":
            masternode.fail("getBlock", grpc.StatusCode.NOT_FOUND)
        else:
            masternode.fail("getBlock", grpc.StatusCode.UNAVAILABLE)
        dispatcher = make_dispatcher(provider, masternode, messages)

        await dispatcher.invoke(GRPC, PROCEDURES["getBlock"], {"height": 1})

        assert dispatcher.connections.state(GRPC).is_live is False
        assert masternode.opened(GRPC)[0].closed is True

    @pytest.mark.asyncio
    async def test_release_on_unexpected_exception(self, provider, masternode, messages):
        masternode.respond("getStatus", RuntimeError("stub exploded"))
        dispatcher = make_dispatcher(provider, masternode, messages)

        with pytest.raises(RuntimeError):
            await dispatcher.invoke(GRPC, PROCEDURES["getStatus"])

        assert dispatcher.connections.state(GRPC).is_live is False

    @pytest.mark.asyncio
    async def test_reuse_policy_keeps_connection(self, provider, masternode, messages):
        masternode.respond("getStatus", core_pb2.GetStatusResponse())
        dispatcher = make_dispatcher(provider, masternode, messages, rotate=False)

        await dispatcher.invoke(GRPC, PROCEDURES["getStatus"])
        await dispatcher.invoke(GRPC, PROCEDURES["getStatus"])

        assert provider.count == 1
        assert dispatcher.connections.state(GRPC).is_live is True

    @pytest.mark.asyncio
    async def test_calls_are_serialized(self, provider, masternode, messages):
        dispatcher = make_dispatcher(provider, masternode, messages)
        active = 0
        peak = 0

        async def slow_call(procedure, request, *, timeout=None):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return core_pb2.GetStatusResponse()

        def connect(address, config):
            handle = MagicMock(address=address)
            handle.call = slow_call

            async def close(grace):
                return True

            handle.close = close
            return handle

        dispatcher.connections._connectors[GRPC] = connect

        await asyncio.gather(*(dispatcher.invoke(GRPC, PROCEDURES["getStatus"]) for _ in range(3)))

        assert peak == 1
        assert dispatcher.stats["calls"] == 3

    @pytest.mark.asyncio
    async def test_json_rpc_http_error_propagates(self, provider, masternode, messages):
        masternode.respond("getBestBlockHash", HttpError(503))
        dispatcher = make_dispatcher(provider, masternode, messages)

        with pytest.raises(HttpError):
            await dispatcher.invoke(TransportKind.JSON_RPC, PROCEDURES["getBestBlockHash"])

        assert dispatcher.stats["transport_errors"] == 1

    @pytest.mark.asyncio
    async def test_json_rpc_result(self, provider, masternode, messages):
        masternode.respond("getBestBlockHash", "00" * 32)
        dispatcher = make_dispatcher(provider, masternode, messages)

        result = await dispatcher.invoke(TransportKind.JSON_RPC, PROCEDURES["getBestBlockHash"])

        assert result.unwrap() == "00" * 32
        _, _, params = masternode.requests[0]
        assert params == {}

    @pytest.mark.asyncio
    async def test_json_rpc_connection_error_wrapped(self, provider, masternode, messages, caplog):
        cause = aiohttp.ClientConnectionError("refused")
        masternode.respond("getBestBlockHash", cause)
        dispatcher = make_dispatcher(provider, masternode, messages)

        with caplog.at_level("WARNING", logger="dapi_client.dispatcher"):
            with pytest.raises(TransportError) as exc_info:
                await dispatcher.invoke(TransportKind.JSON_RPC, PROCEDURES["getBestBlockHash"])

        assert exc_info.value.code == "UNAVAILABLE"
        assert exc_info.value.__cause__ is cause
        assert "getBestBlockHash" in caplog.text
        assert dispatcher.stats["transport_errors"] == 1
        assert dispatcher.stats["ok"] == 0

    @pytest.mark.asyncio
    async def test_json_rpc_timeout_wrapped(self, provider, masternode, messages):
        masternode.respond("getBestBlockHash", TimeoutError())
        dispatcher = make_dispatcher(provider, masternode, messages)

        with pytest.raises(TransportError) as exc_info:
            await dispatcher.invoke(TransportKind.JSON_RPC, PROCEDURES["getBestBlockHash"])

        assert exc_info.value.code == "UNAVAILABLE"
        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert dispatcher.stats["transport_errors"] == 1


# =============================================================================
# FAILOVER REPORTING TESTS
# =============================================================================


class TestFailoverReporting:
    """Unhealthy statuses push the masternode into cooldown."""

    @pytest.mark.asyncio
    async def test_unavailable_reports_failure(self, masternode, messages):
        provider = RotatingNodeSet(["10.0.0.1", "10.0.0.2"], strategy=RoundRobin())
        masternode.fail("getStatus", grpc.StatusCode.UNAVAILABLE, "connection refused")
        dispatcher = make_dispatcher(provider, masternode, messages)

        result = await dispatcher.invoke(GRPC, PROCEDURES["getStatus"])

        assert result.code == "UNAVAILABLE"
        failed = masternode.opened(GRPC)[0].address
        assert provider.failover_state(failed) is not None

    @pytest.mark.asyncio
    async def test_json_rpc_connection_error_reports_failure(self, masternode, messages):
        provider = RotatingNodeSet(["10.0.0.1"])
        masternode.respond("getBestBlockHash", aiohttp.ClientConnectionError("refused"))
        dispatcher = make_dispatcher(provider, masternode, messages)

        with pytest.raises(TransportError):
            await dispatcher.invoke(TransportKind.JSON_RPC, PROCEDURES["getBestBlockHash"])

        assert provider.failover_state(provider.candidates[0]) is not None

    @pytest.mark.asyncio
    async def test_not_found_does_not_report_failure(self, masternode, messages):
        provider = RotatingNodeSet(["10.0.0.1"])
        masternode.fail("getIdentity", grpc.StatusCode.NOT_FOUND)
        dispatcher = make_dispatcher(provider, masternode, messages)

        await dispatcher.invoke(GRPC, PROCEDURES["getIdentity"], {"id": "abc"})

        assert provider.failover_state(provider.candidates[0]) is None

    @pytest.mark.asyncio
    async def test_success_clears_failure(self, masternode, messages):
        provider = RotatingNodeSet(["10.0.0.1"])
        address = provider.candidates[0]
        provider.report_failure(address)
        masternode.respond("getStatus", core_pb2.GetStatusResponse())
        dispatcher = make_dispatcher(provider, masternode, messages)

        await dispatcher.invoke(GRPC, PROCEDURES["getStatus"])

        assert provider.failover_state(address) is None

    def test_rpc_error_helper(self):
        error = rpc_error(grpc.StatusCode.NOT_FOUND, "x")
        assert isinstance(error, grpc.RpcError)
        assert error.code() == grpc.StatusCode.NOT_FOUND
