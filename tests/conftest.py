"""
Shared fixtures: fake protobuf modules and a scriptable fake masternode.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import grpc
import pytest

from dapi_client.config import ClientConfig
from dapi_client.node.address import NodeAddress
from dapi_client.node.providers import FixedNode
from dapi_client.node.state import TransportKind
from dapi_client.schema import MessageRegistry

# =============================================================================
# FAKE PROTOBUF MESSAGES
# =============================================================================


class FakeMessage:
    """Stands in for a generated protobuf message class."""

    DEFAULTS: dict[str, Any] = {}

    def __init__(self, **fields: Any) -> None:
        self.fields = {**self.DEFAULTS, **fields}
        for name, value in self.fields.items():
            setattr(self, name, value)

    def SerializeToString(self) -> bytes:
        return repr(sorted(self.fields.items())).encode()

    @classmethod
    def FromString(cls, data: bytes) -> FakeMessage:
        return cls(raw=data)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.fields == other.fields

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.fields!r})"


def _message(name: str, **defaults: Any) -> type[FakeMessage]:
    return type(name, (FakeMessage,), {"DEFAULTS": defaults})


platform_pb2 = SimpleNamespace(
    ApplyStateTransitionRequest=_message("ApplyStateTransitionRequest"),
    ApplyStateTransitionResponse=_message("ApplyStateTransitionResponse"),
    GetIdentityRequest=_message("GetIdentityRequest"),
    GetIdentityResponse=_message("GetIdentityResponse", identity=b""),
    GetDataContractRequest=_message("GetDataContractRequest"),
    GetDataContractResponse=_message("GetDataContractResponse", data_contract=b""),
    GetDocumentsRequest=_message("GetDocumentsRequest"),
    GetDocumentsResponse=_message("GetDocumentsResponse", documents=[]),
)

core_pb2 = SimpleNamespace(
    GetStatusRequest=_message("GetStatusRequest"),
    GetStatusResponse=_message(
        "GetStatusResponse",
        core_version=180000,
        protocol_version=70218,
        blocks=1234,
        time_offset=0,
        connections=8,
        proxy="",
        difficulty=0.0015,
        testnet=True,
        relay_fee=0.00001,
        errors="",
        network="testnet",
    ),
    GetBlockRequest=_message("GetBlockRequest"),
    GetBlockResponse=_message("GetBlockResponse", block=b""),
    SendTransactionRequest=_message("SendTransactionRequest"),
    SendTransactionResponse=_message("SendTransactionResponse", transaction_id=""),
    GetTransactionRequest=_message("GetTransactionRequest"),
    GetTransactionResponse=_message("GetTransactionResponse", transaction=b""),
)


def rpc_error(code: grpc.StatusCode, details: str = "") -> grpc.aio.AioRpcError:
    return grpc.aio.AioRpcError(code, grpc.aio.Metadata(), grpc.aio.Metadata(), details)


# =============================================================================
# FAKE MASTERNODE
# =============================================================================


class FakeHandle:
    """Connection handle whose calls are answered by a ``FakeMasternode``."""

    def __init__(self, node: FakeMasternode, kind: TransportKind, address: NodeAddress) -> None:
        self.node = node
        self.kind = kind
        self.address = address
        self.closed = False
        self.calls: list[tuple[str, Any]] = []

    async def call(self, procedure: Any, request: Any, *, timeout: float | None = None) -> Any:
        self.calls.append((procedure.name, request))
        self.node.requests.append((self.address, procedure.name, request))
        response = self.node.responses[procedure.name]
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self, grace: float) -> bool:
        self.closed = True
        return True


class FakeMasternode:
    """Scriptable masternode: set a response or an error per procedure name."""

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.requests: list[tuple[NodeAddress, str, Any]] = []
        self.handles: list[FakeHandle] = []

    def respond(self, name: str, response: Any) -> None:
        self.responses[name] = response

    def fail(self, name: str, code: grpc.StatusCode, details: str = "") -> None:
        self.responses[name] = rpc_error(code, details)

    def connector(self, kind: TransportKind):
        def connect(address: NodeAddress, config: ClientConfig) -> FakeHandle:
            handle = FakeHandle(self, kind, address)
            self.handles.append(handle)
            return handle

        return connect

    def connectors(self) -> dict[TransportKind, Any]:
        return {kind: self.connector(kind) for kind in TransportKind}

    def opened(self, kind: TransportKind) -> list[FakeHandle]:
        return [h for h in self.handles if h.kind is kind]


class CountingProvider:
    """Wraps a provider and counts ``next()`` calls."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.count = 0

    def next(self) -> NodeAddress:
        self.count += 1
        return self.inner.next()


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def messages():
    return MessageRegistry(platform_pb2, core_pb2)


@pytest.fixture
def masternode():
    return FakeMasternode()


@pytest.fixture
def provider():
    return CountingProvider(FixedNode("10.0.0.1"))
