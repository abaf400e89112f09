"""
Remote procedure table.

The protobuf definitions of DAPI live outside this library. Each
``RemoteProcedure`` names the gRPC method, the request/response message
types, and whether "not found" is an expected answer. ``MessageRegistry``
resolves the message classes from generated ``*_pb2`` modules supplied by
the caller, so any compatible build of the schema can be plugged in.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import ModuleType
from typing import Any

from .errors import SchemaError

PLATFORM_SERVICE = "org.dash.platform.dapi.v0.Platform"
CORE_SERVICE = "org.dash.platform.dapi.v0.Core"


@dataclass(frozen=True)
class RemoteProcedure:
    """One remote operation exposed by a masternode."""

    name: str
    service: str
    request_type: str = ""
    response_type: str = ""
    not_found_is_absent: bool = False

    @property
    def path(self) -> str:
        return f"/{self.service}/{self.name}"


PROCEDURES: dict[str, RemoteProcedure] = {
    p.name: p
    for p in (
        # Platform
        RemoteProcedure(
            "applyStateTransition",
            PLATFORM_SERVICE,
            "ApplyStateTransitionRequest",
            "ApplyStateTransitionResponse",
        ),
        RemoteProcedure(
            "getIdentity",
            PLATFORM_SERVICE,
            "GetIdentityRequest",
            "GetIdentityResponse",
            not_found_is_absent=True,
        ),
        RemoteProcedure(
            "getDataContract",
            PLATFORM_SERVICE,
            "GetDataContractRequest",
            "GetDataContractResponse",
            not_found_is_absent=True,
        ),
        RemoteProcedure(
            "getDocuments",
            PLATFORM_SERVICE,
            "GetDocumentsRequest",
            "GetDocumentsResponse",
        ),
        # Core
        RemoteProcedure("getStatus", CORE_SERVICE, "GetStatusRequest", "GetStatusResponse"),
        RemoteProcedure(
            "getBlock",
            CORE_SERVICE,
            "GetBlockRequest",
            "GetBlockResponse",
            not_found_is_absent=True,
        ),
        RemoteProcedure(
            "sendTransaction",
            CORE_SERVICE,
            "SendTransactionRequest",
            "SendTransactionResponse",
        ),
        RemoteProcedure(
            "getTransaction",
            CORE_SERVICE,
            "GetTransactionRequest",
            "GetTransactionResponse",
            not_found_is_absent=True,
        ),
        # JSON-RPC
        RemoteProcedure("getBestBlockHash", "jsonrpc"),
    )
}


@dataclass(frozen=True)
class BoundProcedure:
    """A ``RemoteProcedure`` with its message classes resolved."""

    procedure: RemoteProcedure
    request_class: type
    response_class: type

    @property
    def name(self) -> str:
        return self.procedure.name

    @property
    def path(self) -> str:
        return self.procedure.path

    @property
    def not_found_is_absent(self) -> bool:
        return self.procedure.not_found_is_absent

    def build(self, fields: Mapping[str, Any]) -> Any:
        return self.request_class(**fields)

    def serialize(self, message: Any) -> bytes:
        return message.SerializeToString()

    def deserialize(self, data: bytes) -> Any:
        return self.response_class.FromString(data)


class MessageRegistry:
    """Looks up request/response message classes across generated modules.

    Usage::

        # core_pb2 and platform_pb2 generated by grpcio-tools from the DAPI protos
        registry = MessageRegistry(platform_pb2, core_pb2)
        bound = registry.bind(PROCEDURES["getIdentity"])
        request = bound.build({"id": identity_id})
    """

    def __init__(self, *modules: ModuleType | Any) -> None:
        self._modules = modules
        self._bound: dict[str, BoundProcedure] = {}

    def resolve(self, type_name: str) -> type:
        for module in self._modules:
            message_class = getattr(module, type_name, None)
            if message_class is not None:
                return message_class
        raise SchemaError(f"Message type {type_name!r} not found in supplied modules")

    def bind(self, procedure: RemoteProcedure) -> BoundProcedure:
        bound = self._bound.get(procedure.path)
        if bound is None:
            bound = BoundProcedure(
                procedure=procedure,
                request_class=self.resolve(procedure.request_type),
                response_class=self.resolve(procedure.response_type),
            )
            self._bound[procedure.path] = bound
        return bound
