"""
DAPI client - masternode access over gRPC and JSON-RPC.

Each call is routed to one masternode chosen by a node provider; the
connection is either rotated per call or reused for the client's lifetime.
"""

__version__ = "0.1.0"

from dapi_client.client import DapiClient, create_dapi_client
from dapi_client.config import (
    DEFAULT_GRPC_PORT,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_JRPC_PORT,
    DEFAULT_SHUTDOWN_GRACE,
    ClientConfig,
)
from dapi_client.dispatcher import CallDispatcher
from dapi_client.errors import (
    DapiError,
    HttpError,
    JsonRpcError,
    NodeError,
    NoMasternodesAvailableError,
    PreconditionViolation,
    SchemaError,
    TransportError,
)
from dapi_client.messages import DocumentQuery, GetStatusResponse, JsonRpcRequest
from dapi_client.node import (
    ConnectionManager,
    ConnectionState,
    FailoverState,
    FixedNode,
    GrpcHandle,
    JsonRpcHandle,
    NodeAddress,
    NodeProvider,
    RotatingNodeSet,
    RoundRobin,
    TransportKind,
    random_choice,
)
from dapi_client.normalizer import classify_failure, normalize_payload
from dapi_client.result import CallResult, Outcome
from dapi_client.schema import PROCEDURES, BoundProcedure, MessageRegistry, RemoteProcedure

__all__ = [
    "__version__",
    # Client
    "DapiClient",
    "create_dapi_client",
    "CallDispatcher",
    # Config
    "ClientConfig",
    "DEFAULT_GRPC_PORT",
    "DEFAULT_JRPC_PORT",
    "DEFAULT_IDLE_TIMEOUT",
    "DEFAULT_SHUTDOWN_GRACE",
    "DEFAULT_HTTP_TIMEOUT",
    # Errors
    "DapiError",
    "PreconditionViolation",
    "TransportError",
    "HttpError",
    "JsonRpcError",
    "SchemaError",
    "NodeError",
    "NoMasternodesAvailableError",
    # Node selection
    "NodeAddress",
    "NodeProvider",
    "FixedNode",
    "RotatingNodeSet",
    "RoundRobin",
    "random_choice",
    "FailoverState",
    # Connections
    "TransportKind",
    "ConnectionState",
    "ConnectionManager",
    "GrpcHandle",
    "JsonRpcHandle",
    # Results
    "CallResult",
    "Outcome",
    "normalize_payload",
    "classify_failure",
    # Schema
    "RemoteProcedure",
    "BoundProcedure",
    "MessageRegistry",
    "PROCEDURES",
    # Messages
    "DocumentQuery",
    "GetStatusResponse",
    "JsonRpcRequest",
]
