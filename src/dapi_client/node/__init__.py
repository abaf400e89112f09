"""
Masternode selection and connection lifecycle.

Submodules:
- address.py: NodeAddress
- providers.py: NodeProvider, FixedNode, RotatingNodeSet, selection strategies
- failover.py: FailoverState
- state.py: TransportKind, ConnectionState
- handles.py: GrpcHandle, JsonRpcHandle
- manager.py: ConnectionManager
"""

from .address import NodeAddress
from .failover import FailoverState
from .handles import ConnectionHandle, Connector, GrpcHandle, JsonRpcHandle
from .manager import ConnectionManager
from .providers import (
    FixedNode,
    NodeProvider,
    RotatingNodeSet,
    RoundRobin,
    random_choice,
)
from .state import ConnectionState, TransportKind

__all__ = [
    # Addressing
    "NodeAddress",
    # Providers
    "NodeProvider",
    "FixedNode",
    "RotatingNodeSet",
    "RoundRobin",
    "random_choice",
    "FailoverState",
    # Connections
    "TransportKind",
    "ConnectionState",
    "ConnectionHandle",
    "Connector",
    "GrpcHandle",
    "JsonRpcHandle",
    "ConnectionManager",
]
