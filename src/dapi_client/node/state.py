"""
Per-transport connection state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from .address import NodeAddress

if TYPE_CHECKING:
    from .handles import ConnectionHandle


class TransportKind(StrEnum):
    """The two transports a masternode serves."""

    GRPC = "grpc"
    JSON_RPC = "json_rpc"


@dataclass
class ConnectionState:
    """Connection state for one transport kind.

    ``handle`` is set only while the connection is live and is always
    bound to ``address``; ``ConnectionManager`` is the only writer.
    """

    kind: TransportKind
    address: NodeAddress | None = None
    handle: ConnectionHandle | None = None
    opened_at: float = 0.0
    calls: int = 0

    @property
    def is_live(self) -> bool:
        return self.handle is not None

    def attach(self, address: NodeAddress, handle: ConnectionHandle) -> None:
        self.address = address
        self.handle = handle
        self.opened_at = time.time()
        self.calls = 0

    def clear(self) -> None:
        self.address = None
        self.handle = None
        self.opened_at = 0.0
        self.calls = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "host": self.address.host if self.address else None,
            "is_live": self.is_live,
            "opened_at": self.opened_at,
            "calls": self.calls,
        }
