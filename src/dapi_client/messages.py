"""
Request and response models that are not plain protobuf messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import cbor2


@dataclass
class DocumentQuery:
    """Selects, sorts and paginates documents of one type.

    ``where`` is a list of ``[field, operator, value]`` clauses and
    ``order_by`` a list of ``[field, "asc" | "desc"]`` pairs. Both are sent
    to the masternode CBOR-encoded.
    """

    where: list[list[Any]] = field(default_factory=list)
    order_by: list[list[str]] = field(default_factory=list)
    limit: int = 100
    start_after: int = 0
    start_at: int = 0

    def add_where(self, field_name: str, operator: str, value: Any) -> DocumentQuery:
        self.where.append([field_name, operator, value])
        return self

    def add_order_by(self, field_name: str, ascending: bool = True) -> DocumentQuery:
        self.order_by.append([field_name, "asc" if ascending else "desc"])
        return self

    def encode_where(self) -> bytes:
        return cbor2.dumps(self.where)

    def encode_order_by(self) -> bytes:
        return cbor2.dumps(self.order_by)

    def to_request_fields(self) -> dict[str, Any]:
        return {
            "where": self.encode_where(),
            "order_by": self.encode_order_by(),
            "limit": self.limit,
            "start_after": self.start_after,
            "start_at": self.start_at,
        }


@dataclass
class GetStatusResponse:
    """Status report of a masternode's core node."""

    core_version: int = 0
    protocol_version: int = 0
    blocks: int = 0
    time_offset: int = 0
    connections: int = 0
    proxy: str = ""
    difficulty: float = 0.0
    testnet: bool = False
    relay_fee: float = 0.0
    errors: str = ""
    network: str = ""

    @classmethod
    def from_message(cls, message: Any) -> GetStatusResponse:
        """Copy the status fields out of a ``GetStatusResponse`` protobuf message."""
        return cls(
            **{name: getattr(message, name) for name in cls.__dataclass_fields__ if hasattr(message, name)}
        )

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass
class JsonRpcRequest:
    """Body of a JSON-RPC call."""

    method: str
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"method": self.method, "params": self.params}
