"""
Client configuration.

Ports, timeouts and the connection rotation policy used by ``DapiClient``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

#: Default port of the binary (gRPC) transport.
DEFAULT_GRPC_PORT = 3010

#: Default port of the JSON-RPC transport.
DEFAULT_JRPC_PORT = 3000

#: Idle timeout of a gRPC channel, in seconds.
DEFAULT_IDLE_TIMEOUT = 5.0

#: How long a closing connection may take before it is abandoned, in seconds.
DEFAULT_SHUTDOWN_GRACE = 5.0

#: Connect/read timeout of the JSON-RPC HTTP client, in seconds.
DEFAULT_HTTP_TIMEOUT = 10.0


@dataclass
class ClientConfig:
    """Configuration for a ``DapiClient``.

    With ``rotate_connection_per_call`` enabled (the default) the binary
    connection is torn down after every call, so the next call asks the
    node provider for a fresh masternode. Disabled, the first selected
    masternode is kept until ``shutdown()``.
    """

    grpc_port: int = DEFAULT_GRPC_PORT
    jrpc_port: int = DEFAULT_JRPC_PORT
    rotate_connection_per_call: bool = True
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    #: Optional deadline for each gRPC call. None leaves it to the channel.
    call_timeout: float | None = None

    #: Log JSON-RPC requests and responses at DEBUG level.
    debug: bool = False

    def __post_init__(self) -> None:
        for name in ("grpc_port", "jrpc_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                raise ValueError(f"{name} must be in 1..65535, got {port}")
        for name in ("idle_timeout", "shutdown_grace", "http_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.call_timeout is not None and self.call_timeout <= 0:
            raise ValueError("call_timeout must be positive")

    def to_dict(self) -> dict[str, Any]:
        return {
            "grpc_port": self.grpc_port,
            "jrpc_port": self.jrpc_port,
            "rotate_connection_per_call": self.rotate_connection_per_call,
            "idle_timeout": self.idle_timeout,
            "shutdown_grace": self.shutdown_grace,
            "http_timeout": self.http_timeout,
            "call_timeout": self.call_timeout,
            "debug": self.debug,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
