"""
Masternode address.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..config import DEFAULT_GRPC_PORT, DEFAULT_JRPC_PORT


@dataclass(frozen=True)
class NodeAddress:
    """Host of one masternode plus the ports of its two transports."""

    host: str
    grpc_port: int = DEFAULT_GRPC_PORT
    jrpc_port: int = DEFAULT_JRPC_PORT

    def __post_init__(self) -> None:
        # IPv6 literals are stored without brackets
        if self.host.startswith("[") and self.host.endswith("]"):
            object.__setattr__(self, "host", self.host[1:-1])
        if not self.host:
            raise ValueError("host must not be empty")

    @property
    def netloc_host(self) -> str:
        """Host as it appears before a ``:port`` suffix (IPv6 bracketed)."""
        return f"[{self.host}]" if ":" in self.host else self.host

    @property
    def grpc_target(self) -> str:
        return f"{self.netloc_host}:{self.grpc_port}"

    @property
    def jrpc_url(self) -> str:
        return f"http://{self.netloc_host}:{self.jrpc_port}/"

    @classmethod
    def parse(
        cls,
        value: str,
        *,
        grpc_port: int = DEFAULT_GRPC_PORT,
        jrpc_port: int = DEFAULT_JRPC_PORT,
    ) -> NodeAddress:
        """Build an address from ``"host"`` or ``"host:port"``.

        IPv6 literals are accepted bare (``"::1"``) or bracketed
        (``"[::1]"``, ``"[::1]:4010"``). An explicit port in ``value``
        overrides ``grpc_port``.
        """
        value = value.strip()
        if value.startswith("["):
            host, sep, rest = value[1:].partition("]")
            if not sep or (rest and not (rest.startswith(":") and rest[1:].isdigit())):
                raise ValueError(f"malformed address: {value!r}")
            port = int(rest[1:]) if rest else grpc_port
            return cls(host=host, grpc_port=port, jrpc_port=jrpc_port)
        host, sep, port = value.rpartition(":")
        if sep and port.isdigit() and ":" not in host:
            return cls(host=host, grpc_port=int(port), jrpc_port=jrpc_port)
        return cls(host=value, grpc_port=grpc_port, jrpc_port=jrpc_port)

    def __str__(self) -> str:
        return self.host
