"""
Client exceptions.
"""

from __future__ import annotations


class DapiError(Exception):
    """Base exception for DAPI client errors."""

    pass


class PreconditionViolation(DapiError, ValueError):
    """Raised when caller input is rejected before any network activity."""

    pass


class TransportError(DapiError):
    """Raised when a remote call fails with a status other than not-found."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(f"RPC failed: {code}: {message}" if message else f"RPC failed: {code}")


class HttpError(DapiError):
    """Raised when the JSON-RPC endpoint answers with a non-2xx status."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"jRPC error code: {status}")


class JsonRpcError(DapiError):
    """Raised when a JSON-RPC response carries an error member or is malformed."""

    def __init__(self, code: int | None, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"jRPC error {code}: {message}")


class SchemaError(DapiError):
    """Raised when a message type cannot be resolved from the supplied modules."""

    pass


class NodeError(DapiError):
    """Base exception for node selection errors."""

    pass


class NoMasternodesAvailableError(NodeError):
    """Raised when a node provider is built with no candidates."""

    pass
