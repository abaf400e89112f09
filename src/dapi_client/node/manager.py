"""
Connection manager - owns the lifecycle of the live masternode connections.

One ``ConnectionState`` is kept per transport kind. All transitions
(open, reuse, close, abandon) happen here.

Under the rotate policy the gRPC connection is closed after every call,
so the next call asks the node provider for a (possibly different)
masternode. The JSON-RPC session is never closed per call; a rotating
client replaces it on the next acquisition instead.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from ..config import ClientConfig
from .handles import ConnectionHandle, Connector, GrpcHandle, JsonRpcHandle
from .providers import NodeProvider
from .state import ConnectionState, TransportKind

logger = logging.getLogger(__name__)

DEFAULT_CONNECTORS: dict[TransportKind, Connector] = {
    TransportKind.GRPC: GrpcHandle.open,
    TransportKind.JSON_RPC: JsonRpcHandle.open,
}

#: Transports closed by ``release()`` under the rotate policy.
PER_CALL_TEARDOWN: frozenset[TransportKind] = frozenset({TransportKind.GRPC})


class ConnectionManager:
    """Creates, reuses and tears down transport connections.

    Usage::

        manager = ConnectionManager(FixedNode("10.0.0.1"), ClientConfig())

        handle = await manager.acquire(TransportKind.GRPC)
        try:
            ...
        finally:
            await manager.release(TransportKind.GRPC)

        await manager.shutdown_all()
    """

    def __init__(
        self,
        provider: NodeProvider,
        config: ClientConfig | None = None,
        *,
        connectors: Mapping[TransportKind, Connector] | None = None,
    ) -> None:
        self.provider = provider
        self.config = config or ClientConfig()
        self._connectors: dict[TransportKind, Connector] = {**DEFAULT_CONNECTORS, **(connectors or {})}
        self._states: dict[TransportKind, ConnectionState] = {kind: ConnectionState(kind) for kind in TransportKind}
        self._stats = {
            "opened": 0,
            "closed": 0,
            "abandoned": 0,
        }

    @property
    def rotate(self) -> bool:
        return self.config.rotate_connection_per_call

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    def state(self, kind: TransportKind) -> ConnectionState:
        return self._states[kind]

    async def acquire(self, kind: TransportKind) -> ConnectionHandle:
        """Return a usable handle for ``kind``, opening one if needed.

        With the reuse policy a live handle is returned unchanged and the
        provider is not consulted again.
        """
        state = self._states[kind]
        if state.is_live and not self.rotate:
            state.calls += 1
            return state.handle

        if state.is_live:
            # Rotating and still live: only JSON-RPC gets here.
            await self._close(state)

        address = self.provider.next()
        handle = self._connectors[kind](address, self.config)
        state.attach(address, handle)
        state.calls += 1
        self._stats["opened"] += 1
        logger.debug("Acquired %s connection to %s", kind.value, address.host)
        return handle

    async def release(self, kind: TransportKind) -> None:
        """Tear down the connection for ``kind`` if the policy rotates it."""
        if not self.rotate or kind not in PER_CALL_TEARDOWN:
            return
        state = self._states[kind]
        if state.is_live:
            await self._close(state)

    async def shutdown_all(self) -> None:
        """Close every live handle regardless of policy. Safe to call repeatedly."""
        for state in self._states.values():
            if state.is_live:
                await self._close(state)

    async def _close(self, state: ConnectionState) -> None:
        handle = state.handle
        address = state.address
        state.clear()
        try:
            closed = await handle.close(self.config.shutdown_grace)
        except Exception as e:
            # Teardown must not replace the outcome of the call it follows.
            logger.warning("Closing %s connection failed: %s", state.kind.value, e)
            closed = False
        if closed:
            self._stats["closed"] += 1
        else:
            self._stats["abandoned"] += 1
        logger.debug("Released %s connection to %s", state.kind.value, address.host if address else "?")
