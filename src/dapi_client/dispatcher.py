"""
Call dispatcher - runs exactly one remote operation end-to-end.

acquire connection -> build typed request -> call -> classify -> release.
The release step runs on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp
import grpc

from .errors import HttpError, JsonRpcError, TransportError
from .node.address import NodeAddress
from .node.manager import ConnectionManager
from .node.state import TransportKind
from .normalizer import classify_failure
from .result import CallResult
from .schema import MessageRegistry, RemoteProcedure

logger = logging.getLogger(__name__)

#: Statuses that suggest the masternode itself is unhealthy.
UNHEALTHY_STATUSES = frozenset({grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.DEADLINE_EXCEEDED})


class CallDispatcher:
    """Executes remote calls one at a time over a ``ConnectionManager``."""

    def __init__(
        self,
        connections: ConnectionManager,
        messages: MessageRegistry,
    ) -> None:
        self.connections = connections
        self.messages = messages
        self._lock = asyncio.Lock()
        self._stats = {
            "calls": 0,
            "ok": 0,
            "not_found": 0,
            "transport_errors": 0,
        }

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    async def invoke(
        self,
        kind: TransportKind,
        procedure: RemoteProcedure,
        fields: Mapping[str, Any] | None = None,
    ) -> CallResult:
        """Run ``procedure`` over ``kind`` and return its tagged outcome.

        gRPC failures are returned as ``CallResult`` values. JSON-RPC
        failures are raised: ``HttpError``, ``JsonRpcError``, or
        ``TransportError`` when the masternode cannot be reached.
        """
        fields = fields or {}
        async with self._lock:
            self._stats["calls"] += 1
            try:
                handle = await self.connections.acquire(kind)
                if kind is TransportKind.GRPC:
                    result = await self._call_grpc(handle, procedure, fields)
                else:
                    result = await self._call_jsonrpc(handle, procedure, fields)
            finally:
                await self.connections.release(kind)
        return result

    async def _call_grpc(self, handle: Any, procedure: RemoteProcedure, fields: Mapping[str, Any]) -> CallResult:
        bound = self.messages.bind(procedure)
        request = bound.build(fields)
        try:
            response = await handle.call(bound, request, timeout=self.connections.config.call_timeout)
        except grpc.RpcError as e:
            code = e.code()
            if code in UNHEALTHY_STATUSES:
                self._report(handle.address, failed=True)
            result = classify_failure(code, e.details() or "", not_found_is_absent=procedure.not_found_is_absent)
            if result.is_not_found:
                self._stats["not_found"] += 1
            else:
                self._stats["transport_errors"] += 1
            return result

        self._report(handle.address, failed=False)
        self._stats["ok"] += 1
        return CallResult.ok(response)

    async def _call_jsonrpc(self, handle: Any, procedure: RemoteProcedure, params: Mapping[str, Any]) -> CallResult:
        try:
            result = await handle.call(procedure, params)
        except (HttpError, JsonRpcError) as e:
            self._stats["transport_errors"] += 1
            logger.warning("jRPC %s failed: %s", procedure.name, e)
            raise
        except (aiohttp.ClientError, TimeoutError) as e:
            self._stats["transport_errors"] += 1
            self._report(handle.address, failed=True)
            logger.warning("jRPC %s to %s failed: %r", procedure.name, handle.address.jrpc_url, e)
            raise TransportError("UNAVAILABLE", str(e) or type(e).__name__) from e
        self._report(handle.address, failed=False)
        self._stats["ok"] += 1
        return CallResult.ok(result)

    def _report(self, address: NodeAddress, *, failed: bool) -> None:
        provider = self.connections.provider
        hook = getattr(provider, "report_failure" if failed else "report_success", None)
        if hook is not None:
            hook(address)
