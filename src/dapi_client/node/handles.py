"""
Connection handles for the two masternode transports.

Opening a handle only builds the local channel/session object; the
masternode is first contacted by the first call made over it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import aiohttp
import grpc

from ..config import ClientConfig
from ..errors import HttpError, JsonRpcError
from ..messages import JsonRpcRequest
from .address import NodeAddress

logger = logging.getLogger(__name__)


class ConnectionHandle(Protocol):
    """A live connection to one masternode over one transport."""

    address: NodeAddress

    async def call(self, procedure: Any, request: Any, *, timeout: float | None = None) -> Any: ...

    async def close(self, grace: float) -> bool: ...


Connector = Callable[[NodeAddress, ClientConfig], ConnectionHandle]


class GrpcHandle:
    """Plaintext ``grpc.aio`` channel to a masternode's gRPC port."""

    def __init__(self, address: NodeAddress, channel: grpc.aio.Channel) -> None:
        self.address = address
        self.channel = channel

    @classmethod
    def open(cls, address: NodeAddress, config: ClientConfig) -> GrpcHandle:
        options = [("grpc.client_idle_timeout_ms", int(config.idle_timeout * 1000))]
        channel = grpc.aio.insecure_channel(address.grpc_target, options=options)
        logger.debug("Opened gRPC channel to %s", address.grpc_target)
        return cls(address, channel)

    async def call(self, procedure: Any, request: Any, *, timeout: float | None = None) -> Any:
        """Invoke a unary method; ``procedure`` is a ``BoundProcedure``."""
        method = self.channel.unary_unary(
            procedure.path,
            request_serializer=procedure.serialize,
            response_deserializer=procedure.deserialize,
        )
        return await method(request, timeout=timeout)

    async def close(self, grace: float) -> bool:
        """Close the channel, waiting up to ``grace`` seconds.

        Returns False when the wait expired and the channel was abandoned.
        """
        try:
            await asyncio.wait_for(self.channel.close(grace), timeout=grace)
        except TimeoutError:
            logger.warning(
                "gRPC channel to %s did not shut down within %.1fs, abandoning it",
                self.address.grpc_target,
                grace,
            )
            return False
        logger.debug("Closed gRPC channel to %s", self.address.grpc_target)
        return True


def _debug_trace_config() -> aiohttp.TraceConfig:
    async def on_request_start(session, context, params) -> None:
        logger.debug("--> %s %s", params.method, params.url)

    async def on_request_end(session, context, params) -> None:
        logger.debug("<-- %s %s (%d)", params.method, params.url, params.response.status)

    async def on_request_exception(session, context, params) -> None:
        logger.debug("<-- %s %s failed: %s", params.method, params.url, params.exception)

    trace_config = aiohttp.TraceConfig()
    trace_config.on_request_start.append(on_request_start)
    trace_config.on_request_end.append(on_request_end)
    trace_config.on_request_exception.append(on_request_exception)
    return trace_config


class JsonRpcHandle:
    """HTTP session posting JSON-RPC calls to ``http://host:port/``."""

    def __init__(self, address: NodeAddress, session: aiohttp.ClientSession, *, debug: bool = False) -> None:
        self.address = address
        self.session = session
        self.debug = debug

    @classmethod
    def open(cls, address: NodeAddress, config: ClientConfig) -> JsonRpcHandle:
        timeout = aiohttp.ClientTimeout(
            total=None,
            connect=config.http_timeout,
            sock_connect=config.http_timeout,
            sock_read=config.http_timeout,
        )
        session = aiohttp.ClientSession(
            timeout=timeout,
            trace_configs=[_debug_trace_config()] if config.debug else None,
        )
        logger.debug("Opened JSON-RPC session to %s", address.jrpc_url)
        return cls(address, session, debug=config.debug)

    async def call(self, procedure: Any, request: Mapping[str, Any], *, timeout: float | None = None) -> Any:
        """POST ``{"method", "params"}`` and return the ``result`` member.

        Raises:
            HttpError: The endpoint answered with a non-2xx status.
            JsonRpcError: The body carries a JSON-RPC ``error`` member, is
                not valid JSON, or is not a JSON object.
        """
        body = JsonRpcRequest(method=procedure.name, params=dict(request)).to_dict()
        if self.debug:
            logger.debug("--> %s", body)

        kwargs: dict[str, Any] = {"json": body}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        async with self.session.post(self.address.jrpc_url, **kwargs) as resp:
            if not 200 <= resp.status < 300:
                raise HttpError(resp.status)
            try:
                data = await resp.json(content_type=None)
            except ValueError as e:
                raise JsonRpcError(None, f"malformed response: {e}") from e

        if self.debug:
            logger.debug("<-- %s", data)

        if not isinstance(data, dict):
            raise JsonRpcError(None, f"malformed response: {data!r}")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise JsonRpcError(error.get("code"), str(error.get("message", "")))
            raise JsonRpcError(None, str(error))
        return data.get("result")

    async def close(self, grace: float) -> bool:
        try:
            await asyncio.wait_for(self.session.close(), timeout=grace)
        except TimeoutError:
            logger.warning(
                "JSON-RPC session to %s did not close within %.1fs, abandoning it",
                self.address.jrpc_url,
                grace,
            )
            return False
        logger.debug("Closed JSON-RPC session to %s", self.address.jrpc_url)
        return True
