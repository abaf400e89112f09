"""
DAPI client - talks to one masternode at a time over gRPC and JSON-RPC.

Which masternode answers a call is decided by the node provider and the
rotation policy in ``ClientConfig``; callers only see typed results.
Lookups that can legitimately miss (identities, contracts, blocks,
transactions) return None instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from .config import ClientConfig
from .dispatcher import CallDispatcher
from .errors import PreconditionViolation
from .messages import DocumentQuery, GetStatusResponse
from .node.address import NodeAddress
from .node.handles import Connector
from .node.manager import ConnectionManager
from .node.providers import FixedNode, NodeProvider
from .node.state import TransportKind
from .normalizer import normalize_payload
from .result import CallResult
from .schema import PROCEDURES, MessageRegistry

logger = logging.getLogger(__name__)

BLOCK_HASH_LENGTH = 64


class SupportsSerialize(Protocol):
    def serialize(self) -> bytes: ...


class DapiClient:
    """Client for the DAPI services of a masternode.

    Usage::

        client = DapiClient(
            RotatingNodeSet(["10.0.0.1", "10.0.0.2"]),
            MessageRegistry(platform_pb2, core_pb2),
        )
        async with client:
            identity = await client.get_identity(identity_id)
            status = await client.get_status()
    """

    def __init__(
        self,
        provider: NodeProvider,
        messages: MessageRegistry,
        *,
        config: ClientConfig | None = None,
        connectors: Mapping[TransportKind, Connector] | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.connections = ConnectionManager(provider, self.config, connectors=connectors)
        self.dispatcher = CallDispatcher(self.connections, messages)

    @property
    def provider(self) -> NodeProvider:
        return self.connections.provider

    @property
    def stats(self) -> dict[str, int]:
        return {**self.dispatcher.stats, **self.connections.stats}

    def connection_status(self) -> dict[str, dict[str, Any]]:
        return {kind.value: self.connections.state(kind).to_dict() for kind in TransportKind}

    async def __aenter__(self) -> DapiClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Platform
    # ------------------------------------------------------------------

    async def apply_state_transition(self, state_transition: bytes | SupportsSerialize) -> None:
        """Submit a state transition to the platform."""
        if not isinstance(state_transition, (bytes, bytearray)):
            state_transition = state_transition.serialize()
        await self._grpc("applyStateTransition", state_transition=bytes(state_transition))

    async def get_identity(self, identity_id: str) -> bytes | None:
        """Fetch a serialized identity by id, or None if it does not exist."""
        response = await self._grpc("getIdentity", id=identity_id)
        return normalize_payload(response.identity) if response is not None else None

    async def get_data_contract(self, contract_id: str) -> bytes | None:
        """Fetch a serialized data contract by id, or None if it does not exist."""
        response = await self._grpc("getDataContract", id=contract_id)
        return normalize_payload(response.data_contract) if response is not None else None

    async def get_documents(self, contract_id: str, document_type: str, query: DocumentQuery) -> list[bytes]:
        """Fetch the documents of ``document_type`` matching ``query``.

        Returns an empty list when nothing matches.
        """
        response = await self._grpc(
            "getDocuments",
            data_contract_id=contract_id,
            document_type=document_type,
            **query.to_request_fields(),
        )
        return [bytes(document) for document in response.documents]

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    async def get_status(self) -> GetStatusResponse:
        logger.info("getStatus")
        response = await self._grpc("getStatus")
        return GetStatusResponse.from_message(response)

    async def get_block_by_height(self, height: int) -> bytes | None:
        if isinstance(height, bool) or not isinstance(height, int) or height <= 0:
            raise PreconditionViolation(f"height must be a positive integer, got {height!r}")
        return await self._get_block(height=height)

    async def get_block_by_hash(self, block_hash: str) -> bytes | None:
        if not isinstance(block_hash, str):
            raise PreconditionViolation(f"block hash must be a hex string, got {type(block_hash).__name__}")
        if len(block_hash) != BLOCK_HASH_LENGTH:
            raise PreconditionViolation(
                f"block hash must be {BLOCK_HASH_LENGTH} characters, got {len(block_hash)}"
            )
        return await self._get_block(hash=block_hash)

    async def _get_block(self, **selector: Any) -> bytes | None:
        response = await self._grpc("getBlock", **selector)
        return bytes(response.block) if response is not None else None

    async def send_transaction(
        self,
        transaction: bytes,
        allow_high_fees: bool = False,
        bypass_limits: bool = False,
    ) -> str:
        """Broadcast a raw transaction and return its id."""
        response = await self._grpc(
            "sendTransaction",
            transaction=transaction,
            allow_high_fees=allow_high_fees,
            bypass_limits=bypass_limits,
        )
        logger.info("sendTransaction response: %s", response)
        return response.transaction_id

    async def get_transaction(self, tx_id: str) -> bytes | None:
        """Fetch a raw transaction by id, or None if the node does not know it.

        ``tx_id`` is in RPC byte order (reversed relative to a SHA-256 hex digest).
        """
        logger.info("getTransaction")
        response = await self._grpc("getTransaction", id=tx_id)
        return bytes(response.transaction) if response is not None else None

    # ------------------------------------------------------------------
    # JSON-RPC
    # ------------------------------------------------------------------

    async def get_best_block_hash(self) -> str | None:
        result = await self.dispatcher.invoke(TransportKind.JSON_RPC, PROCEDURES["getBestBlockHash"])
        return result.unwrap()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Close every open connection. Safe to call more than once."""
        live = [kind for kind, state in self.connection_status().items() if state["is_live"]]
        logger.info("shutdown: live=%s", live)
        await self.connections.shutdown_all()

    async def _grpc(self, name: str, **fields: Any) -> Any:
        """Invoke a gRPC procedure; returns the response, or None when not found."""
        result: CallResult = await self.dispatcher.invoke(TransportKind.GRPC, PROCEDURES[name], fields)
        return result.unwrap()


def create_dapi_client(
    masternode: str,
    *modules: Any,
    rotate: bool = True,
    debug: bool = False,
    **config: Any,
) -> DapiClient:
    """Create a client bound to a single masternode address.

    Args:
        masternode: Host (or ``host:port`` for a non-default gRPC port).
        *modules: Generated protobuf modules holding the DAPI messages.
        rotate: Tear down the gRPC connection after every call.
        debug: Log JSON-RPC traffic at DEBUG level.
        **config: Further ``ClientConfig`` fields.

    Returns:
        A ``DapiClient`` using a ``FixedNode`` provider.
    """
    client_config = ClientConfig(rotate_connection_per_call=rotate, debug=debug, **config)
    address = NodeAddress.parse(masternode, grpc_port=client_config.grpc_port, jrpc_port=client_config.jrpc_port)
    provider = FixedNode(address)
    return DapiClient(provider, MessageRegistry(*modules), config=client_config)
