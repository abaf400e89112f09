"""
Node providers - choose the masternode each call talks to.

A provider only has to answer ``next()``. ``FixedNode`` always returns the
same masternode; ``RotatingNodeSet`` picks one from a pool on every call
using a pluggable selection strategy, skipping masternodes that recently
failed.
"""

from __future__ import annotations

import itertools
import logging
import random
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol, runtime_checkable

from ..errors import NoMasternodesAvailableError
from .address import NodeAddress
from .failover import FailoverState

logger = logging.getLogger(__name__)

SelectionStrategy = Callable[[Sequence[NodeAddress]], NodeAddress]

_system_random = random.SystemRandom()


@runtime_checkable
class NodeProvider(Protocol):
    """Supplies the address of the masternode to contact for the next call."""

    def next(self) -> NodeAddress: ...


def random_choice(candidates: Sequence[NodeAddress]) -> NodeAddress:
    """Pick a candidate uniformly at random using the system RNG."""
    return _system_random.choice(candidates)


class RoundRobin:
    """Cycle through candidates in order."""

    def __init__(self) -> None:
        self._counter = itertools.count()

    def __call__(self, candidates: Sequence[NodeAddress]) -> NodeAddress:
        return candidates[next(self._counter) % len(candidates)]


def _as_address(value: NodeAddress | str) -> NodeAddress:
    if isinstance(value, NodeAddress):
        return value
    return NodeAddress.parse(value)


class FixedNode:
    """Always returns the same masternode."""

    def __init__(self, address: NodeAddress | str) -> None:
        self._address = _as_address(address)

    @property
    def address(self) -> NodeAddress:
        return self._address

    def next(self) -> NodeAddress:
        return self._address

    def __repr__(self) -> str:
        return f"FixedNode({self._address.grpc_target!r})"


class RotatingNodeSet:
    """Returns a masternode chosen per call from a pool.

    Usage::

        provider = RotatingNodeSet(["10.0.0.1", "10.0.0.2"], strategy=RoundRobin())
        provider.next()  # NodeAddress(host="10.0.0.1", ...)

        # Keep a misbehaving node out of rotation for a while
        provider.report_failure(provider.next())
    """

    def __init__(
        self,
        candidates: Iterable[NodeAddress | str],
        strategy: SelectionStrategy | None = None,
    ) -> None:
        # Preserve order while dropping duplicates.
        self._candidates: list[NodeAddress] = list(dict.fromkeys(_as_address(c) for c in candidates))
        if not self._candidates:
            raise NoMasternodesAvailableError("RotatingNodeSet needs at least one masternode")
        self._strategy = strategy or random_choice
        self._failover: dict[NodeAddress, FailoverState] = {}

    @property
    def candidates(self) -> list[NodeAddress]:
        return list(self._candidates)

    def next(self) -> NodeAddress:
        healthy = [c for c in self._candidates if not self._is_cooling_down(c)]
        # Every node cooling down: fall back to the full pool rather than fail.
        return self._strategy(healthy or self._candidates)

    def report_failure(self, address: NodeAddress) -> None:
        """Put ``address`` into cooldown, doubling it on consecutive failures."""
        state = self._failover.get(address)
        if state is None:
            state = FailoverState.first_failure(address.grpc_target)
            self._failover[address] = state
        else:
            state.record_failure()
        logger.debug(
            "Masternode %s in cooldown for %.1fs (failures=%d)",
            address.grpc_target,
            state.remaining_cooldown(),
            state.fail_count,
        )

    def report_success(self, address: NodeAddress) -> None:
        if self._failover.pop(address, None) is not None:
            logger.debug("Masternode %s recovered", address.grpc_target)

    def failover_state(self, address: NodeAddress) -> FailoverState | None:
        return self._failover.get(address)

    def _is_cooling_down(self, address: NodeAddress) -> bool:
        state = self._failover.get(address)
        return state is not None and state.is_in_cooldown()

    def __len__(self) -> int:
        return len(self._candidates)
