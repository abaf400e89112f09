"""
Failover state tracking for masternodes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

#: First cooldown after a failure, in seconds. Doubles per consecutive failure.
BASE_COOLDOWN_SECONDS = 5.0

#: Upper bound on the cooldown, in seconds.
MAX_COOLDOWN_SECONDS = 300.0


@dataclass
class FailoverState:
    """Tracks failover state for a masternode."""

    target: str
    failed_at: float
    fail_count: int
    cooldown_until: float

    @classmethod
    def first_failure(cls, target: str, now: float | None = None) -> FailoverState:
        now = time.time() if now is None else now
        return cls(target=target, failed_at=now, fail_count=1, cooldown_until=now + BASE_COOLDOWN_SECONDS)

    def record_failure(self, now: float | None = None) -> None:
        now = time.time() if now is None else now
        self.fail_count += 1
        self.failed_at = now
        cooldown = min(MAX_COOLDOWN_SECONDS, BASE_COOLDOWN_SECONDS * (2 ** (self.fail_count - 1)))
        self.cooldown_until = now + cooldown

    def is_in_cooldown(self) -> bool:
        return time.time() < self.cooldown_until

    def remaining_cooldown(self) -> float:
        return max(0, self.cooldown_until - time.time())
