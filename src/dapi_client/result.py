"""
Tagged outcome of a remote call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .errors import TransportError


class Outcome(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class CallResult:
    """``Ok(payload) | NotFound | TransportError(code, message)``.

    Callers inspect ``outcome`` or use ``unwrap()``, which returns the
    payload, returns None for not-found and raises ``TransportError``.
    """

    outcome: Outcome
    payload: Any = None
    code: str | None = None
    message: str = ""

    @classmethod
    def ok(cls, payload: Any) -> CallResult:
        return cls(Outcome.OK, payload=payload)

    @classmethod
    def not_found(cls) -> CallResult:
        return cls(Outcome.NOT_FOUND)

    @classmethod
    def transport_error(cls, code: str, message: str = "") -> CallResult:
        return cls(Outcome.TRANSPORT_ERROR, code=code, message=message)

    @property
    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def is_not_found(self) -> bool:
        return self.outcome is Outcome.NOT_FOUND

    def unwrap(self) -> Any:
        if self.outcome is Outcome.TRANSPORT_ERROR:
            raise TransportError(self.code or "UNKNOWN", self.message)
        return self.payload
