"""
Maps transport-level "nothing here" signals to absence.
"""

from __future__ import annotations

import logging
from typing import Any

import grpc

from .result import CallResult

logger = logging.getLogger(__name__)


def normalize_payload(raw: Any) -> Any:
    """Return None for an empty payload, the payload otherwise.

    Older masternodes answer a missing data contract with an empty byte
    string and an OK status.
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray, str)) and len(raw) == 0:
        return None
    return raw


def classify_failure(code: grpc.StatusCode, message: str, *, not_found_is_absent: bool) -> CallResult:
    """Turn a failed call's status into a ``CallResult``.

    ``NOT_FOUND`` becomes absence only for operations where a missing
    resource is an expected answer.
    """
    if code == grpc.StatusCode.NOT_FOUND and not_found_is_absent:
        logger.debug("RPC returned NOT_FOUND: %s", message)
        return CallResult.not_found()
    logger.warning("RPC failed: Status{code=%s, description=%s}", code.name, message)
    return CallResult.transport_error(code.name, message)
