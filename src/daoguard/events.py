"""Lightweight event model shared by the transport adapter and the core.

Transports hand the core one ``Delivery`` at a time; the core answers with a
``Verdict``. Neither type knows anything about sockets.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Hashable


class RejectReason(Enum):
    """Which freshness rule turned an advertisement away."""

    STALE_SEQUENCE = "seq < lastSeq"
    DUPLICATE = "same seq and identical origin time"
    BURST = "same seq arrived too fast after last"
    TIMESTAMP_REGRESSION = "origin time older than last"


@dataclass(frozen=True, slots=True)
class Delivery:
    """Inbound event: raw payload from *sender_id* stamped at *arrival_time*."""

    sender_id: Hashable
    payload: bytes
    arrival_time: float


@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of a freshness check."""

    accepted: bool
    reason: RejectReason | None = None

    def __bool__(self) -> bool:
        return self.accepted


ACCEPT = Verdict(True)
