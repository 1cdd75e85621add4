"""Per-sender freshness checks for DAO advertisements.

Each sender is either unseen (first DAO is accepted unconditionally) or
tracked by the last *accepted* (seq, origin time, arrival time). For a
tracked sender the rules run in order:

1. seq below the last accepted seq is stale.
2. seq equal to the last accepted seq is a duplicate when the origin time
   matches exactly, and a burst when it arrives inside ``burst_threshold``
   of the last acceptance. Otherwise it falls through to 3.
3. an origin time older than the last accepted one is a regression.
4. anything else is accepted and replaces the sender's state.

Known gap: by rule 2's fall-through, a copy of the last accepted DAO with a
forged, later origin time is accepted once it arrives after the burst window.
Requiring seq to strictly increase would close it, at the cost of rejecting
legitimate same-seq retransmissions.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Hashable

from . import config as _cfg
from .common import Advertisement, OriginTime
from .events import ACCEPT, RejectReason, Verdict

logger = logging.getLogger(__name__)


def to_ns(seconds: float) -> int:
    """Snap a float-seconds instant onto the integer nanosecond grid."""
    return round(seconds * 1_000_000_000)


@dataclass(frozen=True, slots=True)
class SenderState:
    """Last accepted DAO of one sender."""

    last_seq: int
    last_origin_time: OriginTime
    last_arrival_time: float


class KeyedLocks:
    """Hand out one lock per key, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}

    def __call__(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class FreshnessValidator:
    """Accept or reject DAOs against per-sender sequence/timestamp state."""

    def __init__(self, burst_threshold: float = _cfg.BURST_THRESHOLD):
        if burst_threshold < 0:
            raise ValueError(f"burst_threshold must be >= 0, got {burst_threshold}")
        self.burst_threshold = burst_threshold
        self._burst_ns = to_ns(burst_threshold)
        self._states: dict[Hashable, SenderState] = {}
        self._locks = KeyedLocks()

    @property
    def senders(self) -> int:
        """Number of senders with accepted state."""
        return len(self._states)

    def state(self, sender_id: Hashable) -> SenderState | None:
        """Return the stored state for *sender_id*, or None if unseen."""
        return self._states.get(sender_id)

    def check(self, prev: SenderState | None, adv: Advertisement, arrival_time: float) -> Verdict:
        """Apply the freshness rules to *adv* without touching any state."""
        if prev is None:
            return ACCEPT
        if adv.seq < prev.last_seq:
            return Verdict(False, RejectReason.STALE_SEQUENCE)
        if adv.seq == prev.last_seq:
            if adv.origin_time == prev.last_origin_time:
                return Verdict(False, RejectReason.DUPLICATE)
            if to_ns(arrival_time) - to_ns(prev.last_arrival_time) < self._burst_ns:
                return Verdict(False, RejectReason.BURST)
        if adv.origin_time < prev.last_origin_time:
            return Verdict(False, RejectReason.TIMESTAMP_REGRESSION)
        return ACCEPT

    def evaluate(self, sender_id: Hashable, adv: Advertisement, arrival_time: float) -> Verdict:
        """Decide on *adv* from *sender_id*; on accept, it becomes the sender's state."""
        with self._locks(sender_id):
            verdict = self.check(self._states.get(sender_id), adv, arrival_time)
            if verdict.accepted:
                self._states[sender_id] = SenderState(adv.seq, adv.origin_time, arrival_time)
            else:
                logger.debug("Reject %s seq=%d: %s", sender_id, adv.seq, verdict.reason.value)
            return verdict
