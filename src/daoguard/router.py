"""Route inbound deliveries through decode, metrics and the freshness check.

The dispatcher lives *outside* the transport so the pipeline is declared in a
single place. Transports either call ``deliver()`` per datagram or push
``Delivery`` objects onto a queue drained by ``consume()``.
"""

from __future__ import annotations

import logging
import queue
import threading

from .common import DecodeError, decode
from .events import Delivery, Verdict
from .metrics import MetricsRecorder, Summary
from .replay import FreshnessValidator, KeyedLocks
from .signing import check_key, verify

logger = logging.getLogger(__name__)


class Dispatcher:
    """Single entry point from transport to core."""

    def __init__(
        self,
        validator: FreshnessValidator | None = None,
        recorder: MetricsRecorder | None = None,
        *,
        key: bytes | None = None,
    ) -> None:
        self.validator = validator if validator is not None else FreshnessValidator()
        self.recorder = recorder if recorder is not None else MetricsRecorder()
        self.key = check_key(key) if key is not None else None
        self.dropped = 0
        self._drop_lock = threading.Lock()
        self._locks = KeyedLocks()

    def __call__(self, ev: Delivery) -> Verdict | None:
        return self.deliver(ev)

    def deliver(self, ev: Delivery) -> Verdict | None:
        """Process one delivery; return its verdict, or None if it was dropped."""
        try:
            payload = verify(ev.payload, self.key) if self.key is not None else ev.payload
            adv = decode(payload, ev.sender_id)
        except DecodeError as e:
            with self._drop_lock:
                self.dropped += 1
            logger.error("Root: malformed DAO payload from %s: %s", ev.sender_id, e)
            return None

        # arrival bookkeeping and the verdict must see one sender's events in the same order
        with self._locks(ev.sender_id):
            self.recorder.on_arrival(ev.sender_id, ev.arrival_time)
            verdict = self.validator.evaluate(ev.sender_id, adv, ev.arrival_time)
            self.recorder.on_verdict(verdict.accepted)

        if verdict.accepted:
            logger.info("Root: ACCEPT DAO from %s seq=%d", ev.sender_id, adv.seq)
        else:
            logger.warning("Root: REJECT DAO from %s seq=%d (replay detected)", ev.sender_id, adv.seq)
        return verdict

    def consume(self, q: "queue.Queue[Delivery | None]") -> int:
        """Drain *q* until a None sentinel; return how many deliveries were handled."""
        handled = 0
        while True:
            ev = q.get()
            try:
                if ev is None:
                    return handled
                self.deliver(ev)
                handled += 1
            finally:
                q.task_done()

    def report(self) -> Summary:
        return self.recorder.report()
