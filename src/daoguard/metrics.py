"""Counters and inter-arrival statistics for the collector.

The recorder only observes: it never influences a verdict. ``report()`` is a
pure read and may be called at checkpoints as well as at shutdown.
"""

from __future__ import annotations

import csv
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from statistics import fmean
from types import MappingProxyType
from typing import Hashable, Mapping

from .replay import to_ns

logger = logging.getLogger(__name__)

BANNER = "========== DAO Replay Mitigation Metrics =========="
RULE = "=" * len(BANNER)


@dataclass(frozen=True)
class Summary:
    """Snapshot of the recorder at report time."""

    total: int
    accepted: int
    rejected: int
    reject_ratio_percent: float
    avg_inter_arrival_delay: float
    samples: int = 0
    per_sender: Mapping[Hashable, float] = field(default_factory=lambda: MappingProxyType({}), hash=False)

    def as_row(self) -> list[str]:
        """Export fields in file order: total, accepted, rejected, ratio, delay."""
        return [
            str(self.total),
            str(self.accepted),
            str(self.rejected),
            f"{self.reject_ratio_percent:.2f}",
            repr(self.avg_inter_arrival_delay),
        ]

    def render(self) -> str:
        return "\n".join(
            [
                BANNER,
                f"Total DAOs received: {self.total}",
                f"Accepted DAOs:       {self.accepted}",
                f"Rejected DAOs:       {self.rejected}",
                f"Replay rejection %:  {self.reject_ratio_percent:.2f}",
                f"Average inter-arrival delay (s): {self.avg_inter_arrival_delay:.2f}",
                RULE,
            ]
        )


class MetricsRecorder:
    """Aggregate verdict counters and per-sender inter-arrival delays."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.total = 0
        self.accepted = 0
        self.rejected = 0
        self._prev_arrival: dict[Hashable, float] = {}
        self._inter_arrivals: dict[Hashable, list[float]] = {}

    def on_arrival(self, sender_id: Hashable, arrival_time: float) -> None:
        """Record one decoded DAO's arrival, whatever its verdict."""
        with self._lock:
            prev = self._prev_arrival.get(sender_id)
            if prev is not None:
                delta = (to_ns(arrival_time) - to_ns(prev)) / 1e9
                self._inter_arrivals.setdefault(sender_id, []).append(delta)
            self._prev_arrival[sender_id] = arrival_time

    def on_verdict(self, accepted: bool) -> None:
        with self._lock:
            self.total += 1
            if accepted:
                self.accepted += 1
            else:
                self.rejected += 1

    def history(self, sender_id: Hashable) -> list[float]:
        """Copy of the inter-arrival delays seen from *sender_id*."""
        with self._lock:
            return list(self._inter_arrivals.get(sender_id, ()))

    def report(self) -> Summary:
        with self._lock:
            samples = [d for delays in self._inter_arrivals.values() for d in delays]
            ratio = self.rejected * 100.0 / self.total if self.total else 0.0
            return Summary(
                total=self.total,
                accepted=self.accepted,
                rejected=self.rejected,
                reject_ratio_percent=ratio,
                avg_inter_arrival_delay=fmean(samples) if samples else 0.0,
                samples=len(samples),
                per_sender=MappingProxyType({s: fmean(d) for s, d in self._inter_arrivals.items() if d}),
            )

    def export(self, path: str | Path) -> Summary:
        """Append one CSV row for the current report to *path*; return the report."""
        summary = self.report()
        path = Path(path)
        with path.open("a", newline="") as fh:
            csv.writer(fh).writerow(summary.as_row())
        logger.debug("Appended metrics row to %s", path)
        return summary
