import heapq
import logging
from typing import Iterator

import pytest

from daoguard.common import OriginTime, encode
from daoguard.events import Delivery
from daoguard.metrics import MetricsRecorder
from daoguard.replay import FreshnessValidator
from daoguard.router import Dispatcher

# Suppress per-DAO INFO/WARNING lines from the dispatcher during tests
logging.basicConfig(level=logging.ERROR)


def origin_at(t: float) -> OriginTime:
    """Origin time a sensor stamps at simulated instant *t*."""
    ns = round(t * 1_000_000_000)
    return OriginTime(ns // 1_000_000_000, ns % 1_000_000_000)


def sensor_stream(
    sender_id: str,
    *,
    start_seq: int,
    first_send: float,
    interval: float,
    until: float,
) -> Iterator[Delivery]:
    """Periodic, well-behaved sensor: one fresh DAO every *interval* seconds."""
    seq = start_seq
    t = first_send
    while t < until:
        yield Delivery(sender_id, encode(seq, origin_at(t)), t)
        seq += 1
        t += interval


def replay_storm(captured: Delivery, *, count: int, delay: float = 0.05, gap: float = 0.01) -> Iterator[Delivery]:
    """Attacker that re-sends a captured payload verbatim, under the victim's identity."""
    for i in range(count):
        yield Delivery(captured.sender_id, captured.payload, captured.arrival_time + delay + i * gap)


def merge(*streams: Iterator[Delivery]) -> list[Delivery]:
    return list(heapq.merge(*streams, key=lambda ev: ev.arrival_time))


class Scenario:
    """Three sensors to one root; sensor 0 is compromised and replays its first DAO."""

    def __init__(self, n_sensors: int = 3, attacker: bool = True, sim_time: float = 25.0):
        self.sensors = [f"2001:db8:0:{i}::1" for i in range(n_sensors)]
        legit = [
            list(
                sensor_stream(
                    self.sensors[i],
                    start_seq=1 + i * 100,
                    first_send=3.0 + i,
                    interval=10.0 + i,
                    until=sim_time,
                )
            )
            for i in range(n_sensors)
        ]
        self.legit_count = sum(len(s) for s in legit)
        streams = [iter(s) for s in legit]
        self.replay_count = 0
        if attacker and legit and legit[0]:
            self.replay_count = 100
            streams.append(replay_storm(legit[0][0], count=self.replay_count))
        self.events = merge(*streams)


@pytest.fixture
def validator() -> FreshnessValidator:
    return FreshnessValidator(burst_threshold=0.2)


@pytest.fixture
def recorder() -> MetricsRecorder:
    return MetricsRecorder()


@pytest.fixture
def dispatcher(validator, recorder) -> Dispatcher:
    return Dispatcher(validator, recorder)


@pytest.fixture
def scenario_factory():
    """Factory building the reference sensor/attacker traffic."""

    def _factory(**kwargs) -> Scenario:
        return Scenario(**kwargs)

    return _factory
