import logging
import threading

import pytest

from daoguard.common import Advertisement, OriginTime
from daoguard.events import RejectReason
from daoguard.replay import FreshnessValidator, SenderState


def adv(seq: int, sec: int, ns: int = 0) -> Advertisement:
    return Advertisement(seq, OriginTime(sec, ns))


def test_first_contact_always_accepted(validator):
    assert validator.evaluate("x", adv(4000000000, 0), 0.0).accepted
    assert validator.evaluate("y", adv(0, 2**40, 7), 123.0).accepted
    assert validator.senders == 2


def test_scenario_a_exact_replay_rejected(validator):
    assert validator.evaluate("x", adv(1, 100), 1.0).accepted
    verdict = validator.evaluate("x", adv(1, 100), 1.05)
    assert not verdict.accepted
    assert verdict.reason is RejectReason.DUPLICATE


def test_exact_replay_rejected_long_after(validator):
    validator.evaluate("x", adv(1, 100), 1.0)
    assert validator.evaluate("x", adv(1, 100), 500.0).reason is RejectReason.DUPLICATE


def test_scenario_b_burst_rejected(validator):
    validator.evaluate("x", adv(1, 100), 1.0)
    verdict = validator.evaluate("x", adv(1, 100, 5000000), 1.1)
    assert verdict.reason is RejectReason.BURST
    assert validator.state("x") == SenderState(1, OriginTime(100, 0), 1.0)


def test_scenario_c_same_seq_after_burst_window_accepted(validator):
    validator.evaluate("x", adv(1, 100), 1.0)
    validator.evaluate("x", adv(1, 100, 5000000), 1.1)
    assert validator.evaluate("x", adv(1, 101), 1.5).accepted
    state = validator.state("x")
    assert state.last_seq == 1
    assert state.last_origin_time == OriginTime(101, 0)
    assert state.last_arrival_time == 1.5


def test_burst_boundary_is_inclusive(validator):
    # 1.2 - 1.0 is 0.19999999999999996 in binary floats; still a full window
    validator.evaluate("x", adv(1, 100), 1.0)
    assert validator.evaluate("x", adv(1, 101), 1.2).accepted


def test_burst_window_measured_from_last_acceptance(validator):
    validator.evaluate("x", adv(1, 100), 1.0)
    # rejected arrivals do not move the window
    assert not validator.evaluate("x", adv(1, 100, 1), 1.15).accepted
    assert validator.evaluate("x", adv(1, 100, 2), 1.25).accepted


def test_same_seq_after_window_with_older_origin_rejected(validator):
    validator.evaluate("x", adv(1, 100), 1.0)
    verdict = validator.evaluate("x", adv(1, 99), 5.0)
    assert verdict.reason is RejectReason.TIMESTAMP_REGRESSION


def test_scenario_d_timestamp_regression(validator):
    validator.evaluate("y", adv(5, 200), 0.0)
    verdict = validator.evaluate("y", adv(6, 199), 10.0)
    assert verdict.reason is RejectReason.TIMESTAMP_REGRESSION
    assert validator.state("y").last_seq == 5


@pytest.mark.parametrize("origin", [(0, 0), (150, 0), (10**12, 0)])
@pytest.mark.parametrize("arrival", [0.0, 1.0, 10**6])
def test_monotonic_floor(validator, origin, arrival):
    validator.evaluate("x", adv(10, 100), 0.5)
    verdict = validator.evaluate("x", adv(9, *origin), arrival)
    assert verdict.reason is RejectReason.STALE_SEQUENCE


def test_higher_seq_equal_origin_accepted(validator):
    validator.evaluate("x", adv(1, 100), 1.0)
    assert validator.evaluate("x", adv(2, 100), 1.01).accepted


def test_rejection_never_advances_state(validator):
    validator.evaluate("x", adv(5, 100), 1.0)
    before = validator.state("x")
    for a, t in [(adv(4, 200), 2.0), (adv(5, 100), 3.0), (adv(5, 101), 1.1), (adv(6, 50), 4.0)]:
        assert not validator.evaluate("x", a, t).accepted
    assert validator.state("x") == before


def test_senders_tracked_independently(validator):
    validator.evaluate("a", adv(100, 100), 1.0)
    assert validator.evaluate("b", adv(1, 1), 1.0).accepted
    assert validator.evaluate("b", adv(2, 2), 1.0).accepted
    assert validator.state("a").last_seq == 100


def test_forged_timestamp_after_window_is_accepted(validator):
    # known gap: a captured DAO re-stamped with a later origin time gets in
    validator.evaluate("x", adv(1, 100), 1.0)
    assert validator.evaluate("x", adv(1, 100, 1), 2.0).accepted


def test_zero_threshold_disables_burst_rule():
    v = FreshnessValidator(burst_threshold=0.0)
    v.evaluate("x", adv(1, 100), 1.0)
    assert v.evaluate("x", adv(1, 101), 1.0).accepted


def test_negative_threshold_rejected():
    with pytest.raises(ValueError):
        FreshnessValidator(burst_threshold=-0.1)


def test_check_is_pure(validator):
    prev = SenderState(3, OriginTime(10, 0), 1.0)
    assert validator.check(prev, adv(2, 11), 5.0).reason is RejectReason.STALE_SEQUENCE
    assert validator.check(None, adv(2, 11), 5.0).accepted
    assert validator.state("anyone") is None


def test_concurrent_senders_each_accept_once(validator):
    # every thread races the same DAO for its own sender: exactly one acceptance each
    results: dict[str, list[bool]] = {f"s{i}": [] for i in range(8)}
    barrier = threading.Barrier(16)

    def worker(sender: str) -> None:
        barrier.wait()
        verdict = validator.evaluate(sender, adv(1, 100), 1.0)
        results[sender].append(verdict.accepted)

    threads = [threading.Thread(target=worker, args=(s,)) for s in results for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    for sender, verdicts in results.items():
        assert sorted(verdicts) == [False, True], sender


def test_reject_reason_logged_at_debug(validator, caplog):
    validator.evaluate("x", adv(5, 100), 1.0)
    with caplog.at_level(logging.DEBUG, logger="daoguard.replay"):
        validator.evaluate("x", adv(4, 100), 2.0)
    assert "Reject x seq=4: seq < lastSeq" in caplog.text


def test_accept_not_logged_at_debug(validator, caplog):
    with caplog.at_level(logging.DEBUG, logger="daoguard.replay"):
        validator.evaluate("x", adv(1, 100), 1.0)
    assert caplog.text == ""
