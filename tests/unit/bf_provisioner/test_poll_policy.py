"""Tests for deadline-bounded polling."""

from __future__ import annotations

import pytest

from bf_provisioner.engine.polling import PollPolicy


pytestmark = pytest.mark.unit_provisioner


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_unbounded_policy_never_expires() -> None:
    clock = FakeClock()
    deadline = PollPolicy(interval_seconds=30, clock=clock, sleep=clock.sleep).deadline()

    assert all(deadline.wait() for _ in range(1000))
    assert deadline.attempts == 1000
    assert not deadline.expired()


def test_deadline_stops_after_timeout() -> None:
    clock = FakeClock()
    policy = PollPolicy(interval_seconds=2, timeout_seconds=5, clock=clock, sleep=clock.sleep)
    deadline = policy.deadline()

    results = [deadline.wait() for _ in range(4)]

    assert results == [True, True, False, False]
    assert clock.sleeps == [2, 2, 2]
    assert deadline.expired()


def test_with_timeout_keeps_interval_and_clock() -> None:
    clock = FakeClock()
    policy = PollPolicy(interval_seconds=3, clock=clock, sleep=clock.sleep)

    bounded = policy.with_timeout(60)

    assert bounded.interval_seconds == 3
    assert bounded.timeout_seconds == 60
    assert bounded.clock is clock


def test_rejects_negative_values() -> None:
    with pytest.raises(ValueError):
        PollPolicy(interval_seconds=-1)
    with pytest.raises(ValueError):
        PollPolicy(timeout_seconds=-1)
