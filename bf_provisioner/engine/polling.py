"""Deadline-bounded polling for an eventually-consistent control plane."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass(frozen=True)
class PollPolicy:
    """How often to poll and for how long.

    ``timeout_seconds=None`` polls until the condition holds.
    """

    interval_seconds: float = 2.0
    timeout_seconds: Optional[float] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")
        if self.timeout_seconds is not None and self.timeout_seconds < 0:
            raise ValueError("timeout_seconds must be non-negative")

    def with_timeout(self, timeout_seconds: Optional[float]) -> "PollPolicy":
        return PollPolicy(
            interval_seconds=self.interval_seconds,
            timeout_seconds=timeout_seconds,
            clock=self.clock,
            sleep=self.sleep,
        )

    def deadline(self) -> "Deadline":
        return Deadline(self)


class Deadline:
    """Attempt counter and expiry clock for one polling loop."""

    def __init__(self, policy: PollPolicy) -> None:
        self._policy = policy
        self._started = policy.clock()
        self.attempts = 0

    @property
    def elapsed(self) -> float:
        return self._policy.clock() - self._started

    def expired(self) -> bool:
        timeout = self._policy.timeout_seconds
        return timeout is not None and self.elapsed >= timeout

    def wait(self) -> bool:
        """Sleep before the next attempt; return False once the deadline passed."""
        self.attempts += 1
        if self.expired():
            return False
        self._policy.sleep(self._policy.interval_seconds)
        return not self.expired()
