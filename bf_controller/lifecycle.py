"""Fleet lifecycle state machine primitives."""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Optional


class FleetState(str, Enum):
    """Stages of one orchestration run."""

    INIT = "init"
    PROVISIONING = "provisioning"
    AWAITING_READINESS = "awaiting_readiness"
    SETTING_UP = "setting_up"
    RUNNING_WORKLOAD = "running_workload"
    TEARING_DOWN = "tearing_down"
    FINISHED = "finished"
    FAILED = "failed"


_TERMINAL_STATES = {FleetState.FINISHED, FleetState.FAILED}


_ALLOWED_TRANSITIONS = {
    FleetState.INIT: {FleetState.PROVISIONING},
    FleetState.PROVISIONING: {
        FleetState.AWAITING_READINESS,
        FleetState.TEARING_DOWN,
    },
    FleetState.AWAITING_READINESS: {
        FleetState.SETTING_UP,
        FleetState.TEARING_DOWN,
    },
    FleetState.SETTING_UP: {
        FleetState.RUNNING_WORKLOAD,
        FleetState.TEARING_DOWN,
    },
    FleetState.RUNNING_WORKLOAD: {FleetState.TEARING_DOWN},
    FleetState.TEARING_DOWN: {FleetState.FINISHED},
    FleetState.FINISHED: set(),
    FleetState.FAILED: set(),
}


class FleetStateMachine:
    """Thread-safe tracker of the current run stage."""

    def __init__(self) -> None:
        self._state = FleetState.INIT
        self._lock = threading.RLock()
        self._reason: Optional[str] = None
        self._history: list[FleetState] = [FleetState.INIT]
        self._callbacks: list[Callable[[FleetState, Optional[str]], None]] = []

    @property
    def state(self) -> FleetState:
        with self._lock:
            return self._state

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    @property
    def history(self) -> list[FleetState]:
        with self._lock:
            return list(self._history)

    def is_terminal(self) -> bool:
        with self._lock:
            return self._state in _TERMINAL_STATES

    def register_callback(
        self, callback: Callable[[FleetState, Optional[str]], None]
    ) -> None:
        """Register a callback invoked on every transition."""
        self._callbacks.append(callback)

    def transition(
        self, new_state: FleetState, reason: Optional[str] = None
    ) -> FleetState:
        """Attempt a state transition; raise ValueError if invalid.

        ``FAILED`` is reachable from any non-terminal state.
        """
        with self._lock:
            allowed = _ALLOWED_TRANSITIONS.get(self._state, set())
            if new_state not in allowed and not (
                new_state is FleetState.FAILED and self._state not in _TERMINAL_STATES
            ):
                raise ValueError(f"Invalid transition {self._state} -> {new_state}")
            self._state = new_state
            self._reason = reason
            self._history.append(new_state)
            for cb in list(self._callbacks):
                cb(self._state, self._reason)
            return self._state

    def snapshot(self) -> tuple[FleetState, Optional[str]]:
        with self._lock:
            return self._state, self._reason
