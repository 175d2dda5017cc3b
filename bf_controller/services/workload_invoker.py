"""Hand the set-up fleet to caller code."""

from __future__ import annotations

import logging
from typing import Any, Callable

from bf_common.api import Fleet, WorkloadError

logger = logging.getLogger(__name__)

Workload = Callable[[Fleet], Any]


class WorkloadInvoker:
    """Call the workload exactly once and report its outcome as a value or WorkloadError."""

    def __init__(self, workload: Workload) -> None:
        self._workload = workload
        self.invoked = False

    def invoke(self, fleet: Fleet) -> Any:
        if self.invoked:
            raise WorkloadError("Workload has already been invoked")
        not_ready = [
            machine.instance_id
            for machines in fleet.values()
            for machine in machines
            if not machine.is_set_up
        ]
        if not_ready:
            raise WorkloadError(
                "Refusing to run the workload on machines that are not set up",
                context={"instance_ids": not_ready},
            )
        self.invoked = True
        logger.info(
            "Running workload on %d machine(s)",
            sum(len(machines) for machines in fleet.values()),
        )
        try:
            return self._workload(fleet)
        except Exception as exc:
            raise WorkloadError(
                f"Workload failed: {exc}",
                context={"groups": sorted(fleet)},
                cause=exc,
            ) from exc
