"""Attach a shell session to every machine and run its group's setup routine."""

from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Mapping, Protocol, Tuple

from bf_common.api import Fleet, Machine, RemoteSession, SetupError
from bf_provisioner.models.types import SetupRoutine

logger = logging.getLogger(__name__)


class ShellTransport(Protocol):
    def connect(self, host: str) -> RemoteSession:
        ...


class SetupExecutor:
    """Set up machines on a bounded worker pool.

    Every machine is attempted and joined before the outcome is decided, so
    a failure on one machine never leaves another half-initialised.
    """

    def __init__(self, transport: ShellTransport, max_workers: int = 8) -> None:
        self._transport = transport
        self._max_workers = max(1, max_workers)

    def setup_fleet(self, fleet: Fleet, routines: Mapping[str, SetupRoutine]) -> Fleet:
        """Run every group's routine on each of its machines.

        Raises ``SetupError`` listing every machine that failed.
        """
        work: List[Tuple[Machine, SetupRoutine]] = []
        for group_name, machines in fleet.items():
            routine = routines.get(group_name)
            if routine is None:
                raise SetupError(
                    f"No setup routine registered for group {group_name!r}",
                    context={"group": group_name},
                )
            work.extend((machine, routine) for machine in machines)
        if not work:
            return fleet

        failures: Dict[str, BaseException] = {}
        if self._max_workers == 1:
            for machine, routine in work:
                self._collect(machine, routine, failures)
        else:
            with ThreadPoolExecutor(
                max_workers=min(self._max_workers, len(work)),
                thread_name_prefix="bf-setup",
            ) as pool:
                # Workers inherit the caller's contextvars (run_id, fleet_stage).
                futures = {
                    pool.submit(
                        contextvars.copy_context().run,
                        self.setup_machine,
                        machine,
                        routine,
                    ): machine
                    for machine, routine in work
                }
                for future in as_completed(futures):
                    machine = futures[future]
                    exc = future.exception()
                    if exc is not None:
                        self._record_failure(machine, exc, failures)

        if failures:
            first = next(iter(failures.values()))
            raise SetupError(
                f"Setup failed on {len(failures)} of {len(work)} machine(s)",
                context={
                    "failed_instances": sorted(failures),
                    "errors": {iid: str(exc) for iid, exc in failures.items()},
                },
                cause=first,
            )
        logger.info("Setup completed on %d machine(s)", len(work))
        return fleet

    def _collect(
        self,
        machine: Machine,
        routine: SetupRoutine,
        failures: Dict[str, BaseException],
    ) -> None:
        try:
            self.setup_machine(machine, routine)
        except Exception as exc:
            self._record_failure(machine, exc, failures)

    @staticmethod
    def _record_failure(
        machine: Machine, exc: BaseException, failures: Dict[str, BaseException]
    ) -> None:
        logger.error(
            "Setup failed for %s (%s): %s", machine.instance_id, machine.group_name, exc
        )
        failures[machine.instance_id] = exc

    def setup_machine(self, machine: Machine, routine: SetupRoutine) -> Machine:
        """Connect to one machine and run ``routine``; attach the session on success.

        The routine fails by raising or by returning ``False``.
        """
        logger.info(
            "Setting up %s (%s) at %s",
            machine.instance_id,
            machine.group_name,
            machine.public_address,
        )
        session = self._transport.connect(machine.public_address)
        try:
            if routine(session) is False:
                raise SetupError(
                    f"Setup routine reported failure on {machine.instance_id}",
                    context={
                        "instance_id": machine.instance_id,
                        "group": machine.group_name,
                    },
                )
        except BaseException:
            session.close()
            raise
        machine.shell_session = session
        return machine
