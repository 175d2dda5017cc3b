"""Sequence provisioning, readiness, setup, workload and teardown for one run."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

import structlog

from bf_common.api import (
    ConvergenceError,
    Fleet,
    FleetError,
    ProvisioningError,
    SetupError,
    WorkloadError,
    wrap_error,
)
from bf_controller.lifecycle import FleetState, FleetStateMachine
from bf_controller.models.settings import FleetSettings
from bf_controller.models.types import RunOutcome
from bf_controller.services.setup_executor import SetupExecutor, ShellTransport
from bf_controller.services.workload_invoker import Workload, WorkloadInvoker
from bf_provisioner.engine.polling import PollPolicy
from bf_provisioner.engine.provisioner import FleetProvisioner
from bf_provisioner.engine.readiness import ReadinessPoller
from bf_provisioner.engine.teardown import TeardownManager
from bf_provisioner.models.types import FleetSpec
from bf_provisioner.providers.base import CloudComputeProvider

logger = logging.getLogger(__name__)

_STAGE_ERRORS: dict[FleetState, type[FleetError]] = {
    FleetState.PROVISIONING: ProvisioningError,
    FleetState.AWAITING_READINESS: ConvergenceError,
    FleetState.SETTING_UP: SetupError,
    FleetState.RUNNING_WORKLOAD: WorkloadError,
}


class FleetOrchestrator:
    """Run the full fleet lifecycle once.

    Teardown always runs once any request has been submitted. Only a
    non-retryable teardown failure escapes ``run``; every other failure is
    reported through the returned ``RunOutcome``.
    """

    def __init__(
        self,
        provider: CloudComputeProvider,
        transport: ShellTransport,
        settings: Optional[FleetSettings] = None,
        poll_policy: Optional[PollPolicy] = None,
        teardown: Optional[TeardownManager] = None,
    ) -> None:
        self.settings = settings or FleetSettings()
        self._provider = provider
        self._transport = transport
        self._poll_policy = poll_policy or PollPolicy(
            interval_seconds=self.settings.poll_interval_seconds
        )
        self._teardown = teardown or TeardownManager(
            provider,
            retry_interval_seconds=self.settings.teardown_retry_interval_seconds,
        )
        self.state_machine = FleetStateMachine()
        self.run_id = uuid.uuid4().hex[:12]

    def _policy_for(self, spec: FleetSpec) -> PollPolicy:
        timeout = self.settings.poll_timeout_seconds
        if timeout is None:
            timeout = spec.max_duration_seconds
        return self._poll_policy.with_timeout(timeout)

    def _enter(self, state: FleetState) -> None:
        self.state_machine.transition(state)
        structlog.contextvars.bind_contextvars(fleet_stage=state.value)
        logger.info("Fleet run %s entering %s", self.run_id, state.value)

    def run(self, spec: FleetSpec, workload: Workload) -> RunOutcome:
        if self.state_machine.state is not FleetState.INIT:
            raise RuntimeError("FleetOrchestrator instances run exactly once")
        with structlog.contextvars.bound_contextvars(run_id=self.run_id):
            try:
                return self._run(spec, workload)
            finally:
                structlog.contextvars.unbind_contextvars("fleet_stage")

    def _run(self, spec: FleetSpec, workload: Workload) -> RunOutcome:
        policy = self._policy_for(spec)
        provisioner = FleetProvisioner(
            self._provider,
            policy=policy,
            require_full_fleet=self.settings.require_full_fleet,
        )
        fleet: Fleet = {}
        outcome = RunOutcome(run_id=self.run_id, success=False)
        try:
            self._enter(FleetState.PROVISIONING)
            result = provisioner.provision(spec)

            self._enter(FleetState.AWAITING_READINESS)
            fleet = ReadinessPoller(self._provider, policy=policy).wait_until_ready(
                result.instances
            )

            self._enter(FleetState.SETTING_UP)
            routines = {name: group.setup for name, group in spec.groups.items()}
            SetupExecutor(
                self._transport, max_workers=self.settings.setup_workers
            ).setup_fleet(fleet, routines)

            self._enter(FleetState.RUNNING_WORKLOAD)
            outcome.result = WorkloadInvoker(workload).invoke(fleet)
            outcome.success = True
        except Exception as exc:
            outcome.failed_stage = self.state_machine.state
            outcome.error = self._as_fleet_error(exc, outcome.failed_stage)
            logger.error(
                "Fleet run %s failed during %s: %s",
                self.run_id,
                outcome.failed_stage.value,
                exc,
            )
        finally:
            self._close_sessions(fleet)
            self._enter(FleetState.TEARING_DOWN)
            try:
                outcome.terminated_instance_ids = self._teardown.terminate(
                    provisioner.result.instance_ids
                )
            except FleetError:
                self.state_machine.transition(FleetState.FAILED, reason="teardown")
                raise

        if outcome.success:
            self.state_machine.transition(FleetState.FINISHED)
        else:
            self.state_machine.transition(
                FleetState.FAILED,
                reason=outcome.failed_stage.value if outcome.failed_stage else None,
            )
        return outcome

    @staticmethod
    def _as_fleet_error(exc: Exception, stage: FleetState) -> FleetError:
        if isinstance(exc, FleetError):
            return exc
        return wrap_error(
            _STAGE_ERRORS.get(stage, FleetError),
            f"Unexpected {type(exc).__name__} during {stage.value}: {exc}",
            context={"stage": stage.value},
            cause=exc,
        )

    @staticmethod
    def _close_sessions(fleet: Fleet) -> None:
        for machines in fleet.values():
            for machine in machines:
                try:
                    machine.close_session()
                except Exception as exc:
                    logger.warning(
                        "Failed to close session for %s: %s", machine.instance_id, exc
                    )
