"""Builder-style declaration surface for a transient fleet."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from bf_common.api import ConfigurationError
from bf_controller.engine.orchestrator import FleetOrchestrator
from bf_controller.models.settings import FleetSettings
from bf_controller.models.types import RunOutcome
from bf_controller.remote import FabricShellTransport
from bf_controller.services.setup_executor import ShellTransport
from bf_controller.services.workload_invoker import Workload
from bf_provisioner.models.types import (
    DEFAULT_MAX_DURATION_MINUTES,
    FleetSpec,
    MachineGroup,
    SetupRoutine,
)
from bf_provisioner.providers.base import CloudComputeProvider
from bf_provisioner.providers.ec2 import Ec2SpotProvider

logger = logging.getLogger(__name__)


class FleetBuilder:
    """Collect machine groups, then run one fleet lifecycle.

    A builder is consumed by ``run``; build a new one for every fleet.

    Example::

        builder = FleetBuilder()
        builder.add_group("server", 1, image_id=AMI, instance_kind="t3.small",
                          setup=lambda s: s.command("cat /etc/hostname"))
        builder.add_group("client", 2, image_id=AMI, instance_kind="t3.small",
                          setup=lambda s: s.command("date"))
        outcome = builder.run(lambda fleet: fleet["server"][0].private_address)
    """

    def __init__(
        self,
        settings: Optional[FleetSettings] = None,
        provider: Optional[CloudComputeProvider] = None,
        transport: Optional[ShellTransport] = None,
    ) -> None:
        self.settings = settings or FleetSettings.from_env()
        self._provider = provider
        self._transport = transport
        self._groups: Dict[str, MachineGroup] = {}
        self._max_duration_minutes = DEFAULT_MAX_DURATION_MINUTES
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def groups(self) -> Dict[str, MachineGroup]:
        return dict(self._groups)

    def _ensure_open(self) -> None:
        if self._consumed:
            raise ConfigurationError("FleetBuilder has already been run; create a new one")

    def add_group(
        self,
        name: str,
        desired_count: int,
        *,
        image_id: str,
        instance_kind: str,
        setup: SetupRoutine,
    ) -> MachineGroup:
        """Register a named group of ``desired_count`` identical machines."""
        self._ensure_open()
        if name in self._groups:
            raise ConfigurationError(
                f"Machine group {name!r} is already declared", context={"group": name}
            )
        group = MachineGroup(
            name=name,
            desired_count=desired_count,
            image_id=image_id,
            instance_kind=instance_kind,
            setup=setup,
        )
        self._groups[name] = group
        return group

    def set_max_duration(self, hours: int) -> None:
        """Set the max-duration hint, which also bounds each polling stage."""
        self._ensure_open()
        if hours <= 0:
            raise ConfigurationError(
                "Maximum duration must be positive", context={"hours": hours}
            )
        self._max_duration_minutes = hours * 60

    def build_spec(self) -> FleetSpec:
        if not self._groups:
            raise ConfigurationError("At least one machine group is required")
        return FleetSpec(
            groups=self._groups,
            max_duration_minutes=self._max_duration_minutes,
        )

    def _default_provider(self) -> CloudComputeProvider:
        return Ec2SpotProvider(
            region=self.settings.region,
            key_name=self.settings.key_name,
            security_groups=self.settings.security_groups,
        )

    def _default_transport(self) -> ShellTransport:
        return FabricShellTransport(
            user=self.settings.ssh_user,
            key_path=self.settings.ssh_key_path,
            port=self.settings.ssh_port,
            retry_interval_seconds=self.settings.connect_retry_interval_seconds,
            timeout_seconds=self.settings.connect_timeout_seconds,
        )

    def run(self, workload: Workload) -> RunOutcome:
        """Provision, set up, run ``workload``, and tear everything down."""
        self._ensure_open()
        spec = self.build_spec()
        self._consumed = True
        self._groups = {}
        orchestrator = FleetOrchestrator(
            provider=self._provider or self._default_provider(),
            transport=self._transport or self._default_transport(),
            settings=self.settings,
        )
        logger.info(
            "Starting fleet run %s with %d machine(s) across %d group(s)",
            orchestrator.run_id,
            spec.total_desired,
            len(spec.groups),
        )
        return orchestrator.run(spec, workload)
