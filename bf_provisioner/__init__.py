"""Provisioning, readiness and teardown for transient fleets."""

from bf_common.api import configure_logging as _configure_logging

_configure_logging()

from bf_provisioner.api import (  # noqa: F401,E402
    CloudComputeProvider,
    Ec2SpotProvider,
    FleetProvisioner,
    FleetSpec,
    MachineGroup,
    PollPolicy,
    ReadinessPoller,
    TeardownManager,
)

__all__ = [
    "CloudComputeProvider",
    "Ec2SpotProvider",
    "FleetProvisioner",
    "FleetSpec",
    "MachineGroup",
    "PollPolicy",
    "ReadinessPoller",
    "TeardownManager",
]
