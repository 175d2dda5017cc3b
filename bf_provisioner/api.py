"""Public provisioning API surface."""

from bf_provisioner.engine.polling import Deadline, PollPolicy
from bf_provisioner.engine.provisioner import FleetProvisioner
from bf_provisioner.engine.readiness import ReadinessPoller, group_machines
from bf_provisioner.engine.teardown import TeardownManager
from bf_provisioner.models.types import (
    DEFAULT_MAX_DURATION_MINUTES,
    FleetSpec,
    InstanceDescription,
    MachineGroup,
    ProvisionedInstance,
    ProvisioningRequest,
    ProvisioningResult,
    RequestState,
    RequestStatus,
    SetupRoutine,
)
from bf_provisioner.providers.base import CloudComputeProvider
from bf_provisioner.providers.ec2 import Ec2SpotProvider

__all__ = [
    "CloudComputeProvider",
    "DEFAULT_MAX_DURATION_MINUTES",
    "Deadline",
    "Ec2SpotProvider",
    "FleetProvisioner",
    "FleetSpec",
    "InstanceDescription",
    "MachineGroup",
    "PollPolicy",
    "ProvisionedInstance",
    "ProvisioningRequest",
    "ProvisioningResult",
    "ReadinessPoller",
    "RequestState",
    "RequestStatus",
    "SetupRoutine",
    "TeardownManager",
    "group_machines",
]
