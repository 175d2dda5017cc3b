"""Fleet declaration types and provisioning value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from bf_common.api import ConfigurationError, RemoteSession

DEFAULT_MAX_DURATION_MINUTES = 60

# A setup routine fails by raising or by returning False; other return values
# are ignored.
SetupRoutine = Callable[[RemoteSession], Any]


@dataclass(frozen=True)
class MachineGroup:
    """A named set of identical machines and the routine that prepares them."""

    name: str
    desired_count: int
    image_id: str
    instance_kind: str
    setup: SetupRoutine

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigurationError("Machine group name must be non-empty")
        if isinstance(self.desired_count, bool) or not isinstance(self.desired_count, int):
            raise ConfigurationError(
                f"Machine group {self.name!r} needs an integer count",
                context={"group": self.name, "desired_count": self.desired_count},
            )
        if self.desired_count < 1:
            raise ConfigurationError(
                f"Machine group {self.name!r} must request at least one machine",
                context={"group": self.name, "desired_count": self.desired_count},
            )
        if not self.image_id or not self.instance_kind:
            raise ConfigurationError(
                f"Machine group {self.name!r} needs an image id and an instance kind",
                context={"group": self.name},
            )
        if not callable(self.setup):
            raise ConfigurationError(
                f"Machine group {self.name!r} setup routine is not callable",
                context={"group": self.name},
            )


@dataclass(frozen=True)
class FleetSpec:
    """Immutable snapshot of a fleet declaration handed to the orchestrator."""

    groups: Mapping[str, MachineGroup]
    max_duration_minutes: int = DEFAULT_MAX_DURATION_MINUTES

    def __post_init__(self) -> None:
        object.__setattr__(self, "groups", MappingProxyType(dict(self.groups)))
        if self.max_duration_minutes <= 0:
            raise ConfigurationError(
                "Maximum duration must be positive",
                context={"max_duration_minutes": self.max_duration_minutes},
            )

    @property
    def total_desired(self) -> int:
        return sum(group.desired_count for group in self.groups.values())

    @property
    def max_duration_seconds(self) -> float:
        return float(self.max_duration_minutes * 60)


class RequestState(str, Enum):
    """Lifecycle of a provisioning request."""

    PENDING = "pending"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self is not RequestState.PENDING


@dataclass
class ProvisioningRequest:
    """One control-plane capacity request tied to the group that asked for it."""

    request_id: str
    group_name: str
    state: RequestState = RequestState.PENDING
    instance_id: Optional[str] = None

    def apply(self, status: "RequestStatus") -> None:
        """Advance using a fresh control-plane status.

        An instance id always wins: a request cancelled after it was
        fulfilled still owns a running instance that must be terminated.
        """
        if self.state is RequestState.RESOLVED:
            return
        if status.instance_id:
            self.state = RequestState.RESOLVED
            self.instance_id = status.instance_id
        elif status.state is RequestState.CANCELLED:
            self.state = RequestState.CANCELLED

    def cancel(self) -> None:
        if self.state is RequestState.PENDING:
            self.state = RequestState.CANCELLED


@dataclass(frozen=True)
class RequestStatus:
    """Control-plane view of a provisioning request."""

    request_id: str
    state: RequestState
    instance_id: Optional[str] = None
    raw_state: Optional[str] = None


@dataclass(frozen=True)
class InstanceDescription:
    """Control-plane view of an instance; fields appear progressively."""

    instance_id: str
    instance_kind: Optional[str] = None
    private_address: Optional[str] = None
    public_address: Optional[str] = None

    @property
    def reachable(self) -> bool:
        return bool(self.instance_kind and self.private_address and self.public_address)


@dataclass(frozen=True)
class ProvisionedInstance:
    """An instance id tagged with its originating group."""

    instance_id: str
    group_name: str


@dataclass
class ProvisioningResult:
    """Aggregate provisioning outcome."""

    requests: List[ProvisioningRequest] = field(default_factory=list)

    @property
    def instances(self) -> List[ProvisionedInstance]:
        return [
            ProvisionedInstance(instance_id=req.instance_id, group_name=req.group_name)
            for req in self.requests
            if req.state is RequestState.RESOLVED and req.instance_id
        ]

    @property
    def instance_ids(self) -> List[str]:
        return [instance.instance_id for instance in self.instances]

    def counts_by_group(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for instance in self.instances:
            counts[instance.group_name] = counts.get(instance.group_name, 0) + 1
        return counts
