"""Tests for fleet declaration and request value objects."""

from __future__ import annotations

import pytest

from bf_common.api import ConfigurationError
from bf_provisioner.models.types import (
    FleetSpec,
    MachineGroup,
    ProvisioningRequest,
    ProvisioningResult,
    RequestState,
    RequestStatus,
)


pytestmark = pytest.mark.unit_provisioner


def _group(name: str = "server", count: int = 1) -> MachineGroup:
    return MachineGroup(
        name=name,
        desired_count=count,
        image_id="ami-123",
        instance_kind="t3.small",
        setup=lambda session: None,
    )


@pytest.mark.parametrize("count", [0, -1, True, 1.5])
def test_group_rejects_invalid_counts(count) -> None:
    with pytest.raises(ConfigurationError):
        _group(count=count)


def test_group_requires_callable_setup_and_image() -> None:
    with pytest.raises(ConfigurationError):
        MachineGroup("server", 1, "ami-123", "t3.small", setup="echo hi")
    with pytest.raises(ConfigurationError):
        MachineGroup("server", 1, "", "t3.small", setup=print)
    with pytest.raises(ConfigurationError):
        MachineGroup(" ", 1, "ami-123", "t3.small", setup=print)


def test_fleet_spec_is_a_read_only_snapshot() -> None:
    groups = {"server": _group()}
    spec = FleetSpec(groups=groups, max_duration_minutes=90)
    groups["client"] = _group("client", 2)

    assert list(spec.groups) == ["server"]
    with pytest.raises(TypeError):
        spec.groups["client"] = _group("client")  # type: ignore[index]
    assert spec.total_desired == 1
    assert spec.max_duration_seconds == 5400.0


def test_fleet_spec_rejects_non_positive_duration() -> None:
    with pytest.raises(ConfigurationError):
        FleetSpec(groups={"server": _group()}, max_duration_minutes=0)


def test_request_resolves_once_and_keeps_instance() -> None:
    request = ProvisioningRequest(request_id="sir-1", group_name="server")
    request.apply(RequestStatus("sir-1", RequestState.PENDING))
    assert request.state is RequestState.PENDING

    request.apply(RequestStatus("sir-1", RequestState.RESOLVED, instance_id="i-1"))
    request.apply(RequestStatus("sir-1", RequestState.CANCELLED))

    assert request.state is RequestState.RESOLVED
    assert request.instance_id == "i-1"


def test_late_fulfilment_overrides_local_cancel() -> None:
    request = ProvisioningRequest(request_id="sir-1", group_name="server")
    request.cancel()
    request.apply(RequestStatus("sir-1", RequestState.CANCELLED, instance_id="i-9"))

    assert request.state is RequestState.RESOLVED
    assert request.instance_id == "i-9"


def test_result_only_reports_resolved_instances() -> None:
    result = ProvisioningResult(
        requests=[
            ProvisioningRequest("sir-1", "server", RequestState.RESOLVED, "i-1"),
            ProvisioningRequest("sir-2", "client", RequestState.CANCELLED),
            ProvisioningRequest("sir-3", "client", RequestState.RESOLVED, "i-3"),
        ]
    )

    assert result.instance_ids == ["i-1", "i-3"]
    assert result.counts_by_group() == {"server": 1, "client": 1}
