"""Capability interface for the cloud control plane."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from bf_provisioner.models.types import InstanceDescription, RequestStatus


@runtime_checkable
class CloudComputeProvider(Protocol):
    """Request, inspect, and release compute capacity.

    Every operation is a network call that may fail; implementations raise
    ``CloudProviderError`` with an ``ErrorKind`` so callers never need to
    inspect vendor error text.
    """

    def submit_request(self, image_id: str, instance_kind: str, count: int) -> list[str]:
        """Request ``count`` instances and return the request ids."""
        ...

    def describe_requests(self, request_ids: Sequence[str]) -> list[RequestStatus]:
        ...

    def cancel_requests(self, request_ids: Sequence[str]) -> None:
        ...

    def describe_instances(self, instance_ids: Sequence[str]) -> list[InstanceDescription]:
        ...

    def terminate_instances(self, instance_ids: Sequence[str]) -> None:
        ...
