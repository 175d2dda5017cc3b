"""EC2 spot-request backend built on boto3."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence, TypeVar

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
)

from bf_common.api import CloudProviderError, ErrorKind
from bf_provisioner.models.types import InstanceDescription, RequestState, RequestStatus

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

logger = logging.getLogger(__name__)

DEFAULT_REGION = "eu-north-1"

TRANSIENT_ERROR_CODES = frozenset(
    {
        "RequestLimitExceeded",
        "Throttling",
        "ThrottlingException",
        "InternalError",
        "InternalFailure",
        "ServiceUnavailable",
        "Unavailable",
    }
)

# Used only when an exception carries no structured code.
TRANSIENT_ERROR_MARKERS = ("pooled stream disconnected", "broken pipe")

_CANCELLED_STATES = frozenset({"cancelled", "closed", "failed"})

T = TypeVar("T")


def classify_error(exc: BaseException) -> ErrorKind:
    """Return whether a boto3 failure is worth retrying."""
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        if code:
            return ErrorKind.TRANSIENT if code in TRANSIENT_ERROR_CODES else ErrorKind.FATAL
    if isinstance(exc, (BotoConnectionError, HTTPClientError, ConnectionError)):
        return ErrorKind.TRANSIENT
    message = str(exc).lower()
    if any(marker in message for marker in TRANSIENT_ERROR_MARKERS):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def map_request_state(raw_state: Optional[str], instance_id: Optional[str]) -> RequestState:
    """Translate an EC2 spot request state into a provisioning state."""
    if instance_id:
        return RequestState.RESOLVED
    if raw_state in _CANCELLED_STATES:
        return RequestState.CANCELLED
    return RequestState.PENDING


class Ec2SpotProvider:
    """Provision spot instances through the EC2 API."""

    def __init__(
        self,
        region: str = DEFAULT_REGION,
        key_name: Optional[str] = None,
        security_groups: Optional[Sequence[str]] = None,
        client: Optional["EC2Client"] = None,
    ) -> None:
        self.region = region
        self.key_name = key_name
        self.security_groups = list(security_groups or [])
        self._client = client

    @property
    def client(self) -> "EC2Client":
        if self._client is None:
            import boto3

            self._client = boto3.client("ec2", region_name=self.region)
        return self._client

    def _call(self, operation: str, **kwargs: Any) -> Any:
        """Invoke ``operation`` on the client, wrapping every botocore failure.

        The client is resolved inside the guarded block so that client
        construction errors (bad region, missing configuration) are wrapped too.
        """
        return self._guarded(operation, lambda: getattr(self.client, operation)(**kwargs))

    def _paginate(self, operation: str, **kwargs: Any) -> list[dict[str, Any]]:
        return self._guarded(
            operation,
            lambda: list(self.client.get_paginator(operation).paginate(**kwargs)),
        )

    def _guarded(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except (BotoCoreError, ClientError, ConnectionError) as exc:
            kind = classify_error(exc)
            raise CloudProviderError(
                f"EC2 {operation} failed: {exc}",
                kind=kind,
                context={"operation": operation, "region": self.region},
                cause=exc,
            ) from exc

    def _launch_specification(self, image_id: str, instance_kind: str) -> dict[str, Any]:
        spec: dict[str, Any] = {"ImageId": image_id, "InstanceType": instance_kind}
        if self.security_groups:
            spec["SecurityGroups"] = list(self.security_groups)
        if self.key_name:
            spec["KeyName"] = self.key_name
        return spec

    def submit_request(self, image_id: str, instance_kind: str, count: int) -> list[str]:
        logger.info(
            "Requesting %d spot instance(s) of %s (%s) in %s",
            count,
            instance_kind,
            image_id,
            self.region,
        )
        response = self._call(
            "request_spot_instances",
            InstanceCount=count,
            LaunchSpecification=self._launch_specification(image_id, instance_kind),
        )
        return [
            sir["SpotInstanceRequestId"]
            for sir in response.get("SpotInstanceRequests", [])
            if sir.get("SpotInstanceRequestId")
        ]

    def describe_requests(self, request_ids: Sequence[str]) -> list[RequestStatus]:
        if not request_ids:
            return []
        response = self._call(
            "describe_spot_instance_requests",
            SpotInstanceRequestIds=list(request_ids),
        )
        statuses = []
        for sir in response.get("SpotInstanceRequests", []):
            request_id = sir.get("SpotInstanceRequestId")
            if not request_id:
                continue
            raw_state = sir.get("State")
            instance_id = sir.get("InstanceId") or None
            statuses.append(
                RequestStatus(
                    request_id=request_id,
                    state=map_request_state(raw_state, instance_id),
                    instance_id=instance_id,
                    raw_state=raw_state,
                )
            )
        return statuses

    def cancel_requests(self, request_ids: Sequence[str]) -> None:
        if not request_ids:
            return
        self._call(
            "cancel_spot_instance_requests",
            SpotInstanceRequestIds=list(request_ids),
        )

    def describe_instances(self, instance_ids: Sequence[str]) -> list[InstanceDescription]:
        if not instance_ids:
            return []
        descriptions = []
        pages = self._paginate("describe_instances", InstanceIds=list(instance_ids))
        for page in pages:
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    descriptions.append(
                        InstanceDescription(
                            instance_id=instance["InstanceId"],
                            instance_kind=instance.get("InstanceType") or None,
                            private_address=instance.get("PrivateIpAddress") or None,
                            public_address=(
                                instance.get("PublicDnsName")
                                or instance.get("PublicIpAddress")
                                or None
                            ),
                        )
                    )
        return descriptions

    def terminate_instances(self, instance_ids: Sequence[str]) -> None:
        if not instance_ids:
            return
        logger.info("Terminating %d instance(s)", len(instance_ids))
        self._call(
            "terminate_instances",
            InstanceIds=list(instance_ids),
        )
