"""Unit tests for the boto3-backed EC2 spot provider."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    InvalidRegionError,
    OperationNotPageableError,
    ParamValidationError,
)

from bf_common.api import CloudProviderError, ErrorKind
from bf_provisioner.models.types import RequestState
from bf_provisioner.providers.ec2 import Ec2SpotProvider, classify_error, map_request_state


pytestmark = pytest.mark.unit_provisioner


def _client_error(code: str, message: str = "nope") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, "TerminateInstances")


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def provider(client) -> Ec2SpotProvider:
    return Ec2SpotProvider(
        region="eu-north-1",
        key_name="fleet-key",
        security_groups=["fleet-ssh"],
        client=client,
    )


def test_submit_request_sends_launch_specification(provider, client) -> None:
    client.request_spot_instances.return_value = {
        "SpotInstanceRequests": [
            {"SpotInstanceRequestId": "sir-1"},
            {"SpotInstanceRequestId": "sir-2"},
            {},
        ]
    }

    ids = provider.submit_request("ami-123", "t3.small", 2)

    assert ids == ["sir-1", "sir-2"]
    client.request_spot_instances.assert_called_once_with(
        InstanceCount=2,
        LaunchSpecification={
            "ImageId": "ami-123",
            "InstanceType": "t3.small",
            "SecurityGroups": ["fleet-ssh"],
            "KeyName": "fleet-key",
        },
    )


def test_launch_specification_omits_unset_credentials(client) -> None:
    client.request_spot_instances.return_value = {"SpotInstanceRequests": []}
    Ec2SpotProvider(client=client).submit_request("ami-123", "t3.small", 1)

    spec = client.request_spot_instances.call_args.kwargs["LaunchSpecification"]
    assert spec == {"ImageId": "ami-123", "InstanceType": "t3.small"}


def test_describe_requests_maps_states(provider, client) -> None:
    client.describe_spot_instance_requests.return_value = {
        "SpotInstanceRequests": [
            {"SpotInstanceRequestId": "sir-1", "State": "open"},
            {"SpotInstanceRequestId": "sir-2", "State": "active", "InstanceId": "i-2"},
            {"SpotInstanceRequestId": "sir-3", "State": "failed"},
            {"SpotInstanceRequestId": "sir-4", "State": "cancelled", "InstanceId": "i-4"},
        ]
    }

    statuses = {s.request_id: s for s in provider.describe_requests(["sir-1", "sir-2", "sir-3", "sir-4"])}

    assert statuses["sir-1"].state is RequestState.PENDING
    assert statuses["sir-2"].state is RequestState.RESOLVED
    assert statuses["sir-2"].instance_id == "i-2"
    assert statuses["sir-3"].state is RequestState.CANCELLED
    assert statuses["sir-4"].state is RequestState.RESOLVED
    assert statuses["sir-3"].raw_state == "failed"


@pytest.mark.parametrize(
    ("raw", "instance_id", "expected"),
    [
        ("open", None, RequestState.PENDING),
        ("active", None, RequestState.PENDING),
        ("closed", None, RequestState.CANCELLED),
        ("closed", "i-1", RequestState.RESOLVED),
        (None, None, RequestState.PENDING),
    ],
)
def test_map_request_state(raw, instance_id, expected) -> None:
    assert map_request_state(raw, instance_id) is expected


def test_describe_instances_reads_every_page(provider, client) -> None:
    paginator = MagicMock()
    paginator.paginate.return_value = iter(
        [
            {
                "Reservations": [
                    {
                        "Instances": [
                            {
                                "InstanceId": "i-1",
                                "InstanceType": "t3.small",
                                "PrivateIpAddress": "10.0.0.1",
                                "PublicDnsName": "ec2-1.example.com",
                            }
                        ]
                    }
                ]
            },
            {
                "Reservations": [
                    {
                        "Instances": [
                            {
                                "InstanceId": "i-2",
                                "InstanceType": "t3.small",
                                "PrivateIpAddress": "10.0.0.2",
                                "PublicDnsName": "",
                                "PublicIpAddress": "52.0.0.2",
                            },
                            {"InstanceId": "i-3", "PublicDnsName": ""},
                        ]
                    }
                ]
            },
        ]
    )
    client.get_paginator.return_value = paginator

    described = {d.instance_id: d for d in provider.describe_instances(["i-1", "i-2", "i-3"])}

    client.get_paginator.assert_called_once_with("describe_instances")
    paginator.paginate.assert_called_once_with(InstanceIds=["i-1", "i-2", "i-3"])
    assert described["i-1"].public_address == "ec2-1.example.com"
    assert described["i-2"].public_address == "52.0.0.2"
    assert described["i-1"].reachable and described["i-2"].reachable
    assert not described["i-3"].reachable
    assert described["i-3"].public_address is None


def test_cancel_and_terminate_pass_ids(provider, client) -> None:
    provider.cancel_requests(["sir-1"])
    provider.terminate_instances(["i-1", "i-2"])

    client.cancel_spot_instance_requests.assert_called_once_with(SpotInstanceRequestIds=["sir-1"])
    client.terminate_instances.assert_called_once_with(InstanceIds=["i-1", "i-2"])


def test_empty_id_lists_make_no_calls(provider, client) -> None:
    assert provider.describe_requests([]) == []
    assert provider.describe_instances([]) == []
    provider.cancel_requests([])
    provider.terminate_instances([])
    assert client.method_calls == []


def test_client_errors_are_wrapped_with_kind(provider, client) -> None:
    client.terminate_instances.side_effect = _client_error("UnauthorizedOperation")

    with pytest.raises(CloudProviderError) as excinfo:
        provider.terminate_instances(["i-1"])

    assert excinfo.value.kind is ErrorKind.FATAL
    assert excinfo.value.context["operation"] == "terminate_instances"
    assert isinstance(excinfo.value.__cause__, ClientError)


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (_client_error("RequestLimitExceeded"), ErrorKind.TRANSIENT),
        (_client_error("Unavailable"), ErrorKind.TRANSIENT),
        (_client_error("InvalidInstanceID.Malformed"), ErrorKind.FATAL),
        (EndpointConnectionError(endpoint_url="https://ec2.eu-north-1.amazonaws.com"), ErrorKind.TRANSIENT),
        (ConnectionResetError("reset by peer"), ErrorKind.TRANSIENT),
        (RuntimeError("Pooled stream disconnected"), ErrorKind.TRANSIENT),
        (RuntimeError("error writing a body to connection: Broken pipe"), ErrorKind.TRANSIENT),
        (ParamValidationError(report="bad InstanceIds"), ErrorKind.FATAL),
    ],
)
def test_classify_error(exc, expected) -> None:
    assert classify_error(exc) is expected


def test_client_is_built_lazily_for_region(monkeypatch) -> None:
    created = {}

    def fake_client(service, region_name):
        created["args"] = (service, region_name)
        return MagicMock()

    import boto3

    monkeypatch.setattr(boto3, "client", fake_client)
    provider = Ec2SpotProvider(region="us-west-2")
    assert created == {}
    _ = provider.client
    assert created["args"] == ("ec2", "us-west-2")


def test_client_construction_failure_is_wrapped() -> None:
    provider = Ec2SpotProvider(region="not a region")

    with patch("boto3.client", side_effect=InvalidRegionError(region_name="not a region")):
        with pytest.raises(CloudProviderError) as excinfo:
            provider.submit_request("ami-123", "t3.small", 1)

    assert excinfo.value.kind is ErrorKind.FATAL
    assert excinfo.value.context["operation"] == "request_spot_instances"
    assert isinstance(excinfo.value.__cause__, InvalidRegionError)


def test_paginator_creation_failure_is_wrapped(provider, client) -> None:
    client.get_paginator.side_effect = OperationNotPageableError(
        operation_name="describe_instances"
    )

    with pytest.raises(CloudProviderError) as excinfo:
        provider.describe_instances(["i-1"])

    assert excinfo.value.context["operation"] == "describe_instances"
