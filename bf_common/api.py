"""Public API surface for bf_common."""

from bf_common.errors import (
    CloudProviderError,
    ConfigurationError,
    ConvergenceError,
    ErrorKind,
    FleetError,
    ProvisioningError,
    RemoteExecutionError,
    SetupError,
    TeardownError,
    WorkloadError,
    error_to_payload,
    wrap_error,
)
from bf_common.logging import configure_logging
from bf_common.models.machine import CommandResult, Fleet, Machine, RemoteSession

__all__ = [
    "CloudProviderError",
    "CommandResult",
    "ConfigurationError",
    "ConvergenceError",
    "ErrorKind",
    "Fleet",
    "FleetError",
    "Machine",
    "ProvisioningError",
    "RemoteExecutionError",
    "RemoteSession",
    "SetupError",
    "TeardownError",
    "WorkloadError",
    "configure_logging",
    "error_to_payload",
    "wrap_error",
]
