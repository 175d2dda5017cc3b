"""Shared error taxonomy for burst-fleet."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, TypeVar


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class FleetError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class ErrorKind(str, Enum):
    """Structured classification of control-plane failures."""

    TRANSIENT = "transient"
    FATAL = "fatal"


class ConfigurationError(FleetError):
    """Failure due to an invalid fleet declaration or settings."""


class CloudProviderError(FleetError):
    """A control-plane call failed."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind = ErrorKind.FATAL,
        context: Mapping[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        merged = dict(context or {})
        merged.setdefault("kind", kind.value)
        super().__init__(message, context=merged, cause=cause)
        self.kind = kind

    @property
    def transient(self) -> bool:
        return self.kind is ErrorKind.TRANSIENT


class ProvisioningError(FleetError):
    """Provisioning requests could not be submitted or produced a short fleet."""


class ConvergenceError(FleetError):
    """A polling loop gave up before the control plane converged."""


class RemoteExecutionError(FleetError):
    """Failure connecting to, authenticating with, or running on a machine."""


class SetupError(FleetError):
    """A setup routine failed for at least one machine."""


class WorkloadError(FleetError):
    """The caller's workload routine failed."""


class TeardownError(FleetError):
    """Instances could not be terminated and retrying will not help."""


T = TypeVar("T", bound=FleetError)


def wrap_error(
    error_cls: type[T],
    message: str,
    *,
    context: Mapping[str, Any] | None = None,
    cause: BaseException | None = None,
) -> T:
    """Create a typed FleetError with optional context and cause."""
    return error_cls(message, context=context, cause=cause)


def error_to_payload(error: FleetError) -> dict[str, Any]:
    """Convert a FleetError to a flat outcome payload."""
    return {
        "error_type": error.error_type,
        "error": str(error),
        "error_context": error.context,
    }
