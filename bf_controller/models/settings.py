"""Runtime settings for fleet orchestration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from bf_common.config.env import (
    parse_bool_env,
    parse_float_env,
    parse_int_env,
    parse_list_env,
)

ENV_PREFIX = "BF_"


class FleetSettings(BaseModel):
    """Cloud, SSH and polling knobs shared by every run."""

    region: str = Field(default="eu-north-1", description="Cloud region to provision in")
    key_name: Optional[str] = Field(default=None, description="Key pair installed on new instances")
    security_groups: List[str] = Field(
        default_factory=list, description="Security groups attached to new instances"
    )
    ssh_user: str = Field(default="ubuntu", description="Login user for remote shell sessions")
    ssh_key_path: Optional[Path] = Field(default=None, description="Private key used to authenticate")
    ssh_port: int = Field(default=22, gt=0, description="Remote shell port")
    poll_interval_seconds: float = Field(
        default=2.0, ge=0, description="Pause between control-plane polls"
    )
    poll_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Override for the polling deadline otherwise derived from the max-duration hint",
    )
    connect_retry_interval_seconds: float = Field(
        default=2.0, ge=0, description="Pause between remote shell connection attempts"
    )
    connect_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Give up connecting to a machine after this long"
    )
    setup_workers: int = Field(
        default=8, ge=1, description="Machines set up concurrently; 1 means one at a time"
    )
    require_full_fleet: bool = Field(
        default=False, description="Fail the run when any group resolves fewer machines than requested"
    )
    teardown_retry_interval_seconds: float = Field(
        default=1.0, ge=0, description="Pause between transient terminate failures"
    )

    @field_validator("ssh_key_path")
    @classmethod
    def _expand_key_path(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> "FleetSettings":
        """Build settings from ``BF_*`` variables.

        Priority: explicit overrides > environment variables > defaults.
        """
        env = os.environ if environ is None else environ
        parsers: dict[str, Callable[[str | None], Any]] = {
            "region": _parse_str,
            "key_name": _parse_str,
            "security_groups": parse_list_env,
            "ssh_user": _parse_str,
            "ssh_key_path": _parse_str,
            "ssh_port": parse_int_env,
            "poll_interval_seconds": parse_float_env,
            "poll_timeout_seconds": parse_float_env,
            "connect_retry_interval_seconds": parse_float_env,
            "connect_timeout_seconds": parse_float_env,
            "setup_workers": parse_int_env,
            "require_full_fleet": parse_bool_env,
            "teardown_retry_interval_seconds": parse_float_env,
        }
        values: dict[str, Any] = {}
        for name, parser in parsers.items():
            parsed = parser(env.get(f"{ENV_PREFIX}{name.upper()}"))
            if parsed is not None:
                values[name] = parsed
        values.update({key: val for key, val in overrides.items() if val is not None})
        return cls(**values)


def _parse_str(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
