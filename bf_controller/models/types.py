"""Run outcome reported to the caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bf_common.api import FleetError, error_to_payload
from bf_controller.lifecycle import FleetState


@dataclass
class RunOutcome:
    """Result of one orchestration run, produced after teardown completed."""

    run_id: str
    success: bool
    terminated_instance_ids: List[str] = field(default_factory=list)
    failed_stage: Optional[FleetState] = None
    error: Optional[FleetError] = None
    result: Any = None

    def __bool__(self) -> bool:
        return self.success

    def raise_for_failure(self) -> None:
        """Re-raise the captured error, if the run failed."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "run_id": self.run_id,
            "success": self.success,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "terminated_instance_ids": list(self.terminated_instance_ids),
        }
        if self.error is not None:
            payload.update(error_to_payload(self.error))
        return payload
