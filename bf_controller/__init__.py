"""Fleet orchestration facade.

Re-exports the builder and outcome types callers need to run a fleet.
"""

from bf_controller.api import FleetBuilder, FleetSettings, FleetState, RunOutcome

__all__ = ["FleetBuilder", "FleetSettings", "FleetState", "RunOutcome"]
