"""Public controller API surface."""

from bf_controller.builder import FleetBuilder
from bf_controller.engine.orchestrator import FleetOrchestrator
from bf_controller.lifecycle import FleetState, FleetStateMachine
from bf_controller.models.settings import FleetSettings
from bf_controller.models.types import RunOutcome
from bf_controller.remote import FabricShellSession, FabricShellTransport
from bf_controller.services.setup_executor import SetupExecutor, ShellTransport
from bf_controller.services.workload_invoker import Workload, WorkloadInvoker

__all__ = [
    "FabricShellSession",
    "FabricShellTransport",
    "FleetBuilder",
    "FleetOrchestrator",
    "FleetSettings",
    "FleetState",
    "FleetStateMachine",
    "RunOutcome",
    "SetupExecutor",
    "ShellTransport",
    "Workload",
    "WorkloadInvoker",
]
