"""Per-stage services used by the orchestrator."""

from .setup_executor import SetupExecutor, ShellTransport
from .workload_invoker import WorkloadInvoker

__all__ = ["SetupExecutor", "ShellTransport", "WorkloadInvoker"]
