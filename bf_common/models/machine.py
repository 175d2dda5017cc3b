"""Machine descriptors shared by the provisioner and the controller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a remote command."""

    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


@runtime_checkable
class RemoteSession(Protocol):
    """A live, authenticated shell session on one machine."""

    host: str

    def run(self, command: str) -> CommandResult:
        """Execute a command and capture its output regardless of exit status."""
        ...

    def command(self, command: str) -> str:
        """Execute a command and return stdout, raising on non-zero exit."""
        ...

    def close(self) -> None:
        ...


@dataclass
class Machine:
    """A reachable instance belonging to one machine group."""

    instance_id: str
    group_name: str
    instance_kind: str
    private_address: str
    public_address: str
    shell_session: Optional[RemoteSession] = None

    @property
    def is_set_up(self) -> bool:
        return self.shell_session is not None

    def close_session(self) -> None:
        """Close and detach the shell session, if any."""
        session, self.shell_session = self.shell_session, None
        if session is not None:
            session.close()


Fleet = Dict[str, List[Machine]]
