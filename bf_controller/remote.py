"""Remote shell sessions over SSH (Fabric)."""

from __future__ import annotations

import logging
import socket
import time
from pathlib import Path
from typing import Callable, Optional

from fabric import Connection
from invoke.exceptions import UnexpectedExit
from paramiko.ssh_exception import AuthenticationException, SSHException

from bf_common.api import CommandResult, RemoteExecutionError

logger = logging.getLogger(__name__)

# Errors raised while the target is still booting.
CONNECT_RETRY_ERRORS = (OSError, socket.timeout, EOFError, SSHException)


class FabricShellSession:
    """A connected Fabric session bound to a single machine."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self.host = connection.host

    @property
    def connection(self) -> Connection:
        return self._connection

    def run(self, command: str) -> CommandResult:
        result = self._connection.run(command, hide=True, warn=True, in_stream=False)
        return CommandResult(
            command=command,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_status=result.exited,
        )

    def command(self, command: str) -> str:
        try:
            result = self._connection.run(command, hide=True, in_stream=False)
        except UnexpectedExit as exc:
            raise RemoteExecutionError(
                f"Command exited with status {exc.result.exited} on {self.host}",
                context={
                    "host": self.host,
                    "command": command,
                    "exit_status": exc.result.exited,
                    "stderr": exc.result.stderr.strip(),
                },
                cause=exc,
            ) from exc
        return result.stdout

    def close(self) -> None:
        self._connection.close()


class FabricShellTransport:
    """Open authenticated sessions, waiting out hosts that are not accepting yet."""

    def __init__(
        self,
        user: str = "ubuntu",
        key_path: Optional[Path | str] = None,
        port: int = 22,
        retry_interval_seconds: float = 2.0,
        timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.user = user
        self.key_path = Path(key_path).expanduser() if key_path else None
        self.port = port
        self.retry_interval_seconds = retry_interval_seconds
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep

    def _build_connection(self, host: str) -> Connection:
        connect_kwargs: dict = {"banner_timeout": 30}
        if self.key_path is not None:
            connect_kwargs["key_filename"] = str(self.key_path)
        return Connection(
            host=host,
            user=self.user,
            port=self.port,
            connect_kwargs=connect_kwargs,
        )

    def connect(self, host: str) -> FabricShellSession:
        """Connect and authenticate to ``host``.

        Connection failures are retried until ``timeout_seconds`` (forever when
        unset); authentication failures are not.
        """
        started = time.monotonic()
        attempts = 0
        while True:
            attempts += 1
            connection = self._build_connection(host)
            try:
                connection.open()
            except AuthenticationException as exc:
                connection.close()
                raise RemoteExecutionError(
                    f"Authentication as {self.user} failed on {host}",
                    context={"host": host, "user": self.user, "port": self.port},
                    cause=exc,
                ) from exc
            except CONNECT_RETRY_ERRORS as exc:
                connection.close()
                elapsed = time.monotonic() - started
                if self.timeout_seconds is not None and elapsed >= self.timeout_seconds:
                    raise RemoteExecutionError(
                        f"Could not connect to {host}:{self.port} after {attempts} attempt(s)",
                        context={"host": host, "port": self.port, "attempts": attempts},
                        cause=exc,
                    ) from exc
                logger.debug("Connection to %s failed (%s), retrying", host, exc)
                self._sleep(self.retry_interval_seconds)
                continue
            logger.info("Connected to %s@%s:%d", self.user, host, self.port)
            return FabricShellSession(connection)
