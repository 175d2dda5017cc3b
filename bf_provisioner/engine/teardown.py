"""Unconditional release of provisioned instances."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence

from bf_common.api import CloudProviderError, TeardownError
from bf_provisioner.providers.base import CloudComputeProvider

logger = logging.getLogger(__name__)
teardown_logger = logging.LoggerAdapter(logger, {"bf_phase": "teardown"})


class TeardownManager:
    """Terminate instances, retrying only failures classified as transient.

    Anything else is raised as ``TeardownError``: a loud failure beats
    silently leaking billable instances.
    """

    def __init__(
        self,
        provider: CloudComputeProvider,
        retry_interval_seconds: float = 1.0,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._provider = provider
        self._retry_interval = retry_interval_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep
        self.attempts = 0

    def terminate(self, instance_ids: Sequence[str]) -> List[str]:
        """Terminate each id exactly once; return the ids terminated."""
        unique_ids = list(dict.fromkeys(instance_ids))
        if not unique_ids:
            teardown_logger.info("No instances to terminate")
            return []
        teardown_logger.info("Terminating %d instance(s)", len(unique_ids))
        while True:
            self.attempts += 1
            try:
                self._provider.terminate_instances(unique_ids)
            except CloudProviderError as exc:
                if not exc.transient:
                    raise TeardownError(
                        f"Failed to terminate instances: {exc}",
                        context={"instance_ids": unique_ids, "attempts": self.attempts},
                        cause=exc,
                    ) from exc
                if self._max_attempts is not None and self.attempts >= self._max_attempts:
                    raise TeardownError(
                        f"Gave up terminating instances after {self.attempts} attempt(s)",
                        context={"instance_ids": unique_ids, "attempts": self.attempts},
                        cause=exc,
                    ) from exc
                teardown_logger.warning("Transient terminate failure, retrying: %s", exc)
                self._sleep(self._retry_interval)
                continue
            teardown_logger.info("Terminated %s", ", ".join(unique_ids))
            return unique_ids
