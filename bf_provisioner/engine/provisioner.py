"""Turn a fleet declaration into resolved instance ids."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from bf_common.api import CloudProviderError, ConvergenceError, ProvisioningError
from bf_provisioner.engine.polling import PollPolicy
from bf_provisioner.models.types import (
    FleetSpec,
    ProvisioningRequest,
    ProvisioningResult,
    RequestState,
)
from bf_provisioner.providers.base import CloudComputeProvider

logger = logging.getLogger(__name__)


class FleetProvisioner:
    """Submit one sized request per group and wait for every request to be decided.

    ``result`` is populated as requests resolve, so teardown can use it even
    when provisioning itself fails part-way.
    """

    def __init__(
        self,
        provider: CloudComputeProvider,
        policy: Optional[PollPolicy] = None,
        require_full_fleet: bool = False,
    ) -> None:
        self._provider = provider
        self._policy = policy or PollPolicy()
        self._require_full_fleet = require_full_fleet
        self.result = ProvisioningResult()

    @property
    def request_ids(self) -> List[str]:
        return [req.request_id for req in self.result.requests]

    def provision(self, spec: FleetSpec) -> ProvisioningResult:
        """Submit, resolve, and clean up requests for every group in ``spec``."""
        self._submit_all(spec)
        try:
            self._resolve()
        finally:
            self._cancel_requests()
        self._check_counts(spec)
        return self.result

    def _submit_all(self, spec: FleetSpec) -> None:
        for group in spec.groups.values():
            try:
                request_ids = self._provider.submit_request(
                    group.image_id, group.instance_kind, group.desired_count
                )
            except CloudProviderError as exc:
                self._abandon()
                raise ProvisioningError(
                    f"Failed to submit provisioning request for group {group.name!r}",
                    context={"group": group.name, "desired_count": group.desired_count},
                    cause=exc,
                ) from exc
            logger.info(
                "Submitted %d request(s) for group %s", len(request_ids), group.name
            )
            self.result.requests.extend(
                ProvisioningRequest(request_id=request_id, group_name=group.name)
                for request_id in request_ids
            )

    def _pending(self) -> Dict[str, ProvisioningRequest]:
        return {
            req.request_id: req
            for req in self.result.requests
            if req.state is RequestState.PENDING
        }

    def _refresh(self, pending: Dict[str, ProvisioningRequest]) -> None:
        for status in self._provider.describe_requests(list(pending)):
            request = pending.get(status.request_id)
            if request is not None:
                request.apply(status)

    def _resolve(self) -> None:
        deadline = self._policy.deadline()
        while True:
            pending = self._pending()
            if not pending:
                return
            try:
                self._refresh(pending)
            except CloudProviderError as exc:
                logger.debug("Request status query failed, retrying: %s", exc)
            pending = self._pending()
            if not pending:
                return
            if not deadline.wait():
                raise ConvergenceError(
                    f"{len(pending)} provisioning request(s) still open after "
                    f"{deadline.elapsed:.0f}s",
                    context={
                        "pending_requests": sorted(pending),
                        "attempts": deadline.attempts,
                    },
                )

    def _cancel_requests(self) -> None:
        """Cancel every request id, decided or not, then record late fulfilment."""
        request_ids = self.request_ids
        if not request_ids:
            return
        try:
            self._provider.cancel_requests(request_ids)
        except CloudProviderError as exc:
            logger.warning("Failed to cancel provisioning requests: %s", exc)
        pending = self._pending()
        if pending:
            try:
                self._refresh(pending)
            except CloudProviderError as exc:
                logger.warning("Final request status query failed: %s", exc)
        for request in self.result.requests:
            request.cancel()

    def _abandon(self) -> None:
        if self.result.requests:
            logger.warning(
                "Abandoning %d already-submitted request(s)", len(self.result.requests)
            )
            self._cancel_requests()

    def _check_counts(self, spec: FleetSpec) -> None:
        counts = self.result.counts_by_group()
        short = {
            name: {"desired": group.desired_count, "resolved": counts.get(name, 0)}
            for name, group in spec.groups.items()
            if counts.get(name, 0) < group.desired_count
        }
        if not short:
            return
        if self._require_full_fleet:
            raise ProvisioningError(
                "Provisioning produced fewer machines than requested",
                context={"groups": short},
            )
        for name, numbers in short.items():
            logger.warning(
                "Group %s resolved %d of %d requested machine(s)",
                name,
                numbers["resolved"],
                numbers["desired"],
            )
