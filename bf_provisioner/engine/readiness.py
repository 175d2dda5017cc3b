"""Wait for provisioned instances to expose their network endpoints."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from bf_common.api import CloudProviderError, ConvergenceError, Fleet, Machine
from bf_provisioner.engine.polling import PollPolicy
from bf_provisioner.models.types import InstanceDescription, ProvisionedInstance
from bf_provisioner.providers.base import CloudComputeProvider

logger = logging.getLogger(__name__)


class ReadinessPoller:
    """Poll full instance snapshots until every instance is reachable."""

    def __init__(
        self,
        provider: CloudComputeProvider,
        policy: Optional[PollPolicy] = None,
    ) -> None:
        self._provider = provider
        self._policy = policy or PollPolicy()

    def snapshot(self, instances: Sequence[ProvisionedInstance]) -> Optional[List[Machine]]:
        """Run one describe pass; return machines only if every instance is ready.

        Nothing carries over between passes: one incomplete instance
        invalidates the whole snapshot.
        """
        groups = {instance.instance_id: instance.group_name for instance in instances}
        described = {
            desc.instance_id: desc
            for desc in self._provider.describe_instances(list(groups))
        }
        machines: List[Machine] = []
        complete = True
        for instance_id, group_name in groups.items():
            desc = described.get(instance_id)
            if desc is None or not desc.reachable:
                complete = False
                continue
            machines.append(_to_machine(desc, group_name))
        return machines if complete else None

    def wait_until_ready(self, instances: Sequence[ProvisionedInstance]) -> Fleet:
        """Block until every instance is reachable and return them by group."""
        if not instances:
            return {}
        deadline = self._policy.deadline()
        while True:
            try:
                machines = self.snapshot(instances)
            except CloudProviderError as exc:
                logger.debug("Describe call failed, retrying: %s", exc)
                machines = None
            if machines is not None:
                logger.info("All %d instance(s) are reachable", len(machines))
                return group_machines(machines)
            if not deadline.wait():
                raise ConvergenceError(
                    f"Instances did not become reachable after {deadline.elapsed:.0f}s",
                    context={
                        "instance_ids": [instance.instance_id for instance in instances],
                        "attempts": deadline.attempts,
                    },
                )


def _to_machine(desc: InstanceDescription, group_name: str) -> Machine:
    return Machine(
        instance_id=desc.instance_id,
        group_name=group_name,
        instance_kind=desc.instance_kind or "",
        private_address=desc.private_address or "",
        public_address=desc.public_address or "",
    )


def group_machines(machines: Sequence[Machine]) -> Fleet:
    """Partition machines by group, preserving their order."""
    fleet: Fleet = {}
    for machine in machines:
        fleet.setdefault(machine.group_name, []).append(machine)
    return fleet
