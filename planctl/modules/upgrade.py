"""Phased node upgrades.

Nodes are upgraded in three phases:
  1. etcd nodes, one task per node
  2. master nodes, one task per node
  3. every remaining node, in batches of at most max_parallel_workers

A node holding several roles is upgraded once, in the earliest phase that
matches it, and all of its components are upgraded in that pass. Phases and
batches run one after the other; the first failure stops the upgrade and the
nodes already upgraded stay upgraded.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List

from planctl.errors import PlanctlError, ValidationError
from planctl.modules.plan.models import ListableNode

logger = logging.getLogger("planctl.upgrade")


@dataclass(frozen=True)
class UpgradePhase:
    name: str
    matches: Callable[[ListableNode], bool]
    batched: bool


# Evaluated in order; the first matching phase wins
UPGRADE_PHASES = (
    UpgradePhase('etcd', lambda n: n.has_role('etcd'), batched=False),
    UpgradePhase('master', lambda n: n.has_role('master'), batched=False),
    UpgradePhase('other', lambda n: True, batched=True),
)


def _wrap(err: PlanctlError, message: str) -> PlanctlError:
    wrapped = type(err)(f"{message}: {err}")
    if hasattr(err, 'status'):
        wrapped.status = err.status
        wrapped.rc = err.rc
    return wrapped


def plan_upgrade_batches(nodes: List[ListableNode], max_parallel_workers: int) -> List[List[ListableNode]]:
    """Split nodes into the ordered list of batches the upgrade runs.

    Args:
        nodes: Nodes to upgrade, in the order they were given
        max_parallel_workers: Largest batch in the batched phase

    Returns:
        List of batches; each batch is upgraded by one task

    Raises:
        ValidationError: If max_parallel_workers is less than 1
    """
    if max_parallel_workers < 1:
        raise ValidationError(f"max parallel workers must be at least 1, got {max_parallel_workers}")

    upgraded = set()
    batches: List[List[ListableNode]] = []
    for phase in UPGRADE_PHASES:
        pending: List[ListableNode] = []
        for node in nodes:
            if node.node.ip in upgraded or not phase.matches(node):
                continue
            upgraded.add(node.node.ip)
            if not phase.batched:
                batches.append([node])
                continue
            pending.append(node)
            if len(pending) == max_parallel_workers:
                batches.append(pending)
                pending = []
        if pending:
            batches.append(pending)
    return batches


class PhasedUpgrade:
    """Runs the upgrade batches one at a time."""

    def __init__(self, upgrade_batch: Callable[[List[ListableNode]], None]):
        """
        Args:
            upgrade_batch: Runs one upgrade task limited to the given nodes
        """
        self.upgrade_batch = upgrade_batch

    def run(self, nodes: List[ListableNode], max_parallel_workers: int) -> None:
        """Upgrade the nodes.

        Raises:
            ValidationError: If max_parallel_workers is less than 1
            PlanctlError: The failure of the first batch that did not upgrade,
                naming its node(s)
        """
        batches = plan_upgrade_batches(nodes, max_parallel_workers)
        logger.info(f"Upgrading {len(nodes)} node(s) in {len(batches)} task(s)")
        for batch in batches:
            hosts = [n.node.host for n in batch]
            try:
                self.upgrade_batch(batch)
            except PlanctlError as e:
                if len(hosts) == 1:
                    raise _wrap(e, f"error upgrading node {hosts[0]!r}") from e
                raise _wrap(e, f"error upgrading nodes {hosts}") from e
            logger.info(f"Upgraded {', '.join(hosts)}")
