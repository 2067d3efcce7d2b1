"""Cluster operations.

Every operation builds the inventory and cluster catalog from the plan,
adjusts the catalog for the operation, and runs one or more tasks.
"""
import copy
import logging
import os
import sys
import time
from typing import List, Optional, TextIO

from planctl.config import ExecutorOptions
from planctl.errors import ValidationError
from planctl.modules.ansible.catalog import ClusterCatalog, build_cluster_catalog
from planctl.modules.ansible.inventory import build_inventory_from_plan
from planctl.modules.certificates import PKI, generate_certificates
from planctl.modules.executor import RunnerFactory, Task, TaskExecutor
from planctl.modules.pki import LocalPKI
from planctl.modules.plan.models import ListableNode, Node, Plan, StorageVolume
from planctl.modules.upgrade import PhasedUpgrade
from planctl.utils import print_header, print_table

logger = logging.getLogger("planctl.operations")

DIAGNOSTICS_TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"


class ClusterOperations:
    """The operations that can be run against a cluster."""

    def __init__(
        self,
        options: ExecutorOptions,
        stdout: Optional[TextIO] = None,
        runner_factory: Optional[RunnerFactory] = None,
        pki: Optional[PKI] = None,
    ):
        self.options = options
        self.stdout = stdout if stdout is not None else sys.stdout
        self.executor = TaskExecutor(options, self.stdout, runner_factory)
        self.certs_dir = options.certs_directory
        self.pki = pki if pki is not None else LocalPKI(self.certs_dir)

    def _catalog(self, plan: Plan) -> ClusterCatalog:
        return build_cluster_catalog(plan, self.certs_dir, self.options.generated_assets_directory)

    def _task(
        self,
        name: str,
        playbook: str,
        plan: Plan,
        catalog: ClusterCatalog,
        preflight: bool = False,
        limit: Optional[List[str]] = None,
    ) -> Task:
        return Task(
            name=name,
            playbook=playbook,
            inventory=build_inventory_from_plan(plan),
            cluster_catalog=catalog,
            explainer=self.executor.preflight_explainer() if preflight else self.executor.default_explainer(),
            plan=plan,
            limit=list(limit or []),
        )

    def _header(self, title: str) -> None:
        print_header(self.stdout, title)

    def generate_certificates(self, plan: Plan, use_existing_ca: bool) -> None:
        """Generate keys and certificates for the cluster."""
        generate_certificates(
            self.pki,
            self.certs_dir,
            plan,
            use_existing_ca,
            out=self.stdout,
            generated_assets_dir=self.options.generated_assets_directory,
        )

    def install(self, plan: Plan, restart_services: bool = False, nodes: Optional[List[str]] = None) -> None:
        """Install the cluster according to the plan."""
        cc = self._catalog(plan)
        if restart_services:
            cc.enable_restart()
        t = self._task("apply", "kubernetes.yaml", plan, cc, limit=nodes)
        self._header("Installing Cluster")
        self.executor.execute(t)

    def reset(self, plan: Plan, nodes: Optional[List[str]] = None) -> None:
        cc = self._catalog(plan)
        t = self._task("reset", "reset.yaml", plan, cc, limit=nodes)
        self._header("Resetting Nodes in the Cluster")
        self.executor.execute(t)

    def run_smoke_test(self, plan: Plan) -> None:
        cc = self._catalog(plan)
        t = self._task("smoketest", "smoketest.yaml", plan, cc)
        self._header("Running Smoke Test")
        self.executor.execute(t)

    def run_preflight_check(self, plan: Plan, nodes: Optional[List[str]] = None) -> None:
        """Run the pre-flight checks against the nodes in the plan."""
        cc = self._catalog(plan)
        t = self._task("preflight", "preflight.yaml", plan, cc, preflight=True, limit=nodes)
        self.executor.execute(t)

    def run_new_node_preflight_check(self, plan: Plan, node: Node) -> None:
        """Run the pre-flight checks against a node that is not in the cluster yet."""
        cc = self._catalog(plan)
        t = self._task("copy-inspector", "copy-inspector.yaml", plan, cc, preflight=True)
        self.executor.execute(t)

        with_node = copy.deepcopy(plan)
        with_node.worker.expected_count += 1
        with_node.worker.nodes.append(node)
        t = self._task(
            "add-node-preflight", "preflight.yaml", with_node, cc,
            preflight=True, limit=[node.host],
        )
        self.executor.execute(t)

    def run_upgrade_preflight_check(self, plan: Plan, node: ListableNode) -> None:
        cc = self._catalog(plan)
        t = self._task("copy-inspector", "copy-inspector.yaml", plan, cc, preflight=True)
        self.executor.execute(t)
        t = self._task(
            "upgrade-preflight", "upgrade-preflight.yaml", plan, cc,
            preflight=True, limit=[node.node.host],
        )
        self.executor.execute(t)

    def run_play(
        self,
        play_name: str,
        plan: Plan,
        restart_services: bool = False,
        nodes: Optional[List[str]] = None,
    ) -> None:
        """Run a single playbook against the cluster."""
        cc = self._catalog(plan)
        if restart_services:
            cc.enable_restart()
        t = self._task("step", play_name, plan, cc, limit=nodes)
        self.executor.execute(t)

    def add_node(self, plan: Plan, node: Node, roles: List[str], restart_services: bool = False) -> Plan:
        """Add a node to the cluster.

        Returns:
            A copy of the plan that includes the new node
        """
        if not roles:
            raise ValidationError(f"no roles given for node {node.host!r}")
        updated = copy.deepcopy(plan)
        for role in roles:
            try:
                group = updated.group(role)
            except KeyError as e:
                raise ValidationError(f"cannot add node {node.host!r}: unknown role {role!r}") from e
            if any(n.host == node.host for n in group.nodes):
                raise ValidationError(f"node {node.host!r} already has the {role} role")
            group.expected_count += 1
            group.nodes.append(node)

        self.generate_certificates(updated, use_existing_ca=True)

        cc = self._catalog(updated)
        if restart_services:
            cc.enable_restart()
        t = self._task("add-node", "kubernetes.yaml", updated, cc, limit=[node.host])
        self._header(f"Adding Node {node.host} {roles}")
        self.executor.execute(t)
        return updated

    def add_volume(self, plan: Plan, volume: StorageVolume) -> None:
        """Create a persistent storage volume on the storage nodes.

        Raises:
            ValidationError: If the cluster does not have enough storage nodes
        """
        nodes_required = volume.replicate_count * volume.distribution_count
        if nodes_required > len(plan.storage.nodes):
            raise ValidationError(
                f"the requested volume configuration requires {nodes_required} storage nodes, "
                f"but the cluster only has {len(plan.storage.nodes)}."
            )
        cc = self._catalog(plan)
        cc.set_volume(volume, plan)
        t = self._task("add-volume", "volume-add.yaml", plan, cc)
        self._header("Add Persistent Storage Volume")
        self.executor.execute(t)

    def delete_volume(self, plan: Plan, name: str) -> None:
        cc = self._catalog(plan)
        cc.set_volume_delete(name)
        t = self._task("delete-volume", "volume-delete.yaml", plan, cc)
        self._header("Delete Persistent Storage Volume")
        self.executor.execute(t)

    def upgrade_nodes(
        self,
        plan: Plan,
        nodes_to_upgrade: List[ListableNode],
        online_upgrade: bool,
        max_parallel_workers: int,
        restart_services: bool = False,
    ) -> None:
        """Upgrade nodes: etcd first, then masters, then everything else in batches."""

        def upgrade_batch(batch: List[ListableNode]) -> None:
            self._upgrade_batch(plan, online_upgrade, restart_services, batch)

        PhasedUpgrade(upgrade_batch).run(nodes_to_upgrade, max_parallel_workers)

    def _upgrade_batch(
        self,
        plan: Plan,
        online_upgrade: bool,
        restart_services: bool,
        nodes: List[ListableNode],
    ) -> None:
        cc = self._catalog(plan)
        cc.online_upgrade = online_upgrade
        if restart_services:
            cc.enable_restart()
        limit = [n.node.host for n in nodes]
        t = self._task("upgrade-nodes", "upgrade-nodes.yaml", plan, cc, limit=limit)
        if len(nodes) == 1:
            self._header(f"Upgrade Node: {limit[0]} {nodes[0].roles}")
        else:
            self._header("Upgrade Nodes:")
            print_table(self.stdout, {n.node.host: n.roles for n in nodes})
        self.executor.execute(t)

    def validate_control_plane(self, plan: Plan) -> None:
        cc = self._catalog(plan)
        t = self._task("validate-control-plane", "validate-control-plane.yaml", plan, cc)
        self.executor.execute(t)

    def upgrade_cluster_services(self, plan: Plan) -> None:
        cc = self._catalog(plan)
        t = self._task("upgrade-cluster-services", "upgrade-cluster-services.yaml", plan, cc)
        self.executor.execute(t)

    def diagnose_nodes(self, plan: Plan) -> None:
        """Collect diagnostics from every node into a timestamped directory."""
        cc = self._catalog(plan)
        now = time.strftime(DIAGNOSTICS_TIMESTAMP_FORMAT, time.localtime())
        cc.diagnostics_directory = os.path.join(self.options.diagnostics_directory, now)
        cc.diagnostics_date_time = now
        t = self._task("diagnose", "diagnose-nodes.yaml", plan, cc)
        self.executor.execute(t)


def new_executor(stdout: Optional[TextIO] = None, **options) -> ClusterOperations:
    """Operations for install, upgrade and day-2 work.

    Raises:
        ConfigurationError: If the options are invalid
    """
    return ClusterOperations(ExecutorOptions.create(**options), stdout)


def new_preflight_executor(stdout: Optional[TextIO] = None, **options) -> ClusterOperations:
    """Operations for pre-flight checks; no generated assets directory needed."""
    return ClusterOperations(ExecutorOptions.create(require_generated_assets=False, **options), stdout)


def new_diagnostics_executor(stdout: Optional[TextIO] = None, **options) -> ClusterOperations:
    return ClusterOperations(ExecutorOptions.create(require_generated_assets=False, **options), stdout)
