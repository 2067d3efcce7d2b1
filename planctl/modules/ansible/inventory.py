"""Ansible inventory built from a plan."""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from planctl.modules.plan.models import Node, Plan, SSHConfig, ROLES


@dataclass
class AnsibleNode:
    """A node as addressed by the automation engine."""
    host: str
    public_ip: str
    internal_ip: str = ''
    ssh_private_key: str = ''
    ssh_user: str = ''
    ssh_port: int = 22

    def to_host_vars(self) -> Dict[str, Any]:
        host_vars = {
            'ansible_host': self.public_ip,
            'ansible_port': self.ssh_port,
            'ansible_user': self.ssh_user,
            'ansible_ssh_private_key_file': self.ssh_private_key,
        }
        if self.internal_ip:
            host_vars['internal_ipv4'] = self.internal_ip
        else:
            host_vars['internal_ipv4'] = self.public_ip
        return host_vars


@dataclass
class Role:
    name: str
    nodes: List[AnsibleNode] = field(default_factory=list)


@dataclass
class Inventory:
    """Nodes partitioned by role."""
    roles: List[Role] = field(default_factory=list)

    def role(self, name: str) -> Role:
        for r in self.roles:
            if r.name == name:
                return r
        raise KeyError(f"Role {name} is not in the inventory")

    def to_dict(self) -> Dict[str, Any]:
        """Render the inventory in ansible's YAML inventory structure."""
        children = {}
        for r in self.roles:
            children[r.name] = {
                'hosts': {n.host: n.to_host_vars() for n in r.nodes}
            }
        return {'all': {'children': children}}


def install_node_to_ansible_node(node: Node, ssh: SSHConfig) -> AnsibleNode:
    """Convert a plan node to an inventory node."""
    return AnsibleNode(
        host=node.host,
        public_ip=node.ip,
        internal_ip=node.internal_ip,
        ssh_private_key=ssh.key,
        ssh_user=ssh.user,
        ssh_port=ssh.port,
    )


def build_inventory_from_plan(plan: Plan) -> Inventory:
    """Build the inventory for a plan.

    The inventory always has the etcd, master, worker, ingress and storage
    roles, in that order. A role without nodes is present and empty.
    """
    roles = []
    for name in ROLES:
        nodes = [install_node_to_ansible_node(n, plan.cluster.ssh) for n in plan.group(name).nodes]
        roles.append(Role(name=name, nodes=nodes))
    return Inventory(roles=roles)
