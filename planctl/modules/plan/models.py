"""
Data models for the cluster plan.
"""
import typing
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PlanModel(BaseModel):
    """Base for plan sections read from YAML."""

    model_config = ConfigDict(extra='ignore', coerce_numbers_to_str=True)

    @model_validator(mode='before')
    @classmethod
    def drop_empty_values(cls, data):
        """Empty YAML values fall back to the default unless None is allowed."""
        if not isinstance(data, dict):
            return data
        return {
            k: v for k, v in data.items()
            if v is not None or (k in cls.model_fields and _allows_none(cls.model_fields[k].annotation))
        }


def _allows_none(annotation) -> bool:
    return type(None) in typing.get_args(annotation)


class Taint(PlanModel):
    """A node taint."""
    key: str
    value: str = ''
    effect: str = 'NoSchedule'

    def __str__(self) -> str:
        return f"{self.key}={self.value}:{self.effect}"


class Node(PlanModel):
    """Represents a machine in the cluster."""
    host: str
    ip: str
    internal_ip: str = ''
    labels: Dict[str, str] = Field(default_factory=dict)
    taints: List[Taint] = Field(default_factory=list)
    kubelet_options: Dict[str, str] = Field(default_factory=dict)

    @property
    def address(self) -> str:
        """The address other nodes should use to reach this one."""
        return self.internal_ip or self.ip


class NodeGroup(PlanModel):
    """Nodes that share a role."""
    expected_count: int = 0
    nodes: List[Node] = Field(default_factory=list)


class MasterNodeGroup(NodeGroup):
    load_balanced_fqdn: str = ''
    load_balanced_short_name: str = ''


class OptionalNodeGroup(NodeGroup):
    pass


class ListableNode(PlanModel):
    """A node together with the roles it currently holds in the cluster."""
    node: Node
    roles: List[str] = Field(default_factory=list)
    version: str = ''

    def has_role(self, role: str) -> bool:
        return role in self.roles


class StorageVolume(PlanModel):
    """A request for a persistent storage volume."""
    name: str
    size_gb: int = 10
    replicate_count: int = 2
    distribution_count: int = 1
    storage_class: str = ''
    reclaim_policy: str = 'Retain'
    access_modes: List[str] = Field(default_factory=lambda: ['ReadWriteMany'])
    allow_addresses: List[str] = Field(default_factory=list)


class NetworkConfig(PlanModel):
    pod_cidr_block: str = '172.16.0.0/16'
    service_cidr_block: str = '172.20.0.0/16'
    update_hosts_files: bool = False
    http_proxy: str = ''
    https_proxy: str = ''
    no_proxy: str = ''


class CertsConfig(PlanModel):
    expiry: str = '17520h'
    ca_expiry: str = '17520h'


class SSHConfig(PlanModel):
    user: str = 'kismaticuser'
    key: str = '~/.ssh/id_rsa'
    port: int = 22


class CloudProvider(PlanModel):
    provider: str = ''
    config: str = ''


class Cluster(PlanModel):
    """Cluster-wide settings."""
    name: str = 'kubernetes'
    version: str = 'v1.10.5'
    admin_password: str = ''
    disable_package_installation: bool = False
    disconnected_installation: bool = False
    networking: NetworkConfig = Field(default_factory=NetworkConfig)
    certificates: CertsConfig = Field(default_factory=CertsConfig)
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    cloud_provider: CloudProvider = Field(default_factory=CloudProvider)
    api_server_options: Dict[str, str] = Field(default_factory=dict)
    kube_controller_manager_options: Dict[str, str] = Field(default_factory=dict)
    kube_scheduler_options: Dict[str, str] = Field(default_factory=dict)
    kube_proxy_options: Dict[str, str] = Field(default_factory=dict)
    kubelet_options: Dict[str, str] = Field(default_factory=dict)


class DirectLVMBlockDevice(PlanModel):
    path: str = ''
    thinpool_percent: str = ''
    thinpool_meta_percent: str = ''
    thinpool_autoextend_threshold: int = 0
    thinpool_autoextend_percent: int = 0


class DockerLogs(PlanModel):
    driver: str = 'json-file'
    opts: Dict[str, str] = Field(default_factory=dict)


class DockerStorage(PlanModel):
    driver: str = ''
    opts: Dict[str, str] = Field(default_factory=dict)
    direct_lvm_block_device: DirectLVMBlockDevice = Field(default_factory=DirectLVMBlockDevice)


class Docker(PlanModel):
    disable: bool = False
    logs: DockerLogs = Field(default_factory=DockerLogs)
    storage: DockerStorage = Field(default_factory=DockerStorage)


class DockerRegistry(PlanModel):
    server: str = ''
    ca_path: str = ''
    username: str = ''
    password: str = ''


class CalicoOptions(PlanModel):
    mode: str = 'overlay'
    log_level: str = 'info'
    workload_mtu: int = 1500
    felix_input_mtu: int = 1440
    ip_autodetection_method: str = 'first-found'


class CNIOptions(PlanModel):
    portmap_disable: bool = False
    calico: CalicoOptions = Field(default_factory=CalicoOptions)
    weave_password: str = ''


class CNI(PlanModel):
    disable: bool = False
    provider: str = 'calico'
    options: CNIOptions = Field(default_factory=CNIOptions)


class DNS(PlanModel):
    disable: bool = False
    provider: str = 'kubedns'
    replicas: int = 2


class HeapsterMonitoring(PlanModel):
    disable: bool = False
    replicas: int = 2
    service_type: str = 'ClusterIP'
    sink: str = ''
    influxdb_pvc_name: str = ''


class Dashboard(PlanModel):
    disable: bool = False
    service_type: str = 'ClusterIP'


class PackageManager(PlanModel):
    disable: bool = False
    provider: str = 'helm'
    helm_namespace: str = 'kube-system'


class Toggle(PlanModel):
    """An add-on that has no options besides being switched off."""
    disable: bool = False


class AddOns(PlanModel):
    cni: Optional[CNI] = Field(default_factory=CNI)
    dns: DNS = Field(default_factory=DNS)
    heapster_monitoring: Optional[HeapsterMonitoring] = Field(default_factory=HeapsterMonitoring)
    metrics_server: Toggle = Field(default_factory=Toggle)
    dashboard: Optional[Dashboard] = Field(default_factory=Dashboard)
    package_manager: PackageManager = Field(default_factory=PackageManager)
    rescheduler: Toggle = Field(default_factory=Toggle)


class NFSVolume(PlanModel):
    host: str
    path: str


class NFS(PlanModel):
    volumes: List[NFSVolume] = Field(default_factory=list)


class AdditionalFile(PlanModel):
    source: str
    destination: str
    hosts: List[str] = Field(default_factory=list)


ROLES = ('etcd', 'master', 'worker', 'ingress', 'storage')


class Plan(PlanModel):
    """The declarative description of a cluster."""
    cluster: Cluster = Field(default_factory=Cluster)
    docker: Docker = Field(default_factory=Docker)
    docker_registry: DockerRegistry = Field(default_factory=DockerRegistry)
    add_ons: AddOns = Field(default_factory=AddOns)
    nfs: Optional[NFS] = None
    additional_files: List[AdditionalFile] = Field(default_factory=list)
    etcd: NodeGroup = Field(default_factory=NodeGroup)
    master: MasterNodeGroup = Field(default_factory=MasterNodeGroup)
    worker: NodeGroup = Field(default_factory=NodeGroup)
    ingress: OptionalNodeGroup = Field(default_factory=OptionalNodeGroup)
    storage: OptionalNodeGroup = Field(default_factory=OptionalNodeGroup)

    def group(self, role: str) -> NodeGroup:
        """Return the node group for a role name."""
        if role not in ROLES:
            raise KeyError(f"Unknown role: {role}")
        return getattr(self, role)

    def all_nodes(self) -> List[Node]:
        """Every node entry of every group, in role order.

        A node that holds several roles is returned once per role.
        """
        nodes: List[Node] = []
        for role in ROLES:
            nodes.extend(self.group(role).nodes)
        return nodes

    def unique_nodes(self) -> List[Node]:
        """Every node once, in the order it is first seen."""
        seen = set()
        nodes = []
        for n in self.all_nodes():
            if n.host in seen:
                continue
            seen.add(n.host)
            nodes.append(n)
        return nodes

    def all_addresses(self) -> List[str]:
        """Host names and IPs of every node in the cluster."""
        addresses = []
        for n in self.unique_nodes():
            addresses.append(n.host)
            addresses.append(n.ip)
            if n.internal_ip:
                addresses.append(n.internal_ip)
        return addresses

    def private_registry_provided(self) -> bool:
        return bool(self.docker_registry.server)

    def network_configured(self) -> bool:
        """Whether pod networking is set up by the installer."""
        return self.add_ons.cni is None or not self.add_ons.cni.disable

    def roles_of(self, host: str) -> List[str]:
        """Roles the plan assigns to a host."""
        return [role for role in ROLES if any(n.host == host for n in self.group(role).nodes)]
