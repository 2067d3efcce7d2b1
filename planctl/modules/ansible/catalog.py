"""Cluster catalog: the extra vars handed to the playbooks.

The catalog is derived from a plan once per task. Apart from reading the
absolute path of the generated assets, building it has no side effects.
"""
import dataclasses
import ipaddress
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

from planctl.errors import ConfigurationError
from planctl.modules.plan.models import Plan, StorageVolume, Taint

logger = logging.getLogger("planctl.catalog")

CNI_PROVIDER_CONTIV = 'contiv'
INSPECTOR_PATH = os.path.join("inspector", "linux", "amd64", "kismatic-inspector")
KUBERANG_PATH = os.path.join("kuberang", "linux", "amd64", "kuberang")
TARGET_VERSION = "1.12.0"


@dataclass
class Versions:
    kubernetes: str = ''
    kubernetes_yum: str = ''
    kubernetes_deb: str = ''


@dataclass
class DockerLogsVars:
    driver: str = ''
    opts: Dict[str, str] = field(default_factory=dict)


@dataclass
class DockerStorageVars:
    driver: str = ''
    opts: Dict[str, str] = field(default_factory=dict)
    opts_list: List[str] = field(default_factory=list)
    direct_lvm_block_device: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DockerVars:
    enabled: bool = True
    logs: DockerLogsVars = field(default_factory=DockerLogsVars)
    storage: DockerStorageVars = field(default_factory=DockerStorageVars)


@dataclass
class AddOnVars:
    """An add-on switch and its options, passed through as-is."""
    enabled: bool = False
    provider: str = ''
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RestartVars:
    force_etcd_restart: bool = False
    force_apiserver_restart: bool = False
    force_controller_manager_restart: bool = False
    force_scheduler_restart: bool = False
    force_proxy_restart: bool = False
    force_kubelet_restart: bool = False
    force_calico_node_restart: bool = False
    force_docker_restart: bool = False


@dataclass
class ClusterCatalog:
    cluster_name: str = ''
    admin_password: str = ''
    tls_directory: str = ''
    services_cidr: str = ''
    pod_cidr: str = ''
    dns_service_ip: str = ''
    enable_modify_hosts: bool = False
    enable_package_installation: bool = True
    disconnected_installation: bool = False
    kismatic_preflight_checker: str = INSPECTOR_PATH
    kuberang_path: str = KUBERANG_PATH
    target_version: str = TARGET_VERSION
    versions: Versions = field(default_factory=Versions)
    online_upgrade: bool = False

    http_proxy: str = ''
    https_proxy: str = ''
    no_proxy: str = ''

    load_balanced_fqdn: str = ''
    local_kubeconfig_directory: str = ''

    configure_docker_with_private_registry: bool = False
    docker_registry_server: str = ''
    docker_registry_ca_path: str = ''
    docker_registry_username: str = ''
    docker_registry_password: str = ''
    docker: DockerVars = field(default_factory=DockerVars)

    enable_configure_ingress: bool = False
    enable_gluster: bool = False
    run_pod_validation: bool = False
    insecure_networking_etcd: bool = False

    nfs_volumes: List[Dict[str, str]] = field(default_factory=list)
    additional_files: List[Dict[str, Any]] = field(default_factory=list)

    cloud_provider: str = ''
    cloud_config: str = ''

    api_server_options: Dict[str, str] = field(default_factory=dict)
    kube_controller_manager_options: Dict[str, str] = field(default_factory=dict)
    kube_scheduler_options: Dict[str, str] = field(default_factory=dict)
    kube_proxy_options: Dict[str, str] = field(default_factory=dict)
    kubelet_options: Dict[str, str] = field(default_factory=dict)
    kubelet_node_options: Dict[str, Dict[str, str]] = field(default_factory=dict)

    node_labels: Dict[str, List[str]] = field(default_factory=dict)
    node_taints: Dict[str, List[str]] = field(default_factory=dict)

    cni: AddOnVars = field(default_factory=AddOnVars)
    dns: AddOnVars = field(default_factory=AddOnVars)
    heapster: AddOnVars = field(default_factory=AddOnVars)
    metrics_server: AddOnVars = field(default_factory=AddOnVars)
    dashboard: AddOnVars = field(default_factory=AddOnVars)
    helm: AddOnVars = field(default_factory=AddOnVars)
    rescheduler: AddOnVars = field(default_factory=AddOnVars)

    restart_services: RestartVars = field(default_factory=RestartVars)

    # Volume operations
    volume_name: str = ''
    volume_replica_count: int = 0
    volume_distribution_count: int = 0
    volume_storage_class: str = ''
    volume_quota_gb: int = 0
    volume_quota_bytes: int = 0
    volume_mount: str = ''
    volume_allowed_ips: str = ''
    volume_reclaim_policy: str = ''
    volume_access_modes: List[str] = field(default_factory=list)

    # Diagnostics
    diagnostics_directory: str = ''
    diagnostics_date_time: str = ''

    def enable_restart(self) -> None:
        """Force every service to restart during the run."""
        for f in dataclasses.fields(self.restart_services):
            setattr(self.restart_services, f.name, True)

    def set_volume(self, volume: StorageVolume, plan: Plan) -> None:
        """Set the variables used by the volume-add playbook."""
        self.volume_name = volume.name
        self.volume_replica_count = volume.replicate_count
        self.volume_distribution_count = volume.distribution_count
        self.volume_storage_class = volume.storage_class
        self.volume_quota_gb = volume.size_gb
        self.volume_quota_bytes = volume.size_gb * (1 << (10 * 3))
        self.volume_mount = "/"
        self.volume_reclaim_policy = volume.reclaim_policy
        self.volume_access_modes = list(volume.access_modes)
        self.volume_allowed_ips = ",".join(volume_allowed_addresses(plan, volume))

    def set_volume_delete(self, name: str) -> None:
        self.volume_name = name
        self.volume_mount = "/"

    def to_extra_vars(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


def get_dns_service_ip(plan: Plan) -> str:
    """Return the DNS service IP: the second usable address of the service CIDR.

    Raises:
        ConfigurationError: If the CIDR is malformed or too small
    """
    cidr = plan.cluster.networking.service_cidr_block
    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError as e:
        raise ConfigurationError(f"error parsing service CIDR block {cidr!r}: {e}") from e
    if network.num_addresses < 4:
        raise ConfigurationError(f"service CIDR block {cidr!r} is too small to hold the DNS service IP")
    return str(network.network_address + 2)


def key_value_list(values: Dict[str, str]) -> List[str]:
    return [f"{k}={v}" for k, v in values.items()]


def key_value_effect_list(taints: List[Taint]) -> List[str]:
    return [str(t) for t in taints]


def volume_allowed_addresses(plan: Plan, volume: StorageVolume) -> List[str]:
    """Addresses allowed to mount a volume: the request's own, the pod network and every node."""
    allowed = list(volume.allow_addresses)
    allowed.append(plan.cluster.networking.pod_cidr_block)
    for role in ('master', 'worker', 'ingress', 'storage'):
        for n in plan.group(role).nodes:
            allowed.append(n.address)
    return allowed


def _package_versions(version: str) -> Versions:
    bare = version[1:] if version.startswith('v') else version
    return Versions(
        kubernetes=version,
        kubernetes_yum=f"{bare}-0",
        kubernetes_deb=f"{bare}-00",
    )


def _add_on_vars(plan: Plan, catalog: ClusterCatalog) -> None:
    add_ons = plan.add_ons

    cni = add_ons.cni
    if cni is not None and not cni.disable:
        catalog.cni = AddOnVars(
            enabled=True,
            provider=cni.provider,
            options={
                'portmap': {'enabled': not cni.options.portmap_disable},
                'calico': cni.options.calico.model_dump(),
                'weave': {'password': cni.options.weave_password},
            },
        )
        if cni.provider == CNI_PROVIDER_CONTIV:
            catalog.insecure_networking_etcd = True

    if not add_ons.dns.disable:
        catalog.dns = AddOnVars(
            enabled=True,
            provider=add_ons.dns.provider,
            options={'replicas': add_ons.dns.replicas},
        )

    heapster = add_ons.heapster_monitoring
    if heapster is not None and not heapster.disable:
        catalog.heapster = AddOnVars(
            enabled=True,
            options={
                'heapster': {
                    'replicas': heapster.replicas,
                    'service_type': heapster.service_type,
                    'sink': heapster.sink,
                },
                'influxdb': {'pvc_name': heapster.influxdb_pvc_name},
            },
        )

    catalog.metrics_server = AddOnVars(enabled=not add_ons.metrics_server.disable)

    # The dashboard is on unless explicitly disabled
    dashboard = add_ons.dashboard
    if dashboard is None or not dashboard.disable:
        options = {'service_type': dashboard.service_type} if dashboard is not None else {}
        catalog.dashboard = AddOnVars(enabled=True, options=options)

    # Helm is the only package manager
    if not add_ons.package_manager.disable:
        catalog.helm = AddOnVars(
            enabled=True,
            provider='helm',
            options={'namespace': add_ons.package_manager.helm_namespace},
        )

    catalog.rescheduler = AddOnVars(enabled=not add_ons.rescheduler.disable)


def build_cluster_catalog(plan: Plan, certs_dir: str, generated_assets_dir: str) -> ClusterCatalog:
    """Build the cluster catalog for a plan.

    Args:
        plan: The cluster plan
        certs_dir: Directory holding the cluster certificates
        generated_assets_dir: Directory where generated assets are stored

    Returns:
        ClusterCatalog

    Raises:
        ConfigurationError: If the service CIDR cannot hold a DNS service IP
    """
    dns_ip = get_dns_service_ip(plan)
    cluster = plan.cluster
    networking = cluster.networking

    cc = ClusterCatalog(
        cluster_name=cluster.name,
        admin_password=cluster.admin_password,
        tls_directory=os.path.abspath(certs_dir),
        services_cidr=networking.service_cidr_block,
        pod_cidr=networking.pod_cidr_block,
        dns_service_ip=dns_ip,
        enable_modify_hosts=networking.update_hosts_files,
        enable_package_installation=not cluster.disable_package_installation,
        disconnected_installation=cluster.disconnected_installation,
        http_proxy=networking.http_proxy,
        https_proxy=networking.https_proxy,
        versions=_package_versions(cluster.version),
        api_server_options=dict(cluster.api_server_options),
        kube_controller_manager_options=dict(cluster.kube_controller_manager_options),
        kube_scheduler_options=dict(cluster.kube_scheduler_options),
        kube_proxy_options=dict(cluster.kube_proxy_options),
        kubelet_options=dict(cluster.kubelet_options),
        cloud_provider=cluster.cloud_provider.provider,
        cloud_config=cluster.cloud_provider.config,
        local_kubeconfig_directory=os.path.abspath(os.path.join(generated_assets_dir, "kubeconfig")),
    )

    # Cluster addresses first, user overrides appended
    cc.no_proxy = ",".join(plan.all_addresses())
    if networking.no_proxy:
        cc.no_proxy = cc.no_proxy + "," + networking.no_proxy

    # Default to the first master when there is no load balancer
    if plan.master.load_balanced_fqdn:
        cc.load_balanced_fqdn = plan.master.load_balanced_fqdn
    elif plan.master.nodes:
        cc.load_balanced_fqdn = plan.master.nodes[0].address

    if plan.private_registry_provided():
        cc.configure_docker_with_private_registry = True
        cc.docker_registry_server = plan.docker_registry.server
        cc.docker_registry_ca_path = plan.docker_registry.ca_path
        cc.docker_registry_username = plan.docker_registry.username
        cc.docker_registry_password = plan.docker_registry.password

    docker = plan.docker
    cc.docker = DockerVars(
        enabled=not docker.disable,
        logs=DockerLogsVars(driver=docker.logs.driver, opts=dict(docker.logs.opts)),
        storage=DockerStorageVars(
            driver=docker.storage.driver,
            opts=dict(docker.storage.opts),
            opts_list=key_value_list(docker.storage.opts),
            direct_lvm_block_device=docker.storage.direct_lvm_block_device.model_dump(),
        ),
    )

    cc.enable_configure_ingress = len(plan.ingress.nodes) > 0
    cc.enable_gluster = len(plan.storage.nodes) > 0
    cc.run_pod_validation = plan.network_configured()

    if plan.nfs is not None:
        cc.nfs_volumes = [{'host': v.host, 'path': v.path} for v in plan.nfs.volumes]

    cc.additional_files = [
        {'source': f.source, 'destination': f.destination, 'hosts': list(f.hosts)}
        for f in plan.additional_files
    ]

    _add_on_vars(plan, cc)

    # Nodes share roles, so labels and taints are keyed by host
    # instead of being set on the inventory
    for n in plan.all_nodes():
        cc.node_labels.setdefault(n.host, []).extend(key_value_list(n.labels))
        cc.node_taints.setdefault(n.host, []).extend(key_value_effect_list(n.taints))

    for n in plan.unique_nodes():
        cc.kubelet_node_options[n.host] = dict(n.kubelet_options)

    logger.debug(f"Built cluster catalog for {cluster.name}")
    return cc
