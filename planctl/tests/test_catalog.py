import os

import pytest

from planctl.errors import ConfigurationError
from planctl.modules.ansible.catalog import build_cluster_catalog, get_dns_service_ip
from planctl.modules.plan.models import CNI, StorageVolume


def build(plan):
    return build_cluster_catalog(plan, "generated/keys", "generated")


@pytest.mark.parametrize("cidr,expected", [
    ("172.20.0.0/16", "172.20.0.2"),
    ("10.96.0.0/12", "10.96.0.2"),
    ("10.3.0.0/24", "10.3.0.2"),
])
def test_dns_service_ip(plan, cidr, expected):
    plan.cluster.networking.service_cidr_block = cidr
    assert get_dns_service_ip(plan) == expected


@pytest.mark.parametrize("cidr", ["not-a-cidr", "10.0.0.0/31", ""])
def test_dns_service_ip_rejects_bad_cidr(plan, cidr):
    plan.cluster.networking.service_cidr_block = cidr
    with pytest.raises(ConfigurationError):
        build(plan)


def test_basic_fields(plan):
    cc = build(plan)
    assert cc.cluster_name == "test-cluster"
    assert cc.admin_password == "s3cret"
    assert cc.dns_service_ip == "172.20.0.2"
    assert cc.services_cidr == "172.20.0.0/16"
    assert cc.pod_cidr == "172.16.0.0/16"
    assert cc.tls_directory == os.path.abspath("generated/keys")
    assert cc.local_kubeconfig_directory == os.path.abspath("generated/kubeconfig")
    assert cc.versions.kubernetes == "v1.10.5"
    assert cc.versions.kubernetes_yum == "1.10.5-0"
    assert cc.versions.kubernetes_deb == "1.10.5-00"


def test_no_proxy_lists_node_addresses_then_user_value(plan):
    plan.cluster.networking.no_proxy = "example.com"
    cc = build(plan)
    assert cc.no_proxy == ",".join([
        "etcd1", "10.0.0.1", "192.168.0.1",
        "master1", "10.0.0.2", "192.168.0.2",
        "worker1", "10.0.0.3",
        "worker2", "10.0.0.4", "192.168.0.4",
        "storage1", "10.0.0.5",
        "example.com",
    ])


def test_no_proxy_without_user_value(plan):
    cc = build(plan)
    assert not cc.no_proxy.endswith(",")


def test_labels_and_taints_are_concatenated_per_host(plan):
    cc = build(plan)
    assert cc.node_labels["worker1"] == ["zone=a", "ingress=yes"]
    assert cc.node_labels["master1"] == ["tier=control"]
    assert cc.node_labels["etcd1"] == []
    assert cc.node_taints["worker1"] == ["dedicated=gpu:NoSchedule"]
    assert set(cc.node_labels) == {"etcd1", "master1", "worker1", "worker2", "storage1"}


def test_kubelet_options_use_first_entry_of_each_host(plan):
    cc = build(plan)
    assert cc.kubelet_node_options["worker1"] == {"max-pods": "200"}
    assert len(cc.kubelet_node_options) == 5


def test_load_balanced_fqdn_falls_back_to_first_master(plan):
    assert build(plan).load_balanced_fqdn == "192.168.0.2"

    plan.master.nodes[0].internal_ip = ""
    assert build(plan).load_balanced_fqdn == "10.0.0.2"

    plan.master.load_balanced_fqdn = "lb.example.com"
    assert build(plan).load_balanced_fqdn == "lb.example.com"


def test_feature_switches_follow_node_groups(plan):
    cc = build(plan)
    assert cc.enable_configure_ingress is True
    assert cc.enable_gluster is True

    plan.ingress.nodes = []
    plan.storage.nodes = []
    cc = build(plan)
    assert cc.enable_configure_ingress is False
    assert cc.enable_gluster is False


def test_private_registry(plan):
    assert build(plan).configure_docker_with_private_registry is False

    plan.docker_registry.server = "registry.local:5000"
    plan.docker_registry.username = "bob"
    cc = build(plan)
    assert cc.configure_docker_with_private_registry is True
    assert cc.docker_registry_server == "registry.local:5000"
    assert cc.docker_registry_username == "bob"


def test_pod_validation_depends_on_cni(plan):
    assert build(plan).run_pod_validation is True

    plan.add_ons.cni = None
    cc = build(plan)
    assert cc.run_pod_validation is True
    assert cc.cni.enabled is False

    plan.add_ons.cni = CNI(disable=True)
    assert build(plan).run_pod_validation is False


def test_enabled_cni_options(plan):
    cc = build(plan)
    assert cc.cni.enabled is True
    assert cc.cni.provider == "calico"
    assert cc.cni.options["calico"]["mode"] == "overlay"
    assert cc.cni.options["portmap"] == {"enabled": True}
    assert cc.insecure_networking_etcd is False


def test_contiv_needs_insecure_etcd(plan):
    plan.add_ons.cni.provider = "contiv"
    assert build(plan).insecure_networking_etcd is True


def test_disabled_add_ons_carry_no_options(plan):
    plan.add_ons.dns.disable = True
    plan.add_ons.heapster_monitoring.disable = True
    plan.add_ons.dashboard.disable = True
    plan.add_ons.package_manager.disable = True
    cc = build(plan)
    for add_on in (cc.dns, cc.heapster, cc.dashboard, cc.helm):
        assert add_on.enabled is False
        assert add_on.options == {}


def test_enabled_add_ons(plan):
    cc = build(plan)
    assert cc.dns.options == {"replicas": 2}
    assert cc.heapster.options["heapster"]["replicas"] == 2
    assert cc.dashboard.enabled is True
    assert cc.helm.options == {"namespace": "kube-system"}
    assert cc.metrics_server.enabled is True


def test_enable_restart_sets_every_flag(plan):
    cc = build(plan)
    assert not any(vars(cc.restart_services).values())
    cc.enable_restart()
    assert all(vars(cc.restart_services).values())


def test_set_volume(plan):
    cc = build(plan)
    volume = StorageVolume(
        name="data",
        size_gb=10,
        replicate_count=1,
        distribution_count=1,
        storage_class="fast",
        allow_addresses=["10.10.0.0/24"],
    )
    cc.set_volume(volume, plan)
    assert cc.volume_name == "data"
    assert cc.volume_quota_gb == 10
    assert cc.volume_quota_bytes == 10737418240
    assert cc.volume_mount == "/"
    assert cc.volume_allowed_ips == ",".join([
        "10.10.0.0/24",
        "172.16.0.0/16",
        "192.168.0.2",
        "10.0.0.3", "192.168.0.4",
        "10.0.0.3",
        "10.0.0.5",
    ])


def test_extra_vars_are_plain_data(plan):
    extra_vars = build(plan).to_extra_vars()
    assert extra_vars["cluster_name"] == "test-cluster"
    assert extra_vars["restart_services"]["force_kubelet_restart"] is False
    assert extra_vars["docker"]["logs"]["driver"] == "json-file"


def test_catalog_is_rebuilt_identically(plan):
    assert build(plan) == build(plan)
    assert build(plan) is not build(plan)
