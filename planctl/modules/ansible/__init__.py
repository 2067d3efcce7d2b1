"""
Automation engine boundary: inventory, cluster catalog, events and runner.
"""
from .catalog import ClusterCatalog, build_cluster_catalog, get_dns_service_ip
from .events import Event, EventStream
from .inventory import Inventory, AnsibleNode, Role, build_inventory_from_plan
from .runner import Runner, AnsibleRunner, TimestampWriter, TeeWriter

__all__ = [
    'ClusterCatalog',
    'build_cluster_catalog',
    'get_dns_service_ip',
    'Event',
    'EventStream',
    'Inventory',
    'AnsibleNode',
    'Role',
    'build_inventory_from_plan',
    'Runner',
    'AnsibleRunner',
    'TimestampWriter',
    'TeeWriter',
]
