"""
Cluster plan: the declarative description of nodes, roles and settings.
"""
from .models import (
    Plan, Node, Taint, NodeGroup, MasterNodeGroup, OptionalNodeGroup,
    ListableNode, StorageVolume, ROLES,
)
from .planner import FilePlanner

__all__ = [
    'Plan',
    'Node',
    'Taint',
    'NodeGroup',
    'MasterNodeGroup',
    'OptionalNodeGroup',
    'ListableNode',
    'StorageVolume',
    'ROLES',
    'FilePlanner',
]
