"""
Cluster lifecycle modules.
"""
from .executor import Task, TaskExecutor
from .operations import ClusterOperations, new_executor, new_preflight_executor, new_diagnostics_executor

__all__ = [
    'Task',
    'TaskExecutor',
    'ClusterOperations',
    'new_executor',
    'new_preflight_executor',
    'new_diagnostics_executor',
]
