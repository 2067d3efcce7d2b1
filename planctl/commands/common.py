"""Options and helpers shared by the planctl commands."""
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer
import yaml

from planctl.config import ExecutorOptions
from planctl.errors import ConfigurationError, PlanctlError
from planctl.modules.operations import ClusterOperations
from planctl.modules.plan import FilePlanner, ListableNode, Plan

logger = logging.getLogger("planctl.commands")

PLAN_FILE = typer.Option("planctl-plan.yaml", "--plan-file", "-f", help="Path to the installation plan file")
GENERATED_DIR = typer.Option(None, "--generated-assets-dir", help="Where generated assets are stored")
OUTPUT = typer.Option(None, "--output", "-o", help="Output format (simple or raw)")
VERBOSE = typer.Option(False, "--verbose", "-v", help="Enable verbose automation output")
DRY_RUN = typer.Option(False, "--dry-run", help="Show what would run without running anything")
LIMIT = typer.Option(None, "--limit", help="Run only on this node (repeatable)")
RESTART_SERVICES = typer.Option(False, "--restart-services", help="Force restart of cluster services")


def load_plan(plan_file: str) -> Plan:
    """Read the plan file.

    Raises:
        ConfigurationError: If the file is missing or cannot be parsed
    """
    planner = FilePlanner(plan_file)
    if not planner.exists():
        raise ConfigurationError(f"plan file {plan_file!r} does not exist")
    try:
        return planner.read()
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"error reading plan file {plan_file!r}: {e}") from e


def save_plan(plan_file: str, plan: Plan) -> None:
    try:
        FilePlanner(plan_file).write(plan)
    except OSError as e:
        raise ConfigurationError(f"error writing plan file {plan_file!r}: {e}") from e


def build_operations(
    generated_dir: Optional[str],
    output: Optional[str],
    verbose: bool,
    dry_run: bool,
    require_generated_assets: bool = True,
    diagnostics_dir: Optional[str] = None,
) -> ClusterOperations:
    """Cluster operations configured from the environment and command options."""
    options = ExecutorOptions.from_config(
        require_generated_assets=require_generated_assets,
        generated_assets_directory=generated_dir,
        output_format=output,
        verbose=verbose,
        dry_run=dry_run,
        diagnostics_directory=diagnostics_dir,
    )
    return ClusterOperations(options)


def listable_nodes(plan: Plan, hosts: Optional[List[str]] = None) -> List[ListableNode]:
    """Nodes of the plan with their roles, optionally limited to some hosts.

    Raises:
        ConfigurationError: If a requested host is not in the plan
    """
    nodes = plan.unique_nodes()
    if hosts:
        known = {n.host for n in nodes}
        missing = [h for h in hosts if h not in known]
        if missing:
            raise ConfigurationError(f"nodes not found in the plan: {', '.join(missing)}")
        nodes = [n for n in nodes if n.host in hosts]
    return [ListableNode(node=n, roles=plan.roles_of(n.host)) for n in nodes]


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report planctl errors and exit with a non-zero status."""
    try:
        yield
    except PlanctlError as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
