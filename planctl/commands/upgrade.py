"""Upgrade commands."""
from typing import List, Optional

import typer

from planctl.commands.common import (
    DRY_RUN, GENERATED_DIR, OUTPUT, PLAN_FILE, RESTART_SERVICES, VERBOSE,
    build_operations, handle_errors, listable_nodes, load_plan,
)

app = typer.Typer(help="Upgrade the cluster to the version in the plan")


@app.command("nodes")
def upgrade_nodes_cmd(
    nodes: Optional[List[str]] = typer.Option(None, "--node", help="Upgrade only this node (repeatable)"),
    online: bool = typer.Option(False, "--online", help="Upgrade without taking workloads down"),
    max_parallel_workers: int = typer.Option(1, "--max-parallel-workers", help="Worker nodes upgraded at the same time"),
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
    restart_services: bool = RESTART_SERVICES,
):
    """Upgrade nodes: etcd first, then masters, then the rest in batches."""
    with handle_errors():
        plan = load_plan(plan_file)
        to_upgrade = listable_nodes(plan, nodes)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.upgrade_nodes(plan, to_upgrade, online, max_parallel_workers, restart_services=restart_services)
        typer.echo(f"⬆️  Upgraded {len(to_upgrade)} node(s) to {plan.cluster.version}")


@app.command("preflight")
def upgrade_preflight_cmd(
    node: str = typer.Option(..., "--node", help="Node to check"),
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
):
    """Run the upgrade pre-flight checks on a node."""
    with handle_errors():
        plan = load_plan(plan_file)
        (target,) = listable_nodes(plan, [node])
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.run_upgrade_preflight_check(plan, target)


@app.command("validate-control-plane")
def validate_control_plane_cmd(
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
):
    """Check that the control plane is healthy after upgrading masters."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.validate_control_plane(plan)


@app.command("services")
def upgrade_services_cmd(
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
):
    """Upgrade the cluster services and add-ons."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.upgrade_cluster_services(plan)
