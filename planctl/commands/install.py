"""Install commands: apply the plan, run a single play, add a node."""
import logging
from typing import List, Optional

import typer

from planctl.commands.common import (
    DRY_RUN, GENERATED_DIR, LIMIT, OUTPUT, PLAN_FILE, RESTART_SERVICES, VERBOSE,
    build_operations, handle_errors, load_plan, save_plan,
)
from planctl.errors import ConfigurationError
from planctl.modules.plan import ROLES, Node

logger = logging.getLogger("planctl.commands.install")

app = typer.Typer(help="Install the cluster described by the plan")


@app.command("apply")
def apply_cmd(
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
    restart_services: bool = RESTART_SERVICES,
    limit: Optional[List[str]] = LIMIT,
    skip_smoke_test: bool = typer.Option(False, "--skip-smoke-test", help="Do not run the smoke test after installing"),
):
    """Generate certificates, install the cluster and run the smoke test."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.generate_certificates(plan, use_existing_ca=ops.pki.certificate_authority_exists())
        ops.install(plan, restart_services=restart_services, nodes=limit)
        if not skip_smoke_test and not limit:
            ops.run_smoke_test(plan)
        typer.echo(f"🎉 Cluster {plan.cluster.name} installed")


@app.command("step")
def step_cmd(
    play: str = typer.Argument(..., help="Playbook to run, e.g. _docker.yaml"),
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
    restart_services: bool = RESTART_SERVICES,
    limit: Optional[List[str]] = LIMIT,
):
    """Run a single playbook against the cluster."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.run_play(play, plan, restart_services=restart_services, nodes=limit)


@app.command("add-node")
def add_node_cmd(
    host: str = typer.Option(..., "--host", help="Hostname of the new node"),
    ip: str = typer.Option(..., "--ip", help="IP address used to reach the node"),
    internal_ip: str = typer.Option("", "--internal-ip", help="Internal IP of the node"),
    roles: Optional[List[str]] = typer.Option(None, "--role", help="Role of the new node (repeatable)"),
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
    restart_services: bool = RESTART_SERVICES,
    skip_preflight: bool = typer.Option(False, "--skip-preflight", help="Do not run pre-flight checks on the node"),
):
    """Add a node to an existing cluster and record it in the plan."""
    with handle_errors():
        roles = roles or ['worker']
        unknown = [r for r in roles if r not in ROLES]
        if unknown:
            raise ConfigurationError(f"unknown roles {unknown}, expected one of {list(ROLES)}")
        plan = load_plan(plan_file)
        node = Node(host=host, ip=ip, internal_ip=internal_ip)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        if not skip_preflight:
            ops.run_new_node_preflight_check(plan, node)
        updated = ops.add_node(plan, node, roles, restart_services=restart_services)
        if not dry_run:
            save_plan(plan_file, updated)
        typer.echo(f"✅ Node {host} added with roles {', '.join(roles)}")
