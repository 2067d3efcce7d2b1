import typer
from typing import List, Optional

from planctl.commands.common import (
    DRY_RUN, GENERATED_DIR, LIMIT, OUTPUT, PLAN_FILE, VERBOSE,
    build_operations, handle_errors, load_plan,
)


def reset_cmd(
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
    limit: Optional[List[str]] = LIMIT,
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
):
    """Remove Kubernetes from the nodes in the plan."""
    with handle_errors():
        plan = load_plan(plan_file)
        if not force and not dry_run:
            typer.confirm(
                f"⚠️  This will reset the nodes of cluster {plan.cluster.name}. Continue?",
                abort=True,
            )
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.reset(plan, nodes=limit)
        typer.echo(f"🔁 Nodes of cluster {plan.cluster.name} reset")
