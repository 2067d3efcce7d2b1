from typing import Optional

import typer

from planctl.commands.common import (
    DRY_RUN, OUTPUT, PLAN_FILE, VERBOSE,
    build_operations, handle_errors, load_plan,
)


def diagnose_cmd(
    plan_file: str = PLAN_FILE,
    diagnostics_dir: Optional[str] = typer.Option(None, "--diagnostics-dir", help="Where diagnostics are collected"),
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
):
    """Collect logs and state from every node."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(
            None, output, verbose, dry_run,
            require_generated_assets=False, diagnostics_dir=diagnostics_dir,
        )
        ops.diagnose_nodes(plan)
        typer.echo(f"🩺 Diagnostics collected under {ops.options.diagnostics_directory}")
