from typing import Optional

from planctl.commands.common import (
    DRY_RUN, GENERATED_DIR, OUTPUT, PLAN_FILE, VERBOSE,
    build_operations, handle_errors, load_plan,
)


def smoke_test_cmd(
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
):
    """Run the smoke test against the installed cluster."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.run_smoke_test(plan)
