from typing import List, Optional

from planctl.commands.common import (
    DRY_RUN, LIMIT, OUTPUT, PLAN_FILE, VERBOSE,
    build_operations, handle_errors, load_plan,
)


def preflight_cmd(
    plan_file: str = PLAN_FILE,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
    limit: Optional[List[str]] = LIMIT,
):
    """Run the pre-flight checks against the nodes in the plan."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(None, output, verbose, dry_run, require_generated_assets=False)
        ops.run_preflight_check(plan, nodes=limit)
