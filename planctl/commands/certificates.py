from typing import Optional

import typer

from planctl.commands.common import GENERATED_DIR, PLAN_FILE, build_operations, handle_errors, load_plan


def certificates_cmd(
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    use_existing_ca: bool = typer.Option(False, "--use-existing-ca", help="Sign with the CA already on disk"),
):
    """Generate the cluster certificate authorities and certificates."""
    with handle_errors():
        plan = load_plan(plan_file)
        ops = build_operations(generated_dir, None, False, False)
        ops.generate_certificates(plan, use_existing_ca)
