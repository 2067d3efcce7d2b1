"""Persistent storage volume commands."""
from typing import List, Optional

import typer

from planctl.commands.common import (
    DRY_RUN, GENERATED_DIR, OUTPUT, PLAN_FILE, VERBOSE,
    build_operations, handle_errors, load_plan,
)
from planctl.modules.plan import StorageVolume

app = typer.Typer(help="Manage persistent storage volumes")


@app.command("add")
def add_volume_cmd(
    name: str = typer.Argument(..., help="Name of the volume"),
    size_gb: int = typer.Option(10, "--size", "-s", help="Size of the volume in GB"),
    replica_count: int = typer.Option(2, "--replica-count", "-r", help="Number of times the data is replicated"),
    distribution_count: int = typer.Option(1, "--distribution-count", "-d", help="Number of bricks the data is spread over"),
    storage_class: str = typer.Option("", "--storage-class", "-c", help="Storage class of the volume"),
    reclaim_policy: str = typer.Option("Retain", "--reclaim-policy", help="Retain, Recycle or Delete"),
    access_modes: Optional[List[str]] = typer.Option(None, "--access-mode", help="Access mode (repeatable)"),
    allow_addresses: Optional[List[str]] = typer.Option(None, "--allow-address", help="Address allowed to mount the volume (repeatable)"),
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
):
    """Create a volume on the storage nodes."""
    with handle_errors():
        plan = load_plan(plan_file)
        volume = StorageVolume(
            name=name,
            size_gb=size_gb,
            replicate_count=replica_count,
            distribution_count=distribution_count,
            storage_class=storage_class or name,
            reclaim_policy=reclaim_policy,
            access_modes=access_modes or ['ReadWriteMany'],
            allow_addresses=allow_addresses or [],
        )
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.add_volume(plan, volume)
        typer.echo(f"💾 Volume {name} created")


@app.command("delete")
def delete_volume_cmd(
    name: str = typer.Argument(..., help="Name of the volume"),
    plan_file: str = PLAN_FILE,
    generated_dir: Optional[str] = GENERATED_DIR,
    output: Optional[str] = OUTPUT,
    verbose: bool = VERBOSE,
    dry_run: bool = DRY_RUN,
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
):
    """Delete a volume and its data."""
    with handle_errors():
        plan = load_plan(plan_file)
        if not force and not dry_run:
            typer.confirm(f"⚠️  This will delete volume {name} and all of its data. Continue?", abort=True)
        ops = build_operations(generated_dir, output, verbose, dry_run)
        ops.delete_volume(plan, name)
        typer.echo(f"🗑️  Volume {name} deleted")
