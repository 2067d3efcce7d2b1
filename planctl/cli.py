import logging
import sys

import typer

from planctl.commands import certificates, diagnose, install, preflight, reset, smoketest, upgrade, volume
from planctl.logging import setup_logger

app = typer.Typer(help="Plan driven cluster lifecycle CLI")

debug_mode = False


def setup_logging(debug: bool = False):
    """Configure logging based on debug mode."""
    setup_logger("planctl", logging.DEBUG if debug else None)


# Command groups
app.add_typer(install.app, name="install")
app.add_typer(volume.app, name="volume")
app.add_typer(upgrade.app, name="upgrade")

# Single commands
app.command("reset")(reset.reset_cmd)
app.command("preflight")(preflight.preflight_cmd)
app.command("smoke-test")(smoketest.smoke_test_cmd)
app.command("certificates")(certificates.certificates_cmd)
app.command("diagnose")(diagnose.diagnose_cmd)


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """planctl - install and operate a cluster from a plan file."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    if debug:
        logging.getLogger("planctl").debug("Debug mode enabled")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
