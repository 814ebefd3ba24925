import logging
import sys

import typer

from labctl.commands import generate, plan, validate
from labctl.config import Config
from labctl.logging import setup_logging
from labctl.reporting import EXIT_INTERNAL_ERROR

app = typer.Typer(help="Plan and scaffold Vagrant-based Kubernetes labs.")

# Global debug flag
debug_mode = False

app.command("plan")(plan.plan_cmd)
app.command("validate")(validate.validate_cmd)
app.command("generate")(generate.generate_cmd)


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """labctl - Kubernetes lab topology planner."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    Config.validate()
    if debug:
        logging.debug("Debug mode enabled")


def run():
    """Console entry point; unexpected errors exit with code 1."""
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(EXIT_INTERNAL_ERROR)


if __name__ == "__main__":
    run()
