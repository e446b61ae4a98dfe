"""CLI package: Typer-based command-line interface.

Usage:
    adas-scrub --help
    adas-scrub scrub estimate.txt --catalog vehicles.yaml
    adas-scrub learning --help
"""

from adas_scrub.cli._app import app

# Register command modules (side-effect imports)
import adas_scrub.cli.cmd_scrub  # noqa: F401
import adas_scrub.cli.cmd_learning  # noqa: F401

__all__ = ["app"]
