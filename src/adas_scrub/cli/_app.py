"""Root Typer application: global output/logging flags shared by every command."""

from typing import Optional

import typer

from adas_scrub import __version__

app = typer.Typer(
    name="adas-scrub",
    help="Find the ADAS calibrations a collision-repair estimate calls for.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"adas-scrub {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-line scrub decisions"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
    json_output: bool = typer.Option(
        False, "--json", help="Print results or errors as JSON on stdout"
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_print_version, is_eager=True, help="Show version and exit"
    ),
):
    """Scrub estimates and manage shop learning rules."""
    ctx.obj = {"verbose": verbose, "quiet": quiet, "json": json_output}
