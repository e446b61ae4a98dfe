"""Rich console singleton and output helpers."""

import sys
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from adas_scrub.schemas.calibration import GroupedCalibration

# Status messages and tables on stderr; JSON goes to stdout_console
console = Console(stderr=True)

stdout_console = Console(file=sys.stdout)


def print_ok(msg: str) -> None:
    console.print(f"[green]✓[/green] {msg}")


def print_err(msg: str) -> None:
    console.print(f"[red]✗[/red] {msg}")


def print_warn(msg: str) -> None:
    console.print(f"[yellow]![/yellow] {msg}")


def output_json(data, *, ctx: typer.Context) -> bool:
    """Print ``data`` as JSON to stdout when --json is active.

    Returns:
        True if the data was printed (the caller should skip table output).
    """
    if not ctx.obj.get("json"):
        return False
    stdout_console.print_json(data=data)
    return True


def output_table(
    rows: List[dict],
    *,
    ctx: typer.Context,
    title: str = "",
    columns: Optional[List[str]] = None,
) -> None:
    """Print rows as a JSON array or a Rich table."""
    if output_json(rows, ctx=ctx):
        return

    if not rows:
        console.print("[dim]No data[/dim]")
        return

    cols = columns or list(rows[0].keys())
    table = Table(title=title, show_lines=False)
    for col in cols:
        table.add_column(col)
    for row in rows:
        table.add_row(*[str(row.get(c, "")) for c in cols])
    console.print(table)


def print_calibrations(grouped: Sequence[GroupedCalibration]) -> None:
    """Render grouped calibrations, one row per recommended operation."""
    if not grouped:
        console.print("[dim]No calibrations recommended[/dim]")
        return

    table = Table(title="Recommended calibrations")
    for col in ("System", "Operation", "Type", "Procedure", "Lines", "Sources"):
        table.add_column(col)
    for calibration in grouped:
        table.add_row(
            calibration.system_name,
            calibration.repair_operation,
            calibration.calibration_type,
            calibration.procedure_type or "",
            ", ".join(str(n) for n in calibration.trigger_lines),
            ", ".join(s.value for s in calibration.sources),
        )
    console.print(table)
