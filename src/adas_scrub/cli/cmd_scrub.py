"""Scrub command: analyze one estimate text file."""

from pathlib import Path
from typing import Optional

import typer

from adas_scrub.cli._app import app
from adas_scrub.cli._common import build_learning_engine, ensure_initialized, setup_logging
from adas_scrub.cli._console import console, output_json, print_calibrations, print_err, print_warn


@app.command("scrub", help="Find the ADAS calibrations an estimate calls for.")
def scrub(
    ctx: typer.Context,
    estimate_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Estimate text file (OCR/PDF output)"
    ),
    catalog: Path = typer.Option(
        ..., "--catalog", exists=True, dir_okay=False, help="Vehicle catalog (YAML or JSON)"
    ),
    year: Optional[int] = typer.Option(None, "--year", help="Vehicle year (overrides detection)"),
    make: Optional[str] = typer.Option(None, "--make", help="Vehicle make (overrides detection)"),
    model: Optional[str] = typer.Option(None, "--model", help="Vehicle model (overrides detection)"),
    shop: Optional[str] = typer.Option(None, "--shop", help="Shop id; applies its learning rules"),
    learning_dir: Optional[Path] = typer.Option(
        None, "--learning-dir", help="Learning store directory (default: settings or output/learning)"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings YAML"),
    assist: bool = typer.Option(
        True, "--assist/--no-assist", help="Use the OpenAI assist when credentials are configured"
    ),
):
    """Analyze an estimate and print grouped calibrations with a confidence score."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    try:
        settings = ensure_initialized(config)
    except ValueError as e:
        print_err(str(e))
        raise SystemExit(1)

    from adas_scrub.assist import OpenAIEstimateAssist
    from adas_scrub.catalog import load_vehicle_catalog
    from adas_scrub.errors import ScrubError
    from adas_scrub.pipeline import ScrubPipeline

    try:
        vehicle_catalog = load_vehicle_catalog(catalog)
    except (FileNotFoundError, ValueError) as e:
        print_err(f"Could not load catalog: {e}")
        raise SystemExit(1)

    if not assist:
        settings = settings.model_copy(
            update={"assist": settings.assist.model_copy(update={"enabled": False})}
        )

    pipeline = ScrubPipeline(
        vehicle_catalog,
        settings=settings,
        learning=build_learning_engine(settings, learning_dir) if shop else None,
        assist=OpenAIEstimateAssist(settings.assist) if settings.assist.enabled else None,
    )

    estimate_text = estimate_file.read_text(encoding="utf-8", errors="replace")
    try:
        result = pipeline.analyze(
            estimate_text,
            vehicle_year=year,
            vehicle_make=make,
            vehicle_model=model,
            shop_id=shop,
            file_name=estimate_file.name,
        )
    except ScrubError as e:
        if output_json(e.to_dict(), ctx=ctx):
            raise SystemExit(1)
        print_err(f"{e.message} [{e.code.value}]")
        raise SystemExit(1)

    if output_json(result.model_dump(mode="json"), ctx=ctx):
        return

    profile = result.analyzed_vehicle
    console.print(f"\n[bold]{profile.year} {profile.make} {profile.model}[/bold]")
    if result.vehicle is None:
        print_warn("Vehicle not found in catalog; results come from generic detection only")
    if result.learning_failed:
        print_warn("Learning rules could not be applied")

    print_calibrations(result.grouped_calibrations)

    confidence = result.confidence
    console.print(f"\nConfidence: [bold]{confidence.score}[/bold] ({confidence.label.value})")
    for reason in confidence.reasons:
        console.print(f"  - {reason}")
