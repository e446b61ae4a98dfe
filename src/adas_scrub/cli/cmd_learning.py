"""Learning commands: list, teach and review shop learning rules."""

from pathlib import Path
from typing import List, Optional

import typer

from adas_scrub.cli._app import app
from adas_scrub.cli._common import build_learning_engine, ensure_initialized, setup_logging
from adas_scrub.cli._console import output_json, output_table, print_err, print_ok, print_warn
from adas_scrub.errors import ScrubError
from adas_scrub.schemas.learning import LearningAction, ReviewStatus

learning_app = typer.Typer(
    no_args_is_help=True,
    help="Manage shop learning rules and their audit events.",
)
app.add_typer(learning_app, name="learning")

LEARNING_DIR_OPTION = typer.Option(
    None, "--learning-dir", help="Learning store directory (default: settings or output/learning)"
)
CONFIG_OPTION = typer.Option(None, "--config", help="Settings YAML")


def _engine(ctx: typer.Context, config: Optional[Path], learning_dir: Optional[Path]):
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])
    try:
        settings = ensure_initialized(config)
    except ValueError as e:
        print_err(str(e))
        raise SystemExit(1)
    return build_learning_engine(settings, learning_dir)


def _fail(ctx: typer.Context, error: ScrubError) -> None:
    if not output_json(error.to_dict(), ctx=ctx):
        print_err(f"{error.message} [{error.code.value}]")
    raise SystemExit(1)


@learning_app.command("rules", help="List a shop's learning rules.")
def learning_rules(
    ctx: typer.Context,
    shop: str = typer.Option(..., "--shop", help="Shop id"),
    learning_dir: Optional[Path] = LEARNING_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
):
    engine = _engine(ctx, config, learning_dir)
    try:
        rules = engine.store.list_rules(shop)
    except ScrubError as e:
        _fail(ctx, e)

    if output_json([r.model_dump(mode="json") for r in rules], ctx=ctx):
        return
    output_table(
        [
            {
                "id": r.id,
                "action": r.action.value,
                "vehicle": f"{r.year_start}-{r.year_end} {r.make} {r.model}",
                "keyword": r.keyword,
                "system": r.system_name,
                "weight": f"{r.confidence_weight:.2f}",
                "used": r.usage_count,
                "corrections": r.correction_count,
            }
            for r in rules
        ],
        ctx=ctx,
        title=f"Learning rules for {shop}",
    )


@learning_app.command("teach", help="Teach (or reinforce) a rule and record an audit event.")
def learning_teach(
    ctx: typer.Context,
    shop: str = typer.Option(..., "--shop", help="Shop id"),
    action: LearningAction = typer.Option(..., "--action", help="add or suppress"),
    make: str = typer.Option(..., "--make"),
    model: str = typer.Option(..., "--model", help='Model name or "All Models"'),
    year_start: int = typer.Option(..., "--year-start"),
    year_end: int = typer.Option(..., "--year-end"),
    keyword: str = typer.Option(..., "--keyword", help="Estimate line keyword"),
    system: str = typer.Option(..., "--system", help="ADAS system name"),
    reason: str = typer.Option(..., "--reason"),
    calibration_type: Optional[str] = typer.Option(None, "--calibration-type"),
    weight: float = typer.Option(0.8, "--weight", help="Confidence weight (0.1-1.0)"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Who taught the rule"),
    report_id: Optional[str] = typer.Option(None, "--report-id"),
    vin: Optional[str] = typer.Option(None, "--vin"),
    trigger_line: Optional[List[int]] = typer.Option(None, "--trigger-line", help="Repeatable"),
    learning_dir: Optional[Path] = LEARNING_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
):
    if year_end < year_start:
        print_err(f"--year-end ({year_end}) is before --year-start ({year_start})")
        raise SystemExit(1)

    engine = _engine(ctx, config, learning_dir)
    try:
        rule = engine.upsert_rule(
            shop_id=shop,
            action=action,
            make=make,
            model=model,
            year_start=year_start,
            year_end=year_end,
            keyword=keyword,
            system_name=system,
            calibration_type=calibration_type,
            reason=reason,
            confidence_weight=weight,
            edited_by=actor,
        )
        event = engine.append_event(
            shop_id=shop,
            action=action,
            make=make,
            model=model,
            year_start=year_start,
            year_end=year_end,
            keyword=keyword,
            system_name=system,
            rule_id=rule.id,
            calibration_type=calibration_type,
            reason=reason,
            confidence_weight=weight,
            report_id=report_id,
            vehicle_vin=vin,
            trigger_lines=trigger_line,
            actor_id=actor,
            actor_name=actor,
        )
    except ScrubError as e:
        _fail(ctx, e)

    if output_json(
        {"rule": rule.model_dump(mode="json"), "event": event.model_dump(mode="json")}, ctx=ctx
    ):
        return
    print_ok(
        f"Rule {rule.id} ({rule.action.value} '{rule.keyword}' -> {rule.system_name}), "
        f"weight {rule.confidence_weight:.2f}, corrections {rule.correction_count}"
    )
    print_ok(f"Event {event.id} recorded (pending review)")


@learning_app.command("events", help="List a shop's learning events, newest first.")
def learning_events(
    ctx: typer.Context,
    shop: str = typer.Option(..., "--shop", help="Shop id"),
    limit: int = typer.Option(200, "--limit", help="Maximum events (1-2000)"),
    learning_dir: Optional[Path] = LEARNING_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
):
    engine = _engine(ctx, config, learning_dir)
    try:
        events = engine.load_events(shop, limit)
    except ScrubError as e:
        _fail(ctx, e)

    if output_json([e.model_dump(mode="json") for e in events], ctx=ctx):
        return
    output_table(
        [
            {
                "id": e.id,
                "created": e.created_at,
                "action": e.action.value,
                "keyword": e.keyword,
                "system": e.system_name,
                "review": e.review_status.value,
            }
            for e in events
        ],
        ctx=ctx,
        title=f"Learning events for {shop}",
    )


@learning_app.command("review", help="Approve or reject a pending learning event.")
def learning_review(
    ctx: typer.Context,
    event_id: str = typer.Argument(..., help="Event id"),
    shop: str = typer.Option(..., "--shop", help="Shop id"),
    status: ReviewStatus = typer.Option(..., "--status", help="approved or rejected"),
    learning_dir: Optional[Path] = LEARNING_DIR_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
):
    engine = _engine(ctx, config, learning_dir)
    try:
        event = engine.review_event(shop, event_id, status)
    except ScrubError as e:
        _fail(ctx, e)

    if event is None:
        print_warn(f"Event {event_id} not found for shop {shop}")
        raise SystemExit(1)

    if output_json(event.model_dump(mode="json"), ctx=ctx):
        return
    print_ok(f"Event {event.id} marked {event.review_status.value}")
