from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from shiftmetrics.cli._utils import (
    configure_logging,
    format_number,
    open_store,
    parse_rank_by,
    write_json,
)
from shiftmetrics.config import DEFAULT_ENGINE_CONFIG, EngineConfig, load_engine_config
from shiftmetrics.core.errors import ShiftMetricsValueError, StoreReadError
from shiftmetrics.evaluation import daily_dataframe, shift_dataframe, timeline_dataframe
from shiftmetrics.metrics.vocabulary import validate_metric
from shiftmetrics.reporting import ShiftMetricsService

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")


def _state(ctx: typer.Context) -> dict[str, Any]:
    if ctx.obj is None:
        ctx.obj = {"config": DEFAULT_ENGINE_CONFIG, "telemetry_log": None}
    return ctx.obj


def _service(ctx: typer.Context, dataset: Path) -> ShiftMetricsService:
    state = _state(ctx)
    return ShiftMetricsService(
        open_store(dataset),
        config=state["config"],
        telemetry_log=state["telemetry_log"],
    )


def _run(action: Callable[[], T]) -> T:
    """Map engine errors onto CLI exits (client errors → usage error, store → exit 1)."""

    try:
        return action()
    except ShiftMetricsValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except StoreReadError as exc:
        cause = exc.__cause__
        detail = f"{exc}: {cause}" if cause is not None else str(exc)
        console.print(f"[red]Store read failed:[/red] {detail}")
        raise typer.Exit(1) from exc


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Engine YAML extending the default activity routes and field aliases.",
        exists=True,
        dir_okay=False,
    ),
    telemetry_log: Path | None = typer.Option(
        None,
        "--telemetry-log",
        help="Append one JSONL record per query (e.g. telemetry/queries.jsonl).",
        dir_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Shift metric derivation, milestones, and peer comparisons."""
    configure_logging(console, verbose=verbose)
    engine_config: EngineConfig = DEFAULT_ENGINE_CONFIG
    if config is not None:
        try:
            engine_config = load_engine_config(config)
        except ShiftMetricsValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--config") from exc
        logger.debug("Loaded engine config from %s", config)
    ctx.obj = {"config": engine_config, "telemetry_log": telemetry_log}


@app.command()
def metrics(ctx: typer.Context):
    """List the milestone metric vocabulary."""
    engine_config = _state(ctx)["config"]
    table = Table(title="Milestone metrics")
    table.add_column("#", justify="right")
    table.add_column("Metric")
    table.add_column("Unit")
    table.add_column("Kind")
    for index, spec in enumerate(engine_config.metrics, start=1):
        kind = spec.kind.value
        if spec.components:
            kind = f"{kind} ({' + '.join(spec.components)})"
        table.add_row(str(index), spec.name, spec.unit, kind)
    console.print(table)


@app.command()
def summary(
    ctx: typer.Context,
    dataset: Path = typer.Argument(..., help="Dataset directory, dataset.yaml, or SQLite file."),
    subject: int = typer.Option(..., "--subject", help="Subject (user) id to summarise."),
    caller: int | None = typer.Option(
        None, "--as", help="Caller id (defaults to the subject)."
    ),
    date_from: str | None = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)."),
    date_to: str | None = typer.Option(None, "--to", help="End date (YYYY-MM-DD)."),
    out_json: Path | None = typer.Option(
        None, "--out-json", help="Write the full summary as JSON."
    ),
    out_shifts: Path | None = typer.Option(
        None, "--out-shifts", help="Write per-shift metrics (CSV)."
    ),
    out_daily: Path | None = typer.Option(
        None, "--out-daily", help="Write the daily series (CSV)."
    ),
):
    """Print milestones for every metric and optionally export shift/day tables."""
    service = _run(lambda: _service(ctx, dataset))
    result = _run(
        lambda: service.subject_summary(
            caller if caller is not None else subject,
            subject_id=subject,
            start=date_from,
            end=date_to,
        )
    )
    rollup = result.subject_rollup
    console.print(
        f"Subject [bold]{result.subject_id}[/bold]: {len(result.rows)} shifts on "
        f"{len(rollup.daily)} days"
    )
    if result.rows and not result.has_activity_detail:
        console.print(
            "[yellow]Some shifts were reduced from stored totals; heading counts may be "
            "understated.[/yellow]"
        )

    table = Table(title="Milestones")
    for column in ("Metric", "Best day", "Date", "Best week", "Window", "Best month", "Month"):
        table.add_column(column)
    table.add_column("DS avg", justify="right")
    table.add_column("NS avg", justify="right")
    table.add_column("Winner")
    for name, milestone in result.milestones.items():
        compare = milestone.shift_compare
        table.add_row(
            name,
            format_number(milestone.best_day.total),
            milestone.best_day.date.isoformat(),
            format_number(milestone.best_week.total),
            f"{milestone.best_week.start.isoformat()} → {milestone.best_week.end.isoformat()}",
            format_number(milestone.best_month.total),
            milestone.best_month.month,
            format_number(compare.avg_day),
            format_number(compare.avg_night),
            compare.winner,
        )
    console.print(table)

    if out_json is not None:
        write_json(out_json, result.to_dict())
        console.print(f"Summary written to {out_json}")
    if out_shifts is not None:
        out_shifts.parent.mkdir(parents=True, exist_ok=True)
        shift_dataframe(rollup).to_csv(out_shifts, index=False)
        console.print(f"Shift metrics written to {out_shifts}")
    if out_daily is not None:
        out_daily.parent.mkdir(parents=True, exist_ok=True)
        daily_dataframe(rollup).to_csv(out_daily, index=False)
        console.print(f"Daily series written to {out_daily}")


@app.command()
def network(
    ctx: typer.Context,
    dataset: Path = typer.Argument(..., help="Dataset directory, dataset.yaml, or SQLite file."),
    subject: int = typer.Option(..., "--subject", help="Caller (subject) id."),
    metric: str = typer.Option(..., "--metric", help="Metric name (case-insensitive)."),
    peers: list[int] | None = typer.Option(
        None,
        "--peer",
        help="Peer id (repeatable). Defaults to the subject's accepted connections.",
    ),
    date_from: str | None = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)."),
    date_to: str | None = typer.Option(None, "--to", help="End date (YYYY-MM-DD)."),
    compare: int | None = typer.Option(None, "--compare", help="Single peer to compare against."),
    rank_by: str = typer.Option("total", "--rank-by", help="Ranking: total, average, or best."),
    top: int | None = typer.Option(None, "--top", min=1, help="Keep the top N ranking rows."),
    out_json: Path | None = typer.Option(None, "--out-json", help="Write the comparison as JSON."),
    out_timeline: Path | None = typer.Option(
        None, "--out-timeline", help="Write the per-day timeline (CSV)."
    ),
):
    """Compare a subject against their peers for one metric."""
    rank = parse_rank_by(rank_by)
    engine_config: EngineConfig = _state(ctx)["config"]
    _run(lambda: validate_metric(metric, engine_config.metrics))
    service = _run(lambda: _service(ctx, dataset))
    peer_ids = list(peers) if peers else list(_run(lambda: _accepted_peers(service, subject)))
    result = _run(
        lambda: service.peer_comparison(
            subject,
            metric,
            peer_ids,
            start=date_from,
            end=date_to,
            compare_peer_id=compare,
            rank_by=rank,
            top_n=top,
        )
    )
    comparison = result.comparison
    best = comparison.subject_best
    console.print(
        f"[bold]{result.metric}[/bold] for subject {comparison.subject_id}: "
        f"all-time best {format_number(best.total)} ({best.date.isoformat()}), "
        f"period total {format_number(comparison.subject_period_total)}, "
        f"average {format_number(comparison.subject_period_average)}"
    )
    network_best = comparison.network_best
    if network_best.peer_id is not None and network_best.date is not None:
        console.print(
            f"Network best {format_number(network_best.total)} by {network_best.peer_id} "
            f"on {network_best.date.isoformat()}"
        )

    tiles = Table(title="Peers")
    for column in ("Peer", "All-time best", "Date", "Period avg", "Period total"):
        tiles.add_column(column)
    for tile in comparison.tiles:
        tiles.add_row(
            str(tile.peer_id),
            format_number(tile.best.total),
            tile.best.date.isoformat(),
            format_number(tile.period_average),
            format_number(tile.period_total),
        )
    console.print(tiles)

    ranking = Table(title=f"Ranking by {comparison.rank_by.value}")
    ranking.add_column("Rank", justify="right")
    ranking.add_column("Id")
    ranking.add_column("Value", justify="right")
    for row in comparison.ranking:
        label = f"{row.participant_id} (you)" if row.is_subject else str(row.participant_id)
        ranking.add_row(str(row.rank), label, format_number(row.value))
    console.print(ranking)

    if out_json is not None:
        write_json(out_json, result.to_dict())
        console.print(f"Comparison written to {out_json}")
    if out_timeline is not None:
        out_timeline.parent.mkdir(parents=True, exist_ok=True)
        timeline_dataframe(comparison).to_csv(out_timeline, index=False)
        console.print(f"Timeline written to {out_timeline}")


def _accepted_peers(service: ShiftMetricsService, subject: int) -> tuple[int, ...]:
    try:
        return tuple(service.store.accepted_peers(subject))
    except Exception as exc:
        raise StoreReadError(f"Failed to read connections for subject {subject}") from exc


@app.command()
def series(
    ctx: typer.Context,
    dataset: Path = typer.Argument(..., help="Dataset directory, dataset.yaml, or SQLite file."),
    subject: int = typer.Option(..., "--subject", help="Caller (subject) id."),
    date_from: str | None = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)."),
    date_to: str | None = typer.Option(None, "--to", help="End date (YYYY-MM-DD)."),
    out_json: Path | None = typer.Option(None, "--out-json", help="Write raw records as JSON."),
):
    """Show the subject's raw shifts and activity records."""
    service = _run(lambda: _service(ctx, dataset))
    records = _run(lambda: service.self_time_series(subject, start=date_from, end=date_to))
    table = Table(title=f"Shifts for subject {subject}")
    table.add_column("Shift", justify="right")
    table.add_column("Date")
    table.add_column("DN")
    table.add_column("Activities")
    for item in records:
        names = sorted(
            {f"{record.activity}/{record.sub_activity}".strip("/") for record in item.activities}
        )
        table.add_row(
            str(item.shift.id),
            item.shift.date.isoformat(),
            item.shift.shift_type.value if item.shift.shift_type else "-",
            ", ".join(names) or "-",
        )
    console.print(table)
    if out_json is not None:
        write_json(out_json, [item.to_dict() for item in records])
        console.print(f"Records written to {out_json}")


if __name__ == "__main__":
    app()
