# ABOUTME: Provides a CLI for attendance risk reports, weighted scores, and scoring configs.
# ABOUTME: Reads CSV/parquet attendance exports and prints Rich tables for coordinators.

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.common.records import load_attendance_frame, records_from_frame
from src.risk.analyzer import RISK_LEVEL_ORDER, analyze_attendance_risk
from src.risk.report import assessments_to_frame, summarize_risk_levels, write_report
from src.scoring.config import SCORING_PRESETS, apply_preset, validate_scoring_config
from src.scoring.engine import generate_decay_curve, late_bracket_for
from src.scoring.store import ScoringConfigStore
from src.scoring.student_scores import score_students, student_scores_to_frame

console = Console()
app = typer.Typer(help="Attendance risk analytics and weighted attendance scoring.")

LEVEL_COLORS = {"critical": "red", "high": "orange3", "medium": "yellow", "watch": "cyan"}


def _default_config_path() -> Path:
    return Path("configs/scoring_default.yaml")


def _load_records(records_path: Path):
    if not records_path.exists():
        console.print(f"[red]Missing attendance export at {records_path}[/red]")
        raise typer.Exit(code=1)
    try:
        df = load_attendance_frame(records_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--records")
    typer.echo(f"[load] {len(df):,} attendance rows from {records_path}")
    return records_from_frame(df)


def _write_output(df, output: Optional[Path]) -> None:
    if output is None:
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    try:
        write_report(df, output)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--output")
    typer.echo(f"[write] {len(df):,} rows to {output}")


@app.command()
def risk(
    records_path: Path = typer.Option(..., "--records", help="Attendance export (.csv or .parquet)."),
    today: Optional[datetime] = typer.Option(None, "--today", formats=["%Y-%m-%d"], help="Reference date for recency windows."),
    level: Optional[str] = typer.Option(None, "--level", help="Only show one tier: critical, high, medium or watch."),
    output: Optional[Path] = typer.Option(None, "--output", help="Optional CSV/parquet path for the full report."),
) -> None:
    """
    List students at attendance risk, most urgent first.
    """
    if level is not None and level not in RISK_LEVEL_ORDER:
        raise typer.BadParameter(f"Unknown risk level '{level}'", param_hint="--level")

    records = _load_records(records_path)
    assessments = analyze_attendance_risk(records, today=today.date() if today else None)
    if level is not None:
        assessments = [a for a in assessments if a.risk_level == level]

    counts = summarize_risk_levels(assessments)
    console.rule("[bold blue]Attendance Risk[/bold blue]")
    console.print("  ".join(f"[{LEVEL_COLORS[name]}]{name}: {count}[/{LEVEL_COLORS[name]}]" for name, count in counts.items()))

    if not assessments:
        console.print("[green]No students at risk[/green]")
    else:
        table = Table(show_header=True, header_style="bold magenta")
        for column in ("Student", "Course", "Level", "Risk", "Engagement", "Rate", "Trend", "Patterns"):
            table.add_column(column)
        for a in assessments:
            color = LEVEL_COLORS[a.risk_level]
            table.add_row(
                a.student_name,
                a.course_name,
                f"[{color}]{a.risk_level}[/{color}]",
                f"{a.risk_score:.1f}",
                str(a.engagement_score),
                f"{a.attendance_rate:.1f}%",
                a.trend,
                "; ".join(a.patterns),
            )
        console.print(table)

    _write_output(assessments_to_frame(assessments), output)


@app.command()
def scores(
    records_path: Path = typer.Option(..., "--records", help="Attendance export (.csv or .parquet)."),
    config_path: Path = typer.Option(_default_config_path(), "--config", help="Scoring config YAML; defaults apply when missing."),
    output: Optional[Path] = typer.Option(None, "--output", help="Optional CSV/parquet path for the scores."),
) -> None:
    """
    Compute weighted attendance scores per student and course.
    """
    config = ScoringConfigStore(config_path).load()
    records = _load_records(records_path)
    results = score_students(records, config)

    console.rule(f"[bold blue]Weighted Scores ({config.config_name})[/bold blue]")
    table = Table(show_header=True, header_style="bold magenta")
    for column in ("Student", "Course", "Quality", "Attendance", "Punctuality", "Coverage", "Final"):
        table.add_column(column)
    for s in results:
        table.add_row(
            s.student_name,
            s.course_name,
            f"{s.quality_adjusted_rate:.1f}",
            f"{s.attendance_rate:.1f}",
            f"{s.punctuality_pct:.1f}",
            f"{s.coverage_factor:.3f}",
            f"{s.final_score:.1f}",
        )
    console.print(table)

    _write_output(student_scores_to_frame(results), output)


@app.command("show-config")
def show_config(
    config_path: Path = typer.Option(_default_config_path(), "--config", help="Scoring config YAML."),
) -> None:
    """
    Print the effective scoring config and any validation problems.
    """
    store = ScoringConfigStore(config_path)
    config = store.load()
    if not store.exists():
        console.print(f"[yellow]No config at {config_path}; showing defaults[/yellow]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting")
    table.add_column("Value")
    for name in (
        "config_name",
        "weight_quality",
        "weight_attendance",
        "weight_punctuality",
        "late_decay_constant",
        "late_minimum_credit",
        "late_null_estimate",
        "coverage_enabled",
        "coverage_method",
        "coverage_minimum",
    ):
        table.add_row(name, str(getattr(config, name)))
    console.print(table)

    brackets = Table(show_header=True, header_style="bold magenta")
    brackets.add_column("Bracket")
    brackets.add_column("Minutes")
    for bracket in config.late_brackets:
        brackets.add_row(bracket.name, f"{bracket.min}-{bracket.max}")
    console.print(brackets)

    problems = validate_scoring_config(config)
    if problems:
        for problem in problems:
            console.print(f"[red]{problem}[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Config is valid[/green]")


@app.command("save-config")
def save_config(
    config_path: Path = typer.Option(..., "--config", help="Destination YAML path."),
    preset: Optional[str] = typer.Option(None, "--preset", help=f"Preset to apply: {', '.join(SCORING_PRESETS)}."),
) -> None:
    """
    Write the default scoring config, optionally with a preset applied.
    """
    store = ScoringConfigStore(config_path)
    config = store.defaults
    if preset is not None:
        try:
            config = apply_preset(config, preset)
        except KeyError as exc:
            raise typer.BadParameter(exc.args[0], param_hint="--preset")
    saved = store.save(config)
    typer.echo(f"[config] saved '{saved.config_name}' to {config_path}")


@app.command("decay-curve")
def decay_curve(
    config_path: Path = typer.Option(_default_config_path(), "--config", help="Scoring config YAML."),
    max_minutes: int = typer.Option(120, "--max-minutes", help="Largest lateness to sample."),
    points: int = typer.Option(12, "--points", help="Number of sampling intervals."),
) -> None:
    """
    Print late-arrival credit across a range of minutes.
    """
    if points < 1:
        raise typer.BadParameter("points must be at least 1", param_hint="--points")
    config = ScoringConfigStore(config_path).load()
    curve = generate_decay_curve(config, max_minutes=max_minutes, points=points)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Minutes late")
    table.add_column("Credit")
    table.add_column("Bracket")
    for row in curve.itertuples(index=False):
        bracket = late_bracket_for(row.minutes, config)
        table.add_row(str(row.minutes), f"{row.credit:.1f}%", bracket.name if bracket else "")
    console.print(table)


if __name__ == "__main__":
    app()
