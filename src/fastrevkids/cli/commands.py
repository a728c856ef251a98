"""CLI commands for the adaptive learning engine.

Commands:
- init-db: Create the SQLite schema
- seed: Import the exercise catalog from YAML
- sequence / recommend: What should the student do next
- metrics / prereqs: Adaptive diagnostics
- record: Record an attempt and update the revision schedule
- due / plan: Spaced-repetition reviews
"""

from datetime import datetime, timezone
from pathlib import Path

import typer
from rich.console import Console

from fastrevkids.config.app_config import load_engine_config
from fastrevkids.core.adaptive_service import AdaptiveService
from fastrevkids.core.models import (
    AdaptiveEngineError,
    AttemptRecord,
    ExerciseNotFoundError,
    RevisionSchedule,
)
from fastrevkids.core.recommendation_scorer import RecommendationOptions
from fastrevkids.db.database import get_db, init_db
from fastrevkids.db.exercises_repository import SqliteExerciseCatalog
from fastrevkids.db.progress_repository import SqliteProgressStore
from fastrevkids.db.schedules_repository import SqliteScheduleStore
from fastrevkids.db.seed import seed_exercises

app = typer.Typer(
    name="fastrevkids",
    help="Adaptive exercise sequencing and spaced repetition for primary school.",
    no_args_is_help=True,
)

console = Console()


def _get_service() -> AdaptiveService:
    """Open the configured database and build the service over it."""
    config = load_engine_config()
    init_db(config.db_path)
    return AdaptiveService(
        catalog=SqliteExerciseCatalog(),
        progress_store=SqliteProgressStore(),
        schedule_store=SqliteScheduleStore(),
        config=config,
        transaction=get_db,
    )


def _format_schedule(schedule: RevisionSchedule) -> str:
    return (
        f"{schedule.exercise_id}  [dim]révision:[/dim] {schedule.next_review.date().isoformat()}"
        f"  [dim]intervalle:[/dim] {schedule.interval_days} j"
        f"  [dim]facilité:[/dim] {schedule.easiness:.2f}"
    )


# =============================================================================
# SETUP
# =============================================================================


@app.command(name="init-db")
def init_database(
    db_path: str | None = typer.Option(None, "--db", help="Database file (default from config)"),
) -> None:
    """Create the database schema."""
    path = Path(db_path) if db_path else load_engine_config().db_path
    init_db(path)
    console.print(f"[green]✓ Base de données prête : {path}[/green]")


@app.command()
def seed(
    file: str | None = typer.Argument(None, help="Seed YAML file (default from config)"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing exercises"),
) -> None:
    """Import exercises from a YAML seed file."""
    config = load_engine_config()
    init_db(config.db_path)
    path = Path(file) if file else Path(config.paths["seed_file"])

    result = seed_exercises(path, force=force)
    if not result.success:
        console.print(f"[red]✗ {result.message}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ {result.message}[/green]")
    for warning in result.warnings:
        console.print(f"  [yellow]⚠ {warning}[/yellow]")


# =============================================================================
# SEQUENCING
# =============================================================================


@app.command()
def sequence(
    student_id: str = typer.Argument(..., help="Student ID"),
    concept: str | None = typer.Option(None, "--concept", "-c", help="Target concept"),
    count: int | None = typer.Option(None, "--count", "-n", help="Maximum number of exercises"),
) -> None:
    """Show the adaptive exercise sequence for a student."""
    try:
        result = _get_service().build_sequence(student_id, target_concept=concept, count=count)
    except AdaptiveEngineError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if not result.exercises:
        console.print("[yellow]Aucun exercice disponible.[/yellow]")
        return

    if result.metrics:
        console.print(
            f"[dim]difficulté optimale:[/dim] {result.metrics.optimal_difficulty}"
            f"  [dim]tendance:[/dim] {result.metrics.performance_trend}"
        )
    for index, exercise in enumerate(result.exercises, start=1):
        tag = "[yellow]prérequis[/yellow]" if index <= result.prerequisite_count else "[cyan]cible[/cyan]"
        console.print(f"  {index:2d}. {exercise.exercise_id}  {exercise.title}  {tag}")


@app.command()
def recommend(
    student_id: str = typer.Argument(..., help="Student ID"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of recommendations"),
    level: str | None = typer.Option(None, "--level", help="School level filter (CP, CE1, ...)"),
    subject: str | None = typer.Option(None, "--subject", help="Subject filter"),
) -> None:
    """Show recommended exercises with their score."""
    options = RecommendationOptions(limit=limit, level=level, subject=subject)
    scored = _get_service().get_recommendations(student_id, options)

    if not scored:
        console.print("[yellow]Aucune recommandation.[/yellow]")
        return

    for item in scored:
        console.print(f"  [bold]{item.score:3d}[/bold]  {item.exercise.exercise_id}  {item.exercise.title}")
        if item.reasons:
            console.print(f"       [dim]{' · '.join(item.reasons)}[/dim]")


# =============================================================================
# DIAGNOSTICS
# =============================================================================


@app.command()
def metrics(
    student_id: str = typer.Argument(..., help="Student ID"),
    exercise_id: str = typer.Argument(..., help="Reference exercise ID"),
) -> None:
    """Show adaptive metrics against a reference exercise."""
    try:
        result = _get_service().get_adaptive_metrics(student_id, exercise_id)
    except ExerciseNotFoundError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    for key, value in result.to_dict().items():
        console.print(f"  [dim]{key}:[/dim] {value}")


@app.command()
def prereqs(
    student_id: str = typer.Argument(..., help="Student ID"),
    concept_id: str = typer.Argument(..., help="Concept ID"),
) -> None:
    """Show prerequisite mastery for a concept."""
    try:
        statuses = _get_service().check_prerequisites(student_id, concept_id)
    except AdaptiveEngineError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    if not statuses:
        console.print(f"[green]✓ {concept_id} n'a pas de prérequis[/green]")
        return

    for status in statuses:
        mark = "[green]✓[/green]" if status.mastered else "[red]✗[/red]"
        console.print(f"  {mark} {status.concept_name} ({status.concept_id})  {status.mastery_level:.0f}%")


# =============================================================================
# ATTEMPTS AND REVISIONS
# =============================================================================


@app.command()
def record(
    student_id: str = typer.Argument(..., help="Student ID"),
    exercise_id: str = typer.Argument(..., help="Exercise ID"),
    success: bool = typer.Option(True, "--success/--failure", help="Outcome of the attempt"),
    response_time: float = typer.Option(0.0, "--time", "-t", help="Response time in seconds"),
    hints: int = typer.Option(0, "--hints", help="Hints used"),
    quality: float | None = typer.Option(None, "--quality", "-q", min=0, max=5, help="Recall quality 0-5"),
) -> None:
    """Record an attempt and update the revision schedule."""
    attempt = AttemptRecord(
        exercise_id=exercise_id,
        timestamp=datetime.now(timezone.utc),
        success=success,
        response_time=response_time,
        hints_used=hints,
    )

    try:
        progress, schedule = _get_service().submit_attempt(student_id, attempt, quality=quality)
    except AdaptiveEngineError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[green]✓ Tentative enregistrée[/green]  [dim]statut:[/dim] {progress.status.value}"
        f"  [dim]réussite:[/dim] {progress.success_rate:.0%}"
    )
    if schedule:
        console.print(f"  {_format_schedule(schedule)}")


@app.command()
def due(
    student_id: str = typer.Argument(..., help="Student ID"),
) -> None:
    """List revisions due now."""
    schedules = _get_service().get_due_revisions(student_id)
    if not schedules:
        console.print("[green]✓ Aucune révision à faire[/green]")
        return

    console.print(f"[bold]{len(schedules)} révision(s) à faire[/bold]")
    for schedule in schedules:
        console.print(f"  {_format_schedule(schedule)}")


@app.command()
def plan(
    student_id: str = typer.Argument(..., help="Student ID"),
    days: int | None = typer.Option(None, "--days", "-d", help="Number of days"),
) -> None:
    """Show the study plan for the coming days."""
    service = _get_service()
    study_plan = service.get_study_plan(student_id, days=days)
    stats = service.get_revision_stats(student_id)

    console.print(
        f"[dim]total:[/dim] {stats.total}  [dim]à faire:[/dim] {stats.due}"
        f"  [dim]à venir:[/dim] {stats.upcoming}"
    )
    console.print(
        f"[dim]maîtrisés:[/dim] {stats.mastered}  [dim]en cours:[/dim] {stats.learning}"
        f"  [dim]difficiles:[/dim] {stats.difficult}  [dim]réussite:[/dim] {stats.success_rate:.0%}"
    )
    for day, items in study_plan.days.items():
        console.print(f"  {day.isoformat()}  {len(items)} révision(s)")

    for advice in study_plan.advice:
        console.print(f"[yellow]→ {advice.action}[/yellow]  [dim]{advice.reason}[/dim]")


if __name__ == "__main__":
    app()
