"""
Essay Grader CLI Application.

Provides a command-line interface for grading a response with the
examiner panel, inspecting the panel, and serving the HTTP API.
"""

import asyncio
import json
from collections.abc import Awaitable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from essay_grader.catalog import CatalogError, default_registry
from essay_grader.config import Subject, UnitCode, get_settings
from essay_grader.grading import ConfigurationError, GradingEngine, UnknownQuestionTypeError
from essay_grader.logging_config import setup_logging
from essay_grader.models import GradeRequest, GradeResult

# Create Typer app
app = typer.Typer(
    name="essay-grader",
    help="Multi-examiner essay grading against Edexcel assessment objectives",
    add_completion=False,
)

console = Console()

T = TypeVar("T")


@app.command()
def grade(
    question: Annotated[str, typer.Argument(help="The question text")],
    essay_file: Annotated[Path, typer.Argument(help="Path to a text file with the response")],
    subject: Annotated[
        Subject,
        typer.Option("--subject", "-s", help="Subject panel to grade with"),
    ] = Subject.ECONOMICS,
    unit: Annotated[
        UnitCode,
        typer.Option("--unit", "-u", help="Examination unit"),
    ] = UnitCode.WEC11,
    question_type: Annotated[
        str,
        typer.Option("--question-type", "-q", help="Question type, e.g. 14-mark"),
    ] = "14-mark",
    diagram: Annotated[
        bool,
        typer.Option("--diagram/--no-diagram", help="Whether the response includes a diagram"),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON"),
    ] = False,
) -> None:
    """
    Grade a response with every examiner on the subject's panel.

    Each examiner scores one assessment objective; the scores are
    combined into an overall mark out of 10 and a grade.
    """
    settings = get_settings()
    setup_logging(settings)

    if not essay_file.exists():
        console.print(f"[red]Error:[/red] Essay file not found: {essay_file}")
        raise typer.Exit(1)

    try:
        request = GradeRequest(
            question=question,
            essay=essay_file.read_text(encoding="utf-8"),
            subject=subject,
            unit=unit,
            question_type=question_type,
            has_diagram=diagram,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid request:[/red] {e}")
        raise typer.Exit(1)

    engine = GradingEngine(settings)

    try:
        if as_json:
            result = asyncio.run(_closing(engine, engine.grade(request)))
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Examiners are marking... (this may take a moment)", total=None)
                result = asyncio.run(_closing(engine, engine.grade(request)))
    except ConfigurationError:
        console.print("[red]Configuration Error:[/red] set ESSAY_GRADER_AI_API_KEY")
        raise typer.Exit(1)
    except (UnknownQuestionTypeError, CatalogError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(result.to_wire(), indent=2))
    else:
        _display_result(result)


@app.command()
def catalog(
    subject: Annotated[
        Subject,
        typer.Argument(help="Subject panel to show"),
    ] = Subject.ECONOMICS,
) -> None:
    """Show the examiner panel and question types for a subject."""
    subject_catalog = default_registry().for_subject(subject)

    examiners = Table(title=f"Examiners ({subject.value})")
    examiners.add_column("AO", style="cyan")
    examiners.add_column("Examiner")
    examiners.add_column("Max", justify="right")
    examiners.add_column("Criteria")

    for profile in subject_catalog.examiners:
        examiners.add_row(
            profile.ao.value,
            profile.name,
            f"{profile.max_score:g}",
            "; ".join(profile.criteria),
        )

    console.print(examiners)

    question_types = Table(title="Question Types")
    question_types.add_column("Type", style="cyan")
    question_types.add_column("Marks", justify="right")
    question_types.add_column("AO split")
    question_types.add_column("Diagram")
    question_types.add_column("Time", justify="right")

    for qt in subject_catalog.question_types:
        split = " ".join(f"{ao.value}:{marks}" for ao, marks in qt.ao_distribution.items())
        question_types.add_row(
            qt.label,
            str(qt.total_marks),
            split,
            "required" if qt.requires_diagram else "-",
            f"{qt.time_allocation} min",
        )

    console.print(question_types)


@app.command()
def health() -> None:
    """
    Check if the grading system is operational.

    Verifies configuration and API connectivity.
    """
    settings = get_settings()
    setup_logging(settings)
    console.print("[bold]Essay Grader Health Check[/bold]\n")

    console.print("[dim]Checking configuration...[/dim]")
    console.print(f"  API Base URL: {settings.ai_base_url}")
    console.print(f"  Model: {settings.ai_model}")
    console.print(f"  Max concurrent examiners: {settings.max_concurrent_examiners}")

    if not settings.ai_configured:
        console.print("[red]✗ AI credential not configured[/red]")
        raise typer.Exit(1)

    console.print("\n[dim]Checking API connectivity...[/dim]")
    engine = GradingEngine(settings)

    if asyncio.run(_closing(engine, engine.health_check())):
        console.print("[green]✓ API is reachable[/green]")
    else:
        console.print("[red]✗ API is not reachable[/red]")
        raise typer.Exit(1)

    console.print("\n[green]All systems operational[/green]")


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on")] = 8000,
    reload: Annotated[bool, typer.Option(help="Reload on code changes")] = False,
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "essay_grader.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=get_settings().log_level.lower(),
    )


async def _closing(engine: GradingEngine, work: Awaitable[T]) -> T:
    """Await ``work``, then close the engine's client on the same event loop."""
    try:
        return await work
    finally:
        await engine.aclose()


def _display_result(result: GradeResult) -> None:
    """Display a grade in a formatted way."""
    level = f" | Level {result.level}" if result.level else ""
    time_note = f" ({result.time_estimate})" if result.time_estimate else ""
    console.print(
        Panel(
            f"[bold]Overall:[/bold] {result.overall_score:.1f}/10\n"
            f"[bold]Grade:[/bold] {result.grade} ({result.grade_description}){level}\n"
            f"[bold]Percentage:[/bold] {result.percentage}% | UMS {result.ums}\n"
            f"[bold]Question type:[/bold] {result.question_type} ({result.unit.value})\n"
            f"[bold]Words:[/bold] {result.word_count}{time_note}",
            title="Grade",
        )
    )

    table = Table(title="Examiner Scores")
    table.add_column("AO", style="cyan")
    table.add_column("Examiner")
    table.add_column("Score", justify="right")
    table.add_column("Band", justify="center")
    table.add_column("Priority")
    table.add_column("Feedback")

    for score in result.examiners:
        marker = " [yellow]*[/yellow]" if score.degraded else ""
        table.add_row(
            score.ao.value,
            score.examiner_name,
            f"{score.score:g}/{score.max_score:g}{marker}",
            score.band,
            score.improvement_priority,
            score.feedback[:80],
        )

    console.print(table)

    if result.degraded_examiners:
        console.print(
            f"[yellow]* {result.degraded_examiners} examiner(s) used a fallback score[/yellow]"
        )

    if result.diagram_feedback:
        console.print(f"\n[yellow]{result.diagram_feedback}[/yellow]")

    if result.summary:
        console.print(f"\n[bold]Summary:[/bold] {result.summary}")

    if result.improvements:
        console.print("\n[bold]Improvements:[/bold]")
        for item in result.improvements:
            console.print(f"  • {item}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
