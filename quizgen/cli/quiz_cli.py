"""
quizgen CLI.

Commands:
- quizgen generate  - Assemble a quiz from a JSON question bank
- quizgen configs   - Show quiz configurations per subject and phase
- quizgen decode    - Decode a 9-character question code
- quizgen init-db   - Create the question bank tables
"""
from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from quizgen.bank import InMemoryExamStore, InMemoryQuestionRepository
from quizgen.catalog import QuizConfigTable, SubjectTopicCatalog
from quizgen.selection.answered_tracker import AnsweredQuestionTracker
from quizgen.selection.assembler import build_assembler
from quizgen.selection.authorization import RecordPhaseAuthorization
from quizgen.selection.errors import InsufficientQuestions, QuizGenerationError
from quizgen.selection.models import Phase, QuizGenerationResult


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="quizgen",
    help="quizgen: adaptive quiz assembly",
    no_args_is_help=True,
)
console = Console()


def _print_result(result: QuizGenerationResult) -> None:
    quiz = result.quiz
    status = "[green]complete[/green]" if result.is_complete else f"[yellow]short by {result.shortfall}[/yellow]"
    console.print(Panel(
        f"{quiz.description}\n\n"
        f"Questions: {quiz.total_questions} ({status})  |  Time limit: {quiz.time_limit} min"
        + ("  |  [magenta]personalized[/magenta]" if result.personalized else ""),
        title=f"[bold cyan]{quiz.title}[/bold cyan]  [dim]{quiz.id}[/dim]",
    ))

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Code")
    table.add_column("Topic")
    table.add_column("Grade")
    table.add_column("Level")
    table.add_column("Passage")

    for index, question in enumerate(quiz.questions, start=1):
        table.add_row(
            str(index),
            question.code,
            question.topic_code,
            question.grade,
            question.level_code,
            "yes" if question.has_passage else "",
        )
    console.print(table)

    counts = ", ".join(f"{code}={n}" for code, n in result.topic_counts.items())
    console.print(f"Per topic: {counts}")
    for start, end in quiz.group_ranges:
        console.print(f"[dim]Questions {start} to {end} share a passage[/dim]")
    for warning in result.warnings:
        console.print(f"[yellow]{warning}[/yellow]")


def _parse_grants(values: list[str]) -> list[tuple[str, Phase]]:
    """Parse --authorize values of the form GRADE_ID:PHASE."""
    grants = []
    for value in values:
        grade_id, _, phase = value.rpartition(":")
        try:
            parsed = Phase.parse(phase)
        except ValueError:
            parsed = None
        if not grade_id or parsed is None:
            raise typer.BadParameter(f"expected GRADE_ID:PHASE, got {value!r}", param_hint="--authorize")
        grants.append((grade_id, parsed))
    return grants


# =============================================================================
# Commands
# =============================================================================

@app.command()
def generate(
    bank: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON question bank"),
    subject: str = typer.Option(..., "--subject", "-s", help="Subject name, e.g. 'Matemáticas'"),
    phase: str = typer.Option("first", "--phase", "-p", help="first, second or third"),
    grade: Optional[str] = typer.Option(None, "--grade", "-g", help="Grade name or code"),
    student: Optional[str] = typer.Option(None, "--student", help="Student id"),
    grade_id: Optional[str] = typer.Option(None, "--grade-id", help="Grade group used for phase gating"),
    authorize: Optional[list[str]] = typer.Option(
        None,
        "--authorize",
        help="Phase grant GRADE_ID:PHASE (repeatable); checked when --student is set",
    ),
    history: Optional[Path] = typer.Option(
        None,
        "--history",
        exists=True,
        dir_okay=False,
        help="JSON exam history {student_id: {exam_id: record}}",
    ),
    seed: Optional[str] = typer.Option(None, "--seed", help="Seed for reproducible selection"),
    require_complete: bool = typer.Option(
        False,
        "--require-complete",
        help="Fail when the bank cannot fill the quiz",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the quiz as JSON"),
) -> None:
    """
    Assemble a quiz from a JSON question bank.

    With --student and --history, questions from earlier phases are excluded
    and phase 2 is weighted toward the student's weak topics. A student only
    gets a phase granted to their --grade-id with --authorize.
    """
    grants = _parse_grants(authorize or [])
    repository = InMemoryQuestionRepository.from_json(bank)
    store = InMemoryExamStore.from_json(history) if history else InMemoryExamStore()
    authorization = (
        RecordPhaseAuthorization(grants, AnsweredQuestionTracker(store)) if student else None
    )
    assembler = build_assembler(repository, store, authorization)

    try:
        result = asyncio.run(assembler.generate(
            subject,
            phase,
            grade=grade,
            student_id=student,
            grade_id=grade_id,
            seed=seed,
            require_complete=require_complete,
        ))
    except InsufficientQuestions as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    except QuizGenerationError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        payload = result.quiz.to_dict()
        payload["shortfall"] = result.shortfall
        payload["topicCounts"] = result.topic_counts
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    _print_result(result)


@app.command()
def configs(
    subject: Optional[str] = typer.Option(None, "--subject", "-s", help="Only this subject"),
) -> None:
    """Show quiz configurations."""
    table_config = QuizConfigTable()
    subjects = [subject] if subject else table_config.available_subjects()

    table = Table(title="Quiz configurations")
    table.add_column("Subject")
    table.add_column("Phase")
    table.add_column("Questions", justify="right")
    table.add_column("Minutes", justify="right")
    table.add_column("Level")
    table.add_column("Per topic")

    found = False
    for name in subjects:
        for phase in table_config.available_phases(name):
            config = table_config.get(name, phase)
            found = True
            per_topic = " ".join(f"{c}:{n}" for c, n in config.topic_rule.per_topic.items())
            table.add_row(
                config.subject,
                phase.value,
                str(config.question_count) + (" groups" if config.grouped else ""),
                str(config.time_limit),
                config.level if config.prefer_level else "-",
                per_topic,
            )

    if not found:
        console.print(f"[red]No configuration for {subject}[/red]")
        raise typer.Exit(1)
    console.print(table)


@app.command()
def decode(code: str = typer.Argument(..., help="Question code, e.g. MAAL1F001")) -> None:
    """Decode a question code."""
    decoded = SubjectTopicCatalog().decode_question_code(code.upper())
    if decoded is None:
        console.print(f"[red]Invalid question code: {code}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{code.upper()}[/bold]")
    console.print(f"  Subject: {decoded.subject.name} ({decoded.subject.code})")
    console.print(f"  Topic:   {decoded.topic.name} ({decoded.topic.code})")
    console.print(f"  Grade:   {decoded.grade_name} ({decoded.grade})")
    console.print(f"  Level:   {decoded.level_name} ({decoded.level})")
    console.print(f"  Serial:  {decoded.serial}")


@app.command("init-db")
def init_db() -> None:
    """Create the question bank and exam result tables."""
    from quizgen.db.database import dispose_engine, init_db as create_tables

    async def _run() -> None:
        try:
            await create_tables()
        finally:
            await dispose_engine()

    asyncio.run(_run())
    console.print("[green]Database tables initialized[/green]")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level if settings.log_level != "INFO" else "WARNING",
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
