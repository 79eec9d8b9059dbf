"""
Assessment CLI - timed questionnaires in the terminal.

Usage:
    assessment types                      # List assessment types
    assessment take behavioral            # Start (or silently resume) a test
    assessment take tpa --order-id ORD-1  # TPA needs a paid order
    assessment take vark --resume T-42    # Resume a specific test
    assessment status behavioral          # Show saved progress
    assessment discard behavioral         # Drop saved progress
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
import threading
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

# Local imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))
from config import Settings, get_settings
from src.assessment import (
    SCHEMAS,
    AssessmentSchema,
    JsonFileStorage,
    ProgressStore,
    Question,
    Session,
    SessionController,
    SessionListener,
    Step,
    completion_percentage,
    format_clock,
    format_duration,
    format_remaining,
    get_schema,
)
from src.integrations.test_provider import TestProviderClient

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="assessment",
    help="Timed assessments in the terminal: VARK, AI knowledge, behavioral, comprehensive, TPA",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()

# Seconds between countdown polls while waiting for an answer
POLL_INTERVAL_SECONDS = 1.0


def _configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="1 MB")


def _resolve_schema(assessment: str, settings: Settings) -> AssessmentSchema:
    try:
        return get_schema(assessment, settings.fallback_time_limit_overrides)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(2)


def _progress_store(schema: AssessmentSchema, settings: Settings) -> ProgressStore:
    return ProgressStore(
        JsonFileStorage(settings.progress_dir),
        schema.storage_key,
        retention=timedelta(hours=settings.progress_retention_hours),
    )


class ConsoleListener(SessionListener):
    """Renders controller events with rich."""

    def __init__(self, schema: AssessmentSchema):
        self.schema = schema

    def on_question(self, question: Question, index: int, total: int) -> None:
        body = f"[bold]{question.text}[/]"
        if question.image_url:
            body += f"\n[dim]Image: {question.image_url}[/]"
        for letter, text in question.options.items():
            body += f"\n  [cyan]{letter}[/]  {text}"
        subtitle = question.category_name or self.schema.display_name
        console.print(
            Panel(body, title=f"Question {index + 1}/{total}", subtitle=subtitle, border_style="cyan")
        )

    def on_notice(self, message: str) -> None:
        console.print(f"[yellow]{message}[/]")

    def on_step(self, step: Step, session: Optional[Session]) -> None:
        if step is Step.SUBMITTING:
            console.print("[dim]Submitting answers...[/]")


# =============================================================================
# Commands
# =============================================================================


@app.command("types")
def list_types() -> None:
    """List the available assessment types."""
    settings = get_settings()
    table = Table(title="Assessment Types")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Answers")
    table.add_column("Fallback limit", style="green")
    for key in SCHEMAS:
        schema = get_schema(key, settings.fallback_time_limit_overrides)
        table.add_row(
            key,
            schema.display_name,
            schema.answer_kind.value,
            format_duration(schema.fallback_time_limit),
        )
    console.print(table)


@app.command()
def take(
    assessment: Annotated[str, typer.Argument(help="Assessment type, see `assessment types`")],
    resume: Annotated[
        Optional[str], typer.Option("--resume", "-r", help="Resume this test id")
    ] = None,
    order_id: Annotated[
        Optional[str], typer.Option("--order-id", help="Paid order id (TPA)")
    ] = None,
    owner: Annotated[
        Optional[str], typer.Option("--owner", help="Override the configured user id")
    ] = None,
) -> None:
    """
    Take an assessment.

    Unfinished tests on this machine are resumed automatically; progress is
    saved after every answer and every second of the countdown.
    """
    settings = get_settings()
    _configure_logging(settings)
    schema = _resolve_schema(assessment, settings)

    try:
        completed = asyncio.run(_run_take(settings, schema, resume, order_id, owner or settings.owner_id))
    except (KeyboardInterrupt, EOFError):
        console.print(
            f"\n[yellow]Progress saved. Continue with:[/] [cyan]assessment take {schema.key}[/]"
        )
        raise typer.Exit(130)

    if not completed:
        raise typer.Exit(1)


async def _run_take(
    settings: Settings,
    schema: AssessmentSchema,
    resume: Optional[str],
    order_id: Optional[str],
    owner_id: str,
) -> bool:
    """Drive one session to a terminal step. Returns True when completed."""
    async with TestProviderClient(
        settings.api_base_url,
        schema,
        token=settings.api_token,
        timeout_seconds=settings.request_timeout_seconds,
    ) as provider:
        controller = SessionController(
            schema,
            provider,
            _progress_store(schema, settings),
            owner_id,
            listener=ConsoleListener(schema),
            auto_retries=settings.submit_auto_retries,
            retry_delay_seconds=settings.submit_retry_delay_seconds,
        )

        with console.status(f"Loading {schema.display_name}..."):
            await controller.initialize(resume, order_id)

        if controller.conflict is not None:
            test = controller.conflict.test
            console.print(
                Panel(
                    "[yellow]This test was started on another device or browser.[/]\n\n"
                    "Answers and remaining time are only stored on the device where you\n"
                    "started. You can restart this test from the first question with the\n"
                    f"full time budget ({format_duration(schema.time_limit_for(test.time_limit))}),\n"
                    "or abandon it and begin a new one.",
                    title="Continue on this device?",
                    border_style="yellow",
                )
            )
            start_over = Confirm.ask("Restart this test from the beginning?", default=True)
            await controller.resolve_conflict(start_over=start_over, order_id=order_id)

        if controller.step is Step.ERROR:
            _show_error(controller)
            return False

        session = controller.session
        assert session is not None
        _show_header(controller, schema, session)

        if not controller.resumed and not Confirm.ask("Start the test now?", default=True):
            console.print("[dim]Not started. The test stays open on the server until it expires.[/]")
            return False

        await controller.start()
        abandoned = await _answer_loop(controller, schema)

        if controller.step is Step.ERROR and controller.can_retry:
            _show_error(controller)
            if abandoned is not None:
                # The unanswered prompt still owns stdin
                console.print("[dim]Press Enter to continue[/]")
                with contextlib.suppress(EOFError):
                    await abandoned
            if Confirm.ask("Retry the submission now?", default=True):
                await controller.retry_submission()

        if controller.step is Step.COMPLETED:
            console.print(
                Panel(
                    f"[green]Submitted {controller.answered_count}/{session.total_questions} answers.[/]\n"
                    f"Results are available for test [cyan]{session.session_id}[/].",
                    title="Completed" if not controller.expired else "Time is up",
                    border_style="green",
                )
            )
            return True

        _show_error(controller)
        return False


async def _answer_loop(
    controller: SessionController, schema: AssessmentSchema
) -> Optional[asyncio.Future]:
    """Prompt until the session leaves testing. Returns a prompt abandoned at expiry, if any."""
    while controller.step is Step.TESTING:
        question = controller.current_question
        if question is None:
            break
        reply = _ask_in_background(
            f"[dim]{format_clock(controller.seconds_remaining)}[/] "
            f"Your answer ({schema.describe_value(question)})"
        )
        # The countdown keeps running while the prompt waits; expiry abandons it
        while not reply.done():
            await asyncio.wait({reply}, timeout=POLL_INTERVAL_SECONDS)
            await controller.poll_clock()
            if controller.step is not Step.TESTING:
                break
        if controller.step is not Step.TESTING:
            return reply
        raw = reply.result()
        try:
            controller.select(raw)
        except ValueError as e:
            console.print(f"[red]{e}[/]")
            continue
        await controller.advance()
    return None


def _ask_in_background(prompt: str) -> asyncio.Future:
    """Read one answer on a daemon thread so the event loop keeps ticking."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def settle(value: Optional[str], error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def read() -> None:
        try:
            value, error = Prompt.ask(prompt), None
        except EOFError as e:
            value, error = None, e
        # The loop is gone once the session has finished without this answer
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(settle, value, error)

    threading.Thread(target=read, daemon=True).start()
    return future


def _show_header(controller: SessionController, schema: AssessmentSchema, session: Session) -> None:
    lines = [
        f"[bold cyan]{session.question_set_name}[/]",
        f"Test: {session.session_id}",
        f"Questions: {session.total_questions}",
        f"Time: {format_duration(session.seconds_remaining)}",
    ]
    if controller.resumed:
        lines.append(
            f"[green]Resuming at question {min(session.current_index + 1, session.total_questions)} "
            f"with {controller.answered_count} answered[/]"
        )
    console.print(Panel("\n".join(lines), title=schema.display_name, border_style="cyan"))


def _show_error(controller: SessionController) -> None:
    console.print(
        Panel(
            f"[red]{controller.error.message if controller.error else 'Unknown error'}[/]\n\n"
            "[dim]Run the command again to start over.[/]",
            title=controller.error_title or "Error",
            border_style="red",
        )
    )


@app.command()
def status(
    assessment: Annotated[str, typer.Argument(help="Assessment type")],
) -> None:
    """Show saved progress for an assessment type."""
    settings = get_settings()
    schema = _resolve_schema(assessment, settings)
    snapshot = _progress_store(schema, settings).load()

    if snapshot is None:
        console.print(f"[dim]No saved {schema.display_name} progress.[/]")
        return

    table = Table(title=f"{schema.display_name} progress")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Test", snapshot.session_id)
    table.add_row("Question set", snapshot.question_set_name)
    table.add_row(
        "Answered",
        f"{len(snapshot.answers)}/{len(snapshot.ordered_question_ids)} "
        f"({completion_percentage(snapshot)}%)",
    )
    table.add_row("Time", format_remaining(snapshot.seconds_remaining))
    table.add_row("Saved", snapshot.saved_at.isoformat(timespec="seconds") if snapshot.saved_at else "-")
    console.print(table)


@app.command()
def discard(
    assessment: Annotated[str, typer.Argument(help="Assessment type")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete saved progress for an assessment type."""
    settings = get_settings()
    schema = _resolve_schema(assessment, settings)
    store = _progress_store(schema, settings)

    if not store.exists():
        console.print(f"[dim]No saved {schema.display_name} progress.[/]")
        return
    if yes or Confirm.ask("Delete the saved progress? Answers cannot be recovered.", default=False):
        store.clear()
        console.print("[dim]Progress deleted[/]")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
