"""Click-based CLI for plancraft."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import click
from rich.console import Console

from plancraft import __version__
from plancraft.config import PlancraftConfig, load_config

if TYPE_CHECKING:
    from plancraft.core.protocols import GenerationService, LessonStore

logger = logging.getLogger("plancraft")

T = TypeVar("T")


def _build_service(config: PlancraftConfig) -> GenerationService:
    """Create the generation backend for the active profile."""
    from plancraft.generation import OllamaGenerationService

    return OllamaGenerationService(
        config.ollama, config.generation, profile=config.general.profile
    )


def _build_store(config: PlancraftConfig) -> LessonStore:
    from plancraft.storage import get_store

    return get_store(config.storage)


@click.group()
@click.version_option(version=__version__, prog_name="plancraft")
@click.option(
    "--profile",
    type=click.Choice(["fast", "balanced", "quality"]),
    default=None,
    help="Quality profile (overrides config file).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to user config TOML file.",
)
@click.option(
    "--set",
    "set_kv",
    nargs=2,
    multiple=True,
    help="Override a config KEY VALUE (dot notation).",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output.")
@click.option("-q", "--quiet", is_flag=True, default=False, help="Suppress all output.")
@click.pass_context
def main(
    ctx: click.Context,
    profile: str | None,
    config_path: Path | None,
    set_kv: tuple[tuple[str, str], ...],
    verbose: bool,
    quiet: bool,
) -> None:
    """plancraft -- lesson plan updates with reviewable diffs and auto-save."""
    ctx.ensure_object(dict)
    cfg = load_config(
        profile=profile,
        user_config_path=config_path,
        cli_overrides=dict(set_kv) if set_kv else None,
    )
    ctx.obj = {
        "config": cfg,
        "verbose": verbose,
        "quiet": quiet,
    }

    level = logging.DEBUG if verbose else logging.WARNING
    if quiet:
        level = logging.CRITICAL
    logging.basicConfig(level=level, format="%(name)s: %(message)s", stream=sys.stderr)


@main.command()
@click.argument("lesson_id")
@click.option("--title", required=True, help="Lesson title.")
@click.option("--student", default="Unknown Student", show_default=True)
@click.option("--date", "lesson_date", default="", help="Lesson date as shown in the plan.")
@click.option("--objective", "objectives", multiple=True, help="Learning objective (repeatable).")
@click.option("--concept", "concepts", multiple=True, help="Key concept (repeatable).")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing lesson.")
@click.pass_context
def new(
    ctx: click.Context,
    lesson_id: str,
    title: str,
    student: str,
    lesson_date: str,
    objectives: tuple[str, ...],
    concepts: tuple[str, ...],
    force: bool,
) -> None:
    """Create a lesson plan from the template and save it."""
    from plancraft.document.template import LessonOutline, render_lesson_plan

    obj = ctx.obj
    config: PlancraftConfig = obj["config"]
    console = Console(stderr=True, quiet=obj["quiet"])
    store = _build_store(config)

    outline = LessonOutline(
        title=title,
        student=student,
        date=lesson_date,
        objectives=objectives,
        key_concepts=concepts,
    )

    async def create() -> None:
        if not force and await store.load(lesson_id) is not None:
            raise click.ClickException(
                f"Lesson {lesson_id!r} already exists (use --force to overwrite)"
            )
        await store.save(lesson_id, render_lesson_plan(outline))

    _run(create())
    console.print(f"[green]Created lesson[/green] {lesson_id}")


@main.command()
@click.argument("lesson_id")
@click.pass_context
def show(ctx: click.Context, lesson_id: str) -> None:
    """Print a stored lesson plan."""
    config: PlancraftConfig = ctx.obj["config"]
    stored = _run(_build_store(config).load(lesson_id))
    if stored is None:
        raise click.ClickException(f"Lesson {lesson_id!r} not found")
    click.echo(stored.content, nl=False)


@main.command()
@click.argument("lesson_id")
@click.argument("request")
@click.option(
    "--yes", "-y", "assume_yes", is_flag=True, default=False, help="Accept without asking."
)
@click.pass_context
def update(ctx: click.Context, lesson_id: str, request: str, assume_yes: bool) -> None:
    """Apply a free-text improvement REQUEST to a lesson plan."""
    from plancraft.models.results import UpdateFailure
    from plancraft.progress import ProgressReporter, format_save_status
    from plancraft.session import LessonSession
    from plancraft.update import UpdateOrchestrator

    obj = ctx.obj
    config: PlancraftConfig = obj["config"]
    console = Console(stderr=True, quiet=obj["quiet"])
    reporter = ProgressReporter(console, verbose=obj["verbose"], quiet=obj["quiet"])
    store = _build_store(config)
    orchestrator = UpdateOrchestrator(_build_service(config), config.pipeline)

    async def run_update() -> int:
        if await store.load(lesson_id) is None:
            raise click.ClickException(f"Lesson {lesson_id!r} not found")
        session = await LessonSession.open(
            lesson_id, store, orchestrator, autosave=config.autosave
        )
        async with session:
            reporter.start(request)
            try:
                outcome = await session.submit_update_request(
                    request, progress_callback=reporter.callback
                )
            finally:
                reporter.stop()
            reporter.finish(outcome)

            if isinstance(outcome, UpdateFailure):
                console.print(f"[red]{outcome.reason}[/red]")
                return 1
            if session.pending_change is None:
                console.print("No changes to apply.")
                return 0

            reporter.show_diff(outcome)
            if not assume_yes and not click.confirm("Accept this change?", default=True):
                session.undo()
                console.print("Change discarded.")
                return 0

            saved = await session.accept()
            console.print(format_save_status(session.save_status()))
            return 0 if saved else 1

    ctx.exit(_run(run_update()))


@main.command(name="config")
@click.pass_context
def config_cmd(ctx: click.Context) -> None:
    """Print the resolved plancraft configuration."""
    from rich.syntax import Syntax

    obj = ctx.obj
    config: PlancraftConfig = obj["config"]
    console = Console(quiet=obj["quiet"])
    json_str = json.dumps(config.to_dict(), indent=2)
    console.print(Syntax(json_str, "json", theme="monokai"))


@main.command(name="models")
@click.pass_context
def models_cmd(ctx: click.Context) -> None:
    """Check the Ollama server and list pulled models."""
    from rich.table import Table

    from plancraft.generation.ollama import OllamaClient

    obj = ctx.obj
    config: PlancraftConfig = obj["config"]
    console = Console(quiet=obj["quiet"])

    async def check() -> tuple[bool, list[str]]:
        async with OllamaClient(config.ollama.host, float(config.ollama.timeout_seconds)) as client:
            if not await client.health_check():
                return False, []
            return True, [m.name for m in await client.list_models()]

    reachable, names = _run(check())
    if not reachable:
        console.print(f"[red]Ollama server not reachable at {config.ollama.host}.[/red]")
        console.print("Start Ollama with: ollama serve")
        ctx.exit(1)
        return

    configured: str = getattr(config.ollama.models, config.general.profile)
    table = Table(title="Ollama Models", show_header=True)
    table.add_column("Model", style="cyan")
    table.add_column("Active profile", style="green")
    for name in names:
        table.add_row(name, "Yes" if name == configured else "")
    console.print(table)
    if configured not in names:
        console.print(f"[yellow]Configured model {configured} is not pulled.[/yellow]")


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, mapping plancraft errors to click errors."""
    from plancraft.errors import PlancraftError

    try:
        return asyncio.run(coro)
    except (PlancraftError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
