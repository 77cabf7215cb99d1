"""CLI entrypoints for uipilot."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from uipilot.config import Settings, load_settings
from uipilot.events import RunEvent
from uipilot.llm.responses import ResponsesClient
from uipilot.llm.review import ReviewServiceClient
from uipilot.logging import configure_logging, get_logger, run_context
from uipilot.models.steps import TestCase, convert_test_case_to_steps
from uipilot.notify import Notifier
from uipilot.review.queue import ReviewQueue
from uipilot.review.screenshots import ScreenshotStore
from uipilot.utils.ids import new_run_id

app = typer.Typer(add_completion=False, help="uipilot automated UI testing CLI")
logger = get_logger(__name__)


def _load_test_case(path: Path) -> TestCase:
    try:
        return TestCase.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise typer.BadParameter(f"{path} is not a valid test plan: {e}") from e


@app.command()
def script(
    plan: Path = typer.Argument(..., exists=True, dir_okay=False, help="Test plan JSON ({\"steps\": [...]})"),
) -> None:
    """Print the step script the planner receives for a test plan."""

    typer.echo(convert_test_case_to_steps(_load_test_case(plan)))


@app.command()
def review(
    plan: Path = typer.Argument(..., exists=True, dir_okay=False, help="Test plan JSON"),
    screenshots: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="PNG screenshots, in order"),
    context: str | None = typer.Option(None, "--context", "-c", help="Extra context sent with every screenshot"),
    artifacts_dir: Path | None = typer.Option(
        None,
        "--artifacts-dir",
        help="Artifacts directory (overrides UIPILOT_ARTIFACTS_DIR)",
    ),
) -> None:
    """Review screenshots against a test plan and print the final step states."""

    settings = load_settings()
    if artifacts_dir is not None:
        settings.artifacts_dir = artifacts_dir

    configure_logging(settings.log_level)
    logger.info("CLI review requested", extra={"screenshots": len(screenshots)})

    final_state = asyncio.run(_review(settings, _load_test_case(plan), screenshots, context))
    typer.echo(final_state)


async def _review(settings: Settings, test_case: TestCase, screenshots: list[Path], context: str | None) -> str:
    run_id = new_run_id()
    notifier = Notifier(run_id, [_echo_event])
    queue = ReviewQueue(
        ReviewServiceClient(settings, ResponsesClient(settings)),
        ScreenshotStore(root=settings.artifacts_dir, run_folder=run_id),
        include_previous_response=settings.review_include_previous_response,
    )

    with run_context(run_id=run_id, step="review"):
        await queue.instantiate(test_case)
        for path in screenshots:
            queue.submit(path.read_bytes(), notifier, context=context, label=path.name)
        await queue.join()

    if queue.state is None:
        raise RuntimeError("review queue was not instantiated")
    return queue.state.to_json()


def _echo_event(event: RunEvent) -> None:
    typer.echo(f"[{event.seq}] {event.content_type.value}: {event.data}", err=True)


if __name__ == "__main__":
    app()
