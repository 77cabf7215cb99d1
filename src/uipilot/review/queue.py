"""Sequential screenshot review queue.

The review model keeps a conversation across screenshots, so reviews must reach it one at a
time and in order. Callers enqueue jobs from anywhere (the action loop, the runner's
checkpoints) and get a future per job; a single drain task works through the queue.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass

from uipilot.errors import UIPilotError
from uipilot.llm.review import ReviewServiceClient
from uipilot.logging import get_logger
from uipilot.models.steps import TestCase, TestScriptState
from uipilot.notify import Notifier
from uipilot.review.screenshots import ScreenshotStore
from uipilot.review.state import align_to_baseline, merge_screenshot_refs, steps_with_status_change

logger = get_logger(__name__)


@dataclass
class ReviewJob:
    """A pending review. ``future`` resolves to the serialized post-review state."""

    screenshot: bytes
    context: str | None
    future: asyncio.Future[str]


class ReviewQueue:
    """FIFO of review jobs with a single draining worker.

    Owns the authoritative :class:`TestScriptState` of a run.
    """

    def __init__(
        self,
        service: ReviewServiceClient,
        store: ScreenshotStore,
        *,
        include_previous_response: bool = True,
    ) -> None:
        self._service = service
        self._store = store
        self._include_previous_response = include_previous_response

        self._jobs: deque[ReviewJob] = deque()
        self._draining = False
        self._drain_task: asyncio.Task[None] | None = None

        self._state: TestScriptState | None = None
        self._previous_response_id: str | None = None

    @property
    def state(self) -> TestScriptState | None:
        return self._state

    @property
    def pending(self) -> int:
        """Number of jobs waiting (not counting the one in flight)."""

        return len(self._jobs)

    async def instantiate(self, test_case: TestCase) -> str:
        """Create the baseline state for a plan. Call once per run.

        Returns:
            Serialized initial state.
        """

        logger.debug("Instantiating review agent", extra={"steps": len(test_case.steps)})
        result = await self._service.instantiate(test_case.model_dump_json())
        logger.info("Review agent instantiated", extra={"response_id": result.response_id})

        self._previous_response_id = result.response_id
        self._state = align_to_baseline(TestScriptState.from_test_case(test_case), result.state)
        self._store.ensure_run_folder()
        return self._state.to_json()

    def seed(self, state: TestScriptState, *, previous_response_id: str | None = None) -> None:
        """Install a baseline without calling the review service."""

        self._state = state
        self._previous_response_id = previous_response_id
        self._store.ensure_run_folder()

    def enqueue(self, screenshot: bytes, context: str | None = None) -> asyncio.Future[str]:
        """Queue a screenshot for review.

        Must be called from a running event loop. The returned future resolves once this
        job has been processed; a failed job rejects only its own future.
        """

        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._jobs.append(ReviewJob(screenshot=screenshot, context=context, future=future))
        logger.debug("Review job enqueued", extra={"queued": len(self._jobs)})

        if not self._draining:
            self._draining = True
            self._drain_task = asyncio.create_task(self._drain())
        return future

    def submit(
        self,
        screenshot: bytes,
        notifier: Notifier,
        *,
        context: str | None = None,
        label: str = "checkpoint",
    ) -> asyncio.Future[str]:
        """Enqueue and route the outcome to ``notifier`` instead of the caller."""

        future = self.enqueue(screenshot, context)

        def _route(done: asyncio.Future[str]) -> None:
            if done.cancelled():
                return
            error = done.exception()
            if error is not None:
                logger.error("Test script review failed", extra={"checkpoint": label, "error": str(error)})
                notifier.review_error("Review processing failed.")
                return
            notifier.test_script_update(done.result())

        future.add_done_callback(_route)
        return future

    async def join(self) -> None:
        """Wait until every queued job has been processed."""

        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def _drain(self) -> None:
        logger.debug("Starting queue processing")
        try:
            while self._jobs:
                job = self._jobs.popleft()
                try:
                    result = await self._process(job)
                except asyncio.CancelledError:
                    logger.warning("Review queue cancelled", extra={"abandoned": len(self._jobs) + 1})
                    job.future.cancel()
                    while self._jobs:
                        self._jobs.popleft().future.cancel()
                    raise
                except Exception as e:
                    logger.exception("Review job failed", extra={"error": str(e)})
                    if not job.future.done():
                        job.future.set_exception(e)
                else:
                    if not job.future.done():
                        job.future.set_result(result)
        finally:
            self._draining = False
            logger.debug("Queue processing completed")

    async def _process(self, job: ReviewJob) -> str:
        if self._state is None:
            raise UIPilotError("review queue has no baseline; call instantiate() first")

        logger.debug("Reviewing screenshot", extra={"previous_response_id": self._previous_response_id})
        previous = self._state
        result = await self._service.review(
            job.screenshot,
            context=job.context,
            previous_response_id=self._previous_response_id,
        )
        if self._include_previous_response:
            self._previous_response_id = result.response_id

        candidate = align_to_baseline(previous, result.state)
        changed = steps_with_status_change(previous, candidate)

        screenshot_ref: str | None = None
        if changed:
            screenshot_ref = await asyncio.to_thread(self._store.save, job.screenshot)

        self._state = merge_screenshot_refs(previous, candidate, changed, screenshot_ref)
        logger.debug(
            "Test script state updated",
            extra={"steps": len(self._state.steps), "changed": sorted(changed)},
        )
        return self._state.to_json()
