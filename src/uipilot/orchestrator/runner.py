"""End-to-end test run orchestration.

A run seeds the review queue with the plan, opens the target page, forwards the initial
(and post-login) checkpoints to review, opens the planner conversation and hands over to the
action loop. Progress, review updates and the final verdict reach observers through the
notifier only.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from uipilot.config import Settings
from uipilot.errors import UIPilotError
from uipilot.llm.planning import PlanningServiceClient
from uipilot.llm.responses import ResponsesClient
from uipilot.llm.review import ReviewServiceClient
from uipilot.logging import get_logger, run_context, set_step
from uipilot.loop.action_loop import ActionLoop, PlanningSession
from uipilot.loop.capture import capture_screenshot
from uipilot.models.planner import PlannerResponse
from uipilot.models.steps import TestCase, convert_test_case_to_steps
from uipilot.notify import EventSink, Notifier
from uipilot.outcome import ExecutionStatus, OutcomeChannel
from uipilot.review.queue import ReviewQueue
from uipilot.review.screenshots import ScreenshotStore
from uipilot.surface.protocol import AutomationSurface, LoginHandler
from uipilot.utils.ids import new_run_id

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginCredentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"LoginCredentials(username={self.username!r}, password='*****')"


@dataclass
class RunResult:
    """Terminal planner response plus the final assistant messages."""

    status: ExecutionStatus
    response: PlannerResponse | None = None
    messages: list[str] = field(default_factory=list)
    error: str | None = None


class TestRunner:
    """Runs one test case against one browser session."""

    __test__ = False

    def __init__(
        self,
        *,
        planner: PlanningServiceClient,
        review_queue: ReviewQueue,
        notifier: Notifier,
        settings: Settings,
        outcome: OutcomeChannel | None = None,
    ) -> None:
        self.run_id = notifier.run_id
        self.outcome = outcome or OutcomeChannel()
        self.review_queue = review_queue
        self.surface: AutomationSurface | None = None
        self.session: PlanningSession | None = None

        self._planner = planner
        self._notifier = notifier
        self._settings = settings
        self._loop = ActionLoop(planner, review_queue, notifier, settings)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        run_id: str | None = None,
        sinks: list[EventSink] | None = None,
    ) -> TestRunner:
        """Wire a runner against the OpenAI services configured in ``settings``."""

        run_id = run_id or new_run_id()
        responses = ResponsesClient(settings)
        review_queue = ReviewQueue(
            ReviewServiceClient(settings, responses),
            ScreenshotStore(root=settings.artifacts_dir, run_folder=run_id),
            include_previous_response=settings.review_include_previous_response,
        )
        return cls(
            planner=PlanningServiceClient(settings, responses),
            review_queue=review_queue,
            notifier=Notifier(run_id, sinks),
            settings=settings,
        )

    async def start(
        self,
        surface: AutomationSurface,
        test_case: TestCase,
        url: str,
        *,
        user_info: str = "",
        credentials: LoginCredentials | None = None,
        login_handler: LoginHandler | None = None,
    ) -> RunResult:
        """Execute a test case from a fresh page."""

        with run_context(run_id=self.run_id, step="init"):
            logger.info("Starting test script execution", extra={"url": url, "login": credentials is not None})
            try:
                await self._prepare(surface, test_case, url, credentials=credentials, login_handler=login_handler)
                set_step("setup")
                response = await self._planner.setup(convert_test_case_to_steps(test_case), user_info)
                logger.info("Planner setup completed", extra={"response_id": response.id})
                self.session = PlanningSession(response=response)
                final = await self._loop.run(surface, self.session, self.outcome)
            except Exception as e:
                return self._fail(e)
            return self._finish(final)

    async def resume(self, text: str) -> RunResult:
        """Resume a stopped run with an operator message."""

        if self.surface is None or self.session is None:
            raise UIPilotError("no run to resume")

        with run_context(run_id=self.run_id, step="resume"):
            if self.outcome.is_terminal:
                logger.warning("Run already settled; ignoring operator message", extra={"status": self.outcome.status.value})
                return RunResult(status=self.outcome.status, response=self.session.response)
            logger.debug("Handling operator message", extra={"message_len": len(text)})
            try:
                screenshot = await capture_screenshot(
                    self.surface,
                    retries=self._settings.screenshot_retries,
                    backoff_s=self._settings.screenshot_retry_backoff_s,
                )
                self.session.response = await self._planner.send_screenshot(
                    screenshot,
                    previous_response_id=self.session.response_id,
                    call_id=self.session.last_call_id,
                    text=text,
                )
                final = await self._loop.run(self.surface, self.session, self.outcome)
            except Exception as e:
                return self._fail(e)
            return self._finish(final)

    def abort(self, reason: str = "aborted by operator") -> bool:
        """Fail the run from outside; the loop stops at its next iteration."""

        if not self.outcome.mark_failed(reason, writer="operator"):
            return False
        self._notifier.message(f"Test case aborted: {reason}")
        self._notifier.failed(reason)
        return True

    async def wait_for_reviews(self) -> None:
        await self.review_queue.join()

    def snapshot(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.outcome.status.value,
            "response_id": self.session.response_id if self.session else None,
            "last_call_id": self.session.last_call_id if self.session else None,
            "loop_iterations": self._loop.iterations,
            "reviews_pending": self.review_queue.pending,
        }

    async def _prepare(
        self,
        surface: AutomationSurface,
        test_case: TestCase,
        url: str,
        *,
        credentials: LoginCredentials | None,
        login_handler: LoginHandler | None,
    ) -> None:
        set_step("review:init")
        await self.review_queue.instantiate(test_case)
        self._notifier.message("Test script review agent initialized.")
        self._notifier.test_cases(test_case.model_dump_json())
        self._notifier.message("Task steps created.")

        set_step("browser")
        self._notifier.message("Starting test script execution...")
        self.surface = surface
        await surface.set_viewport(self._settings.display_width, self._settings.display_height)
        await surface.navigate(url)
        logger.debug("Navigated", extra={"url": url})
        await asyncio.sleep(self._settings.initial_load_wait_s)

        initial = await self._capture(surface)
        future = self.review_queue.submit(initial, self._notifier, label="initial")
        if self._settings.await_initial_review:
            # Outcome is routed to the notifier either way.
            await asyncio.wait({future})

        if credentials is None:
            return
        if login_handler is None:
            raise UIPilotError("credentials given without a login handler")

        logger.info("Processing login requirement")
        self._notifier.message("Login required... proceeding with login.")
        await login_handler.fill_credentials(surface, credentials.username, credentials.password)
        await asyncio.sleep(self._settings.login_wait_s)
        self.review_queue.submit(await self._capture(surface), self._notifier, label="post-login")
        await login_handler.submit(surface)
        self._notifier.message("Login step executed... proceeding with test script execution.")

    async def _capture(self, surface: AutomationSurface) -> bytes:
        return await capture_screenshot(
            surface,
            retries=self._settings.screenshot_retries,
            backoff_s=self._settings.screenshot_retry_backoff_s,
        )

    def _finish(self, final: PlannerResponse) -> RunResult:
        messages = final.output_texts()
        for text in messages:
            self._notifier.message(text)
        logger.info("Action loop finished", extra={"status": self.outcome.status.value})
        return RunResult(status=self.outcome.status, response=final, messages=messages)

    def _fail(self, error: Exception) -> RunResult:
        logger.exception("Test script execution failed", extra={"error_type": type(error).__name__})
        reason = f"{type(error).__name__}: {error}"
        if self.outcome.mark_failed(reason, writer="runner"):
            self._notifier.failed(reason)
        self._notifier.message("Test script execution failed. Please check the logs.")
        return RunResult(
            status=self.outcome.status,
            response=self.session.response if self.session else None,
            error=reason,
        )
