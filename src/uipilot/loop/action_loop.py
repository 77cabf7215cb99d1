"""Action execution loop.

The loop alternates between the planning model and the browser: it executes the action the
planner proposes, sends the resulting screenshot back as the call's output, and repeats until
the planner calls ``mark_done``, proposes something unsafe, stops proposing actions, or the
run's outcome is settled from outside.

Click actions are checkpoints: the page is captured before the click and handed to the review
queue without waiting for the review.

When an action opens a new tab the loop continues on that tab. Tab contexts are kept on an
explicit frame stack capped at ``Settings.max_tab_depth`` nested switches.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from uipilot.config import Settings
from uipilot.errors import LoopBudgetExceeded, TabDepthExceeded
from uipilot.llm.planning import MARK_DONE, PlanningServiceClient
from uipilot.logging import get_logger, set_step
from uipilot.loop.capture import capture_screenshot
from uipilot.models.planner import FunctionCall, Message, PlannerResponse, PointerAction, classify_output
from uipilot.notify import Notifier
from uipilot.outcome import OutcomeChannel
from uipilot.review.queue import ReviewQueue
from uipilot.surface.protocol import AutomationSurface

logger = get_logger(__name__)


@dataclass
class PlanningSession:
    """Planner conversation threaded through the loop."""

    response: PlannerResponse
    last_call_id: str | None = None

    @property
    def response_id(self) -> str:
        return self.response.id


@dataclass
class _Frame:
    surface: AutomationSurface
    depth: int
    # Tab count this frame started with; more tabs than this means a new one opened.
    tab_baseline: int


class ActionLoop:
    """Drives one planner conversation against a browser surface."""

    def __init__(
        self,
        planner: PlanningServiceClient,
        review_queue: ReviewQueue,
        notifier: Notifier,
        settings: Settings,
    ) -> None:
        self._planner = planner
        self._review_queue = review_queue
        self._notifier = notifier
        self._settings = settings

        self._iterations = 0
        self._started_at = 0.0
        self._pending_reviews: set[asyncio.Future[str]] = set()

    @property
    def iterations(self) -> int:
        return self._iterations

    async def run(
        self,
        surface: AutomationSurface,
        session: PlanningSession,
        outcome: OutcomeChannel,
    ) -> PlannerResponse:
        """Run until a terminal condition and return the last planner response.

        ``session`` is updated in place, so after return it holds the latest continuation id
        and call id.

        Raises:
            LoopBudgetExceeded: The iteration or wall-clock budget ran out.
            TabDepthExceeded: Tabs kept opening past the allowed nesting.
            ServiceCallError: A planner call failed after its fallback retry.
            ScreenshotCaptureError: A post-action screenshot could not be captured.
        """

        logger.debug("Starting action loop", extra={"response_id": session.response_id})
        self._iterations = 0
        self._started_at = time.monotonic()

        stack: list[_Frame] = [_Frame(surface=surface, depth=0, tab_baseline=1)]
        while True:
            result = await self._run_frame(stack, session, outcome)
            if isinstance(result, _Frame):
                stack.append(result)
                logger.info("Continuing on new tab", extra={"depth": result.depth})
                continue
            return result

    async def _run_frame(
        self,
        stack: list[_Frame],
        session: PlanningSession,
        outcome: OutcomeChannel,
    ) -> PlannerResponse | _Frame:
        frame = stack[-1]
        while True:
            if outcome.is_terminal:
                logger.info("Outcome settled - exiting action loop", extra={"status": outcome.status.value})
                return session.response

            self._check_budget()
            set_step(f"loop:{self._iterations}")

            output = classify_output(session.response.output)

            done = _find_function(output.function_calls, MARK_DONE)
            if done is not None:
                return await self._complete(stack, session, done, outcome)
            for call in output.function_calls:
                logger.warning("Ignoring unsupported function call", extra={"function": call.name})

            if not output.pointer_calls:
                if not output.messages and session.response.dropped:
                    logger.warning(
                        "Planner output unusable - continuing conversation",
                        extra={"dropped": session.response.dropped},
                    )
                    session.response = await self._planner.send_text(
                        "continue", previous_response_id=session.response_id
                    )
                    continue
                if not output.messages:
                    logger.debug("Response is neither computer call nor message - returning response")
                    return session.response
                await self._continue_after_message(frame, session, output.messages[0])
                continue

            # At most one computer call per response is expected.
            call = output.pointer_calls[0]
            for item in output.reasoning:
                self._notifier.reasoning(item.summary)
                logger.debug("Model reasoning", extra={"summary": item.summary})

            if call.pending_safety_checks:
                return self._fail_on_safety_check(session, call, outcome)

            session.last_call_id = call.call_id
            logger.debug("Processing computer action", extra={"action": call.action.type, "call_id": call.call_id})

            if call.action.is_click:
                await self._checkpoint(frame.surface)

            await frame.surface.execute(call.action)
            await asyncio.sleep(self._settings.action_settle_s)

            child = await self._detect_new_tab(frame, session)
            if child is not None:
                return child

            screenshot = await capture_screenshot(
                frame.surface,
                retries=self._settings.screenshot_retries,
                backoff_s=self._settings.screenshot_retry_backoff_s,
            )
            session.response = await self._planner.send_screenshot(
                screenshot,
                previous_response_id=session.response_id,
                call_id=call.call_id,
            )

    def _check_budget(self) -> None:
        self._iterations += 1
        max_iterations = self._settings.loop_max_iterations
        if max_iterations and self._iterations > max_iterations:
            raise LoopBudgetExceeded(f"action loop exceeded {max_iterations} iterations")

        timeout_s = self._settings.loop_timeout_s
        if timeout_s and time.monotonic() - self._started_at > timeout_s:
            raise LoopBudgetExceeded(f"action loop exceeded {timeout_s:.0f}s")

    async def _complete(
        self,
        stack: list[_Frame],
        session: PlanningSession,
        call: FunctionCall,
        outcome: OutcomeChannel,
    ) -> PlannerResponse:
        logger.info("Processing mark_done function call")
        session.response = await self._planner.send_function_result(
            call.call_id,
            previous_response_id=session.response_id,
            result={"status": "done"},
        )
        self._notifier.message("✅ Test case finished.")
        if outcome.mark_passed():
            self._notifier.passed()

        for frame in reversed(stack):
            await frame.surface.close()
        return session.response

    def _fail_on_safety_check(
        self,
        session: PlanningSession,
        call: PointerAction,
        outcome: OutcomeChannel,
    ) -> PlannerResponse:
        check = call.pending_safety_checks[0]
        logger.error("Safety check detected", extra={"code": check.code, "safety_message": check.message})
        self._notifier.message(f"Safety check detected: {check.message}")
        self._notifier.message("Test case failed. Exiting the computer use loop.")
        reason = f"safety check: {check.code or check.message}"
        if outcome.mark_failed(reason):
            self._notifier.failed(reason)
        return session.response

    async def _continue_after_message(self, frame: _Frame, session: PlanningSession, message: Message) -> None:
        logger.debug("Planner message", extra={"text": message.text[:500]})
        if message.call_id is None:
            logger.warning("No call id found in planner message - continuing conversation")
            session.response = await self._planner.send_text("continue", previous_response_id=session.response_id)
            return

        screenshot = await capture_screenshot(
            frame.surface,
            retries=self._settings.screenshot_retries,
            backoff_s=self._settings.screenshot_retry_backoff_s,
        )
        session.response = await self._planner.send_screenshot(
            screenshot,
            previous_response_id=session.response_id,
            call_id=message.call_id,
            text="continue",
        )

    async def _checkpoint(self, surface: AutomationSurface) -> None:
        """Hand a pre-click screenshot to the review queue without waiting for it."""

        try:
            screenshot = await surface.screenshot()
        except Exception as e:
            logger.warning("Checkpoint screenshot failed", extra={"error": str(e)})
            self._notifier.review_error("Review processing failed.")
            return

        logger.debug("Sending screenshot to test script review")
        future = self._review_queue.submit(screenshot, self._notifier, label="click")
        self._pending_reviews.add(future)
        future.add_done_callback(self._pending_reviews.discard)

    async def _detect_new_tab(self, frame: _Frame, session: PlanningSession) -> _Frame | None:
        tabs = await frame.surface.list_tabs()
        if len(tabs) <= frame.tab_baseline:
            return None

        depth = frame.depth + 1
        if depth > self._settings.max_tab_depth:
            raise TabDepthExceeded(
                f"new tab opened at depth {frame.depth}; at most {self._settings.max_tab_depth} switch(es) allowed"
            )

        logger.info("New tab detected - switching context", extra={"tabs": len(tabs), "depth": depth})
        new_surface = tabs[-1]

        width, height = self._settings.display_width, self._settings.display_height
        viewport = await new_surface.viewport()
        if viewport != (width, height):
            logger.debug("Resetting viewport size", extra={"from": viewport, "to": (width, height)})
            await new_surface.set_viewport(width, height)

        screenshot = await capture_screenshot(
            new_surface,
            retries=self._settings.screenshot_retries,
            backoff_s=self._settings.screenshot_retry_backoff_s,
        )
        session.response = await self._planner.send_screenshot(
            screenshot,
            previous_response_id=session.response_id,
            call_id=session.last_call_id,
        )
        return _Frame(surface=new_surface, depth=depth, tab_baseline=len(tabs))


def _find_function(calls: list[FunctionCall], name: str) -> FunctionCall | None:
    for call in calls:
        if call.name == name:
            return call
    return None
