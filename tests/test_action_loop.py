"""Tests for the action execution loop."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest
from fakes import (
    FakePlanner,
    FakeReviewService,
    FakeSurface,
    computer_call,
    fast_settings,
    function_call,
    message,
    reasoning,
    response,
    script_state,
)

from uipilot.errors import LoopBudgetExceeded, ScreenshotCaptureError, TabDepthExceeded
from uipilot.events import ContentType
from uipilot.loop.action_loop import ActionLoop, PlanningSession
from uipilot.models.planner import PlannerResponse
from uipilot.notify import MemorySink, Notifier
from uipilot.outcome import ExecutionStatus, OutcomeChannel
from uipilot.review.queue import ReviewQueue
from uipilot.review.screenshots import ScreenshotStore


class Harness:
    def __init__(self, tmp_path: Path, planner: FakePlanner, review: FakeReviewService | None = None, **overrides) -> None:
        self.settings = fast_settings(tmp_path, **overrides)
        self.planner = planner
        self.review = review or FakeReviewService(script_state("pending", "pending"))
        self.queue = ReviewQueue(self.review, ScreenshotStore(root=tmp_path, run_folder="run"))
        self.queue.seed(script_state("pending", "pending"), previous_response_id="rev_0")
        self.sink = MemorySink()
        self.notifier = Notifier("run", [self.sink])
        self.outcome = OutcomeChannel()
        self.loop = ActionLoop(planner, self.queue, self.notifier, self.settings)

    def run(self, surface: FakeSurface, first):
        session = PlanningSession(response=first)

        async def scenario():
            final = await self.loop.run(surface, session, self.outcome)
            await self.queue.join()
            return final

        return asyncio.run(scenario()), session


def test_mark_done_completes_run_and_closes_surface(tmp_path: Path) -> None:
    """It should acknowledge mark_done, pass the run and release the surface."""

    planner = FakePlanner(response("r2", message("All steps done")))
    h = Harness(tmp_path, planner)
    surface = FakeSurface()

    final, _ = h.run(surface, response("r1", function_call("fc_1")))

    assert final.id == "r2"
    assert h.outcome.status is ExecutionStatus.PASS
    assert surface.closed
    method, kwargs = planner.calls[0]
    assert method == "send_function_result"
    assert kwargs == {"call_id": "fc_1", "previous_response_id": "r1", "result": {"status": "done"}}
    assert "✅ Test case finished." in h.sink.messages()
    assert len(h.sink.of(ContentType.RUN_PASSED)) == 1


def test_action_results_are_fed_back_bound_to_call_id(tmp_path: Path) -> None:
    """It should execute each action and send the post-action screenshot as its output."""

    planner = FakePlanner(
        response("r2", computer_call("c2", "type", text="hello")),
        response("r3", function_call("fc")),
        response("r4"),
    )
    h = Harness(tmp_path, planner)
    surface = FakeSurface()

    _, session = h.run(surface, response("r1", computer_call("c1", "scroll", scroll_y=300)))

    assert [a.type for a in surface.executed] == ["scroll", "type"]
    assert surface.executed[1].text == "hello"
    shots = [kw for m, kw in planner.calls if m == "send_screenshot"]
    assert [(kw["previous_response_id"], kw["call_id"]) for kw in shots] == [("r1", "c1"), ("r2", "c2")]
    assert all(kw["screenshot"].startswith(b"png:main") for kw in shots)
    assert session.last_call_id == "c2"
    assert session.response_id == "r4"


def test_safety_check_never_executes_action(tmp_path: Path) -> None:
    """It should fail the run without touching the surface when a safety check is pending."""

    planner = FakePlanner()
    h = Harness(tmp_path, planner)
    surface = FakeSurface()
    first = response(
        "r1",
        computer_call("c1", safety=[{"id": "sc1", "code": "malicious_instructions", "message": "Suspicious page"}]),
    )

    final, _ = h.run(surface, first)

    assert final.id == "r1"
    assert surface.executed == []
    assert planner.calls == []
    assert h.outcome.status is ExecutionStatus.FAIL
    assert "Safety check detected: Suspicious page" in h.sink.messages()
    assert len(h.sink.of(ContentType.RUN_FAILED)) == 1


@pytest.mark.parametrize("status", ["pass", "fail"])
def test_settled_outcome_returns_without_any_calls(tmp_path: Path, status: str) -> None:
    """It should return the current response once the outcome is terminal."""

    planner = FakePlanner()
    h = Harness(tmp_path, planner)
    if status == "pass":
        h.outcome.mark_passed(writer="operator")
    else:
        h.outcome.mark_failed("aborted", writer="operator")
    surface = FakeSurface()
    first = response("r1", computer_call("c1"), function_call("fc"))

    final, _ = h.run(surface, first)

    assert final is first
    assert planner.calls == []
    assert surface.executed == []
    assert surface.screenshot_calls == 0


def test_external_abort_stops_loop_at_next_iteration(tmp_path: Path) -> None:
    """It should observe an abort written while an action was executing."""

    planner = FakePlanner(response("r2", computer_call("c2", "click", x=1, y=1)))
    h = Harness(tmp_path, planner)
    surface = FakeSurface()
    surface.on_execute = lambda _action: h.outcome.mark_failed("operator abort", writer="operator")

    final, _ = h.run(surface, response("r1", computer_call("c1", "scroll")))

    assert final.id == "r2"
    assert len(surface.executed) == 1


def test_message_without_call_id_continues_conversation(tmp_path: Path) -> None:
    """It should answer a bare message with 'continue' on the current conversation."""

    planner = FakePlanner(response("r2"))
    h = Harness(tmp_path, planner)

    final, _ = h.run(FakeSurface(), response("r1", message("Should I proceed?")))

    assert final.id == "r2"
    assert planner.calls == [("send_text", {"text": "continue", "previous_response_id": "r1"})]


def test_output_without_actions_or_messages_is_returned(tmp_path: Path) -> None:
    """It should return a response that only carries reasoning."""

    planner = FakePlanner()
    h = Harness(tmp_path, planner)
    first = response("r1", reasoning("thinking"))

    final, _ = h.run(FakeSurface(), first)

    assert final is first
    assert h.outcome.status is ExecutionStatus.PENDING


def test_click_checkpoint_is_reviewed_without_blocking(tmp_path: Path) -> None:
    """It should capture before clicking and publish the review on the side channel."""

    review = FakeReviewService(script_state("pending", "pending"), script_state("pass", "pending"), delays=[0.05])
    planner = FakePlanner(response("r2", function_call("fc")), response("r3"))
    h = Harness(tmp_path, planner, review)
    surface = FakeSurface()

    h.run(surface, response("r1", reasoning("Click login"), computer_call("c1", "click", x=10, y=20)))

    reviews = [c for c in review.calls if c["method"] == "review"]
    assert reviews[0]["screenshot"] == b"png:main:1"
    # The post-action screenshot is taken after the checkpoint one.
    send = [kw for m, kw in planner.calls if m == "send_screenshot"][0]
    assert send["screenshot"] == b"png:main:2"
    updates = h.sink.of(ContentType.TEST_SCRIPT_UPDATE)
    assert json.loads(updates[0].data)["steps"][0]["status"] == "pass"
    assert [e.data for e in h.sink.of(ContentType.REASONING)] == ["Click login"]


def test_non_click_actions_are_not_checkpoints(tmp_path: Path) -> None:
    planner = FakePlanner(response("r2"))
    h = Harness(tmp_path, planner)

    h.run(FakeSurface(), response("r1", computer_call("c1", "keypress", keys=["ENTER"])))

    assert [c for c in h.review.calls if c["method"] == "review"] == []


def test_review_failure_does_not_affect_loop(tmp_path: Path) -> None:
    """It should report a failed checkpoint review and keep going."""

    review = FakeReviewService(script_state("pending", "pending"), RuntimeError("review down"))
    planner = FakePlanner(response("r2", function_call("fc")), response("r3"))
    h = Harness(tmp_path, planner, review)

    h.run(FakeSurface(), response("r1", computer_call("c1", "click")))

    assert h.outcome.status is ExecutionStatus.PASS
    assert h.sink.of(ContentType.REVIEW_ERROR)


def test_new_tab_switches_context_once(tmp_path: Path) -> None:
    """It should continue on the newest tab and switch only once even with three tabs open."""

    planner = FakePlanner(
        response("r2", computer_call("c2", "click")),
        response("r3", computer_call("c3", "scroll")),
        response("r4", function_call("fc")),
        response("r5"),
    )
    h = Harness(tmp_path, planner)
    main = FakeSurface("main")

    def open_two_tabs(_action) -> None:
        if len(main.browser.tabs) == 1:
            main.browser.open_tab("popup")
            main.browser.open_tab("newest", viewport=(1280, 720))

    main.on_execute = open_two_tabs

    h.run(main, response("r1", computer_call("c1", "click")))

    newest = main.browser.tabs[2]
    assert [a.type for a in main.executed] == ["click"]
    assert [a.type for a in newest.executed] == ["click", "scroll"]
    assert main.browser.tabs[1].executed == []
    assert asyncio.run(newest.viewport()) == (1024, 768)

    shots = [kw for m, kw in planner.calls if m == "send_screenshot"]
    # The switch sends the new tab's screenshot bound to the action that opened it.
    assert shots[0]["call_id"] == "c1"
    assert shots[0]["screenshot"].startswith(b"png:newest")
    assert newest.closed and main.closed


def test_tab_opened_from_switched_tab_exceeds_depth(tmp_path: Path) -> None:
    """It should treat a switch beyond the configured depth as fatal."""

    planner = FakePlanner(response("r2", computer_call("c2", "click")))
    h = Harness(tmp_path, planner)
    main = FakeSurface("main")

    def open_child(_action) -> None:
        child = main.browser.open_tab("child")
        child.on_execute = lambda _a: main.browser.open_tab("grandchild")

    main.on_execute = open_child

    with pytest.raises(TabDepthExceeded):
        h.run(main, response("r1", computer_call("c1", "click")))


def test_deeper_switch_allowed_when_configured(tmp_path: Path) -> None:
    planner = FakePlanner(
        response("r2", computer_call("c2", "click")),
        response("r3", function_call("fc")),
        response("r4"),
    )
    h = Harness(tmp_path, planner, max_tab_depth=2)
    main = FakeSurface("main")

    def open_child(_action) -> None:
        child = main.browser.open_tab("child")
        child.on_execute = lambda _a: main.browser.open_tab("grandchild")

    main.on_execute = open_child

    h.run(main, response("r1", computer_call("c1", "click")))

    assert h.outcome.status is ExecutionStatus.PASS
    assert len(main.browser.tabs) == 3


def test_iteration_budget_bounds_endless_conversation(tmp_path: Path) -> None:
    """It should stop a planner that keeps talking without acting."""

    chatter = [response(f"r{i}", message("still thinking")) for i in range(2, 20)]
    planner = FakePlanner(*chatter)
    h = Harness(tmp_path, planner, loop_max_iterations=5)

    with pytest.raises(LoopBudgetExceeded):
        h.run(FakeSurface(), response("r1", message("hello")))

    assert len(planner.calls) == 5


def test_post_action_screenshot_failure_is_fatal(tmp_path: Path) -> None:
    planner = FakePlanner()
    h = Harness(tmp_path, planner)
    surface = FakeSurface(screenshot_failures=10)

    with pytest.raises(ScreenshotCaptureError):
        h.run(surface, response("r1", computer_call("c1", "scroll")))

    assert surface.screenshot_calls == 3


def test_malformed_output_continues_conversation(tmp_path: Path) -> None:
    """It should ask the planner to continue when every output item was malformed."""

    planner = FakePlanner(response("r2", function_call("fc")))
    h = Harness(tmp_path, planner)
    surface = FakeSurface()
    first = PlannerResponse.from_api(
        {"id": "r1", "output": [{"type": "computer_call", "call_id": "c1", "action": {"type": "hover"}}]}
    )

    h.run(surface, first)

    assert planner.calls[0] == ("send_text", {"text": "continue", "previous_response_id": "r1"})
    assert surface.executed == []
    assert h.outcome.status is ExecutionStatus.PASS


def test_debug_logging_of_messages_and_safety_checks(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """It should log planner messages and safety checks with DEBUG enabled."""

    caplog.set_level(logging.DEBUG)
    planner = FakePlanner(
        response("r2", computer_call("c2", safety=[{"id": "sc", "code": "irrelevant_domain", "message": "Off-site"}])),
    )
    h = Harness(tmp_path, planner)

    h.run(FakeSurface(), response("r1", message("Looking at the page")))

    assert h.outcome.status is ExecutionStatus.FAIL
    planner_message = next(r for r in caplog.records if r.getMessage() == "Planner message")
    assert planner_message.text == "Looking at the page"
    safety = next(r for r in caplog.records if r.getMessage() == "Safety check detected")
    assert safety.safety_message == "Off-site"
