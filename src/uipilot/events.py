"""Event model used for progress notifications.

A test run produces a sequence of events: human-readable progress messages, the serialized test
script state after every review, and a terminal pass/fail signal. Observers subscribe to them
through :class:`uipilot.notify.Notifier`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """High-level event categories."""

    SYSTEM = "system"
    LLM = "llm"
    REVIEW = "review"
    ERROR = "error"


class ContentType(str, Enum):
    """Semantic types within event streams."""

    MESSAGE = "message"
    REASONING = "reasoning"

    # Plan
    TEST_CASES = "test_cases"
    TEST_SCRIPT_UPDATE = "test_script_update"
    REVIEW_ERROR = "review_error"

    # Terminal
    RUN_PASSED = "run_passed"
    RUN_FAILED = "run_failed"


class RunEvent(BaseModel):
    """A single event in a run."""

    run_id: str
    seq: int = Field(ge=1)
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC))

    event_type: EventType
    content_type: ContentType

    data: str | dict | list | None = None
    metadata: dict[str, str | int | float | bool | None] = Field(default_factory=dict)
