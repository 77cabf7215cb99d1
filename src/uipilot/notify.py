"""Transport-agnostic notification channel.

The notifier numbers events and fans them out to sinks. A sink is any callable taking a
:class:`RunEvent`; wiring it to a socket, an SSE stream or a terminal is up to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from uipilot.events import ContentType, EventType, RunEvent
from uipilot.logging import get_logger

logger = get_logger(__name__)

EventSink = Callable[[RunEvent], None]


@dataclass
class MemorySink:
    """Collects events in memory."""

    events: list[RunEvent] = field(default_factory=list)

    def __call__(self, event: RunEvent) -> None:
        self.events.append(event)

    def of(self, content_type: ContentType) -> list[RunEvent]:
        """Return collected events of one content type."""

        return [e for e in self.events if e.content_type == content_type]

    def messages(self) -> list[str]:
        """Return the text of every progress message."""

        return [str(e.data) for e in self.of(ContentType.MESSAGE)]


class Notifier:
    """Fan-out event emitter bound to one run."""

    def __init__(self, run_id: str, sinks: list[EventSink] | None = None) -> None:
        self.run_id = run_id
        self._sinks: list[EventSink] = list(sinks or [])
        self._seq = 0

    def subscribe(self, sink: EventSink) -> None:
        """Register another sink."""

        self._sinks.append(sink)

    def emit(
        self,
        event_type: EventType,
        content_type: ContentType,
        data: str | dict | list | None = None,
        *,
        metadata: dict[str, str | int | float | bool | None] | None = None,
    ) -> RunEvent:
        self._seq += 1
        ev = RunEvent(
            run_id=self.run_id,
            seq=self._seq,
            event_type=event_type,
            content_type=content_type,
            data=data,
            metadata=dict(metadata or {}),
        )
        for sink in self._sinks:
            try:
                sink(ev)
            except Exception:
                # An observer must never break the run it observes.
                logger.exception("Event sink failed", extra={"seq": ev.seq, "content_type": ev.content_type.value})
        return ev

    def message(self, text: str) -> RunEvent:
        """Emit a human-readable progress message."""

        return self.emit(EventType.SYSTEM, ContentType.MESSAGE, text)

    def reasoning(self, text: str) -> RunEvent:
        return self.emit(EventType.LLM, ContentType.REASONING, text)

    def test_cases(self, test_case_json: str) -> RunEvent:
        return self.emit(EventType.SYSTEM, ContentType.TEST_CASES, test_case_json)

    def test_script_update(self, state_json: str) -> RunEvent:
        """Emit the serialized test script state after a review."""

        return self.emit(EventType.REVIEW, ContentType.TEST_SCRIPT_UPDATE, state_json)

    def review_error(self, error: str) -> RunEvent:
        return self.emit(EventType.ERROR, ContentType.REVIEW_ERROR, {"error": error})

    def passed(self) -> RunEvent:
        return self.emit(EventType.SYSTEM, ContentType.RUN_PASSED, "pass")

    def failed(self, reason: str) -> RunEvent:
        return self.emit(EventType.ERROR, ContentType.RUN_FAILED, reason)
