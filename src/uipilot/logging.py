"""Logging setup for test runs.

Records carry the run id and the current run phase (``init``, ``review:init``, ``loop:3``...)
from context variables, so log lines from the action loop and the review queue of the same run
can be told apart. Structured ``extra={...}`` fields are appended to the rendered message.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from collections.abc import Iterator

from rich.logging import RichHandler

_run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("uipilot_run_id", default="-")
_step_var: contextvars.ContextVar[str] = contextvars.ContextVar("uipilot_step", default="-")

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "run_id", "step"}

# Chatty third-party loggers used under the OpenAI SDK.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


class _RunContextFilter(logging.Filter):
    """Stamp records with the bound run id and phase."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = _run_id_var.get()  # type: ignore[attr-defined]
        record.step = _step_var.get()  # type: ignore[attr-defined]
        return True


class _StructuredFormatter(logging.Formatter):
    """Render ``extra`` fields as ``key=value`` pairs after the message."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        text = super().format(record)
        fields = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if not fields:
            return text
        return text + " | " + " ".join(f"{k}={v!r}" for k, v in sorted(fields.items()))


@contextlib.contextmanager
def run_context(*, run_id: str, step: str | None = None) -> Iterator[None]:
    """Bind a run id (and optionally a phase) for the duration of the block."""

    token_run = _run_id_var.set(run_id)
    token_step = _step_var.set(step or _step_var.get())
    try:
        yield
    finally:
        _run_id_var.reset(token_run)
        _step_var.reset(token_step)


def set_step(step: str) -> None:
    """Move the current run to another phase."""

    _step_var.set(step)


def configure_logging(level: str = "INFO") -> None:
    """Install the rich console handler on the root logger.

    Calling it again only updates the level.

    Args:
        level: Logging level name.
    """

    root = logging.getLogger()
    root.setLevel(level)

    if not any(getattr(h, "_uipilot", False) for h in root.handlers):
        handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True, show_path=False)
        handler.addFilter(_RunContextFilter())
        handler.setFormatter(_StructuredFormatter(fmt="run=%(run_id)s step=%(step)s %(name)s: %(message)s"))
        handler._uipilot = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)
