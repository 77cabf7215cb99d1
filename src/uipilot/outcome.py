"""Execution outcome shared between the action loop and its operators."""

from __future__ import annotations

from enum import Enum

from uipilot.logging import get_logger

logger = get_logger(__name__)


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"


class OutcomeChannel:
    """Outcome of one test run.

    The loop reads :attr:`status` once per iteration. Settling is one-way: the first terminal
    write wins and later terminal writes are ignored, so a run that passed cannot be failed by a
    late abort and vice versa.
    """

    def __init__(self) -> None:
        self._status = ExecutionStatus.PENDING
        self._reason: str | None = None
        self._writer: str | None = None

    @property
    def status(self) -> ExecutionStatus:
        return self._status

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def writer(self) -> str | None:
        """Name of the actor that settled the outcome."""

        return self._writer

    @property
    def is_terminal(self) -> bool:
        return self._status is not ExecutionStatus.PENDING

    def mark_passed(self, *, writer: str = "loop") -> bool:
        return self._settle(ExecutionStatus.PASS, writer=writer, reason=None)

    def mark_failed(self, reason: str, *, writer: str = "loop") -> bool:
        return self._settle(ExecutionStatus.FAIL, writer=writer, reason=reason)

    def _settle(self, status: ExecutionStatus, *, writer: str, reason: str | None) -> bool:
        if self.is_terminal:
            if status is not self._status:
                logger.warning(
                    "Ignoring outcome change after settlement",
                    extra={"current": self._status.value, "requested": status.value, "writer": writer},
                )
            return False
        self._status = status
        self._reason = reason
        self._writer = writer
        logger.info("Outcome settled", extra={"status": status.value, "writer": writer, "reason": reason})
        return True
