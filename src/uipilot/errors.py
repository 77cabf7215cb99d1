"""Exception hierarchy."""

from __future__ import annotations


class UIPilotError(RuntimeError):
    """Base class for errors raised by uipilot."""


class ServiceCallError(UIPilotError):
    """A planning or review service call failed, including its fallback retry."""


class ScreenshotCaptureError(UIPilotError):
    """Screenshot capture kept failing after all retry attempts."""


class PlannerOutputError(UIPilotError):
    """The planner returned output that cannot be interpreted."""


class ReviewOutputError(UIPilotError):
    """The review service returned output that does not match the step schema."""


class TabDepthExceeded(UIPilotError):
    """More nested tab switches were requested than the loop allows."""


class LoopBudgetExceeded(UIPilotError):
    """The action loop ran past its iteration or wall-clock budget."""
