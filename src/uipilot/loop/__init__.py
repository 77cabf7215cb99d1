"""Action execution loop."""

from __future__ import annotations

from uipilot.loop.action_loop import ActionLoop, PlanningSession
from uipilot.loop.capture import capture_screenshot

__all__ = ["ActionLoop", "PlanningSession", "capture_screenshot"]
