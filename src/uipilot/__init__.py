"""uipilot: planner-driven UI test execution with sequential screenshot review."""

from __future__ import annotations

__version__ = "0.1.0"
