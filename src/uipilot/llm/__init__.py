"""Service adapters for the planning and review models."""

from __future__ import annotations

from uipilot.llm.planning import PlanningServiceClient
from uipilot.llm.responses import ResponsesClient
from uipilot.llm.review import ReviewResult, ReviewServiceClient

__all__ = ["PlanningServiceClient", "ResponsesClient", "ReviewResult", "ReviewServiceClient"]
