from __future__ import annotations

from uipilot.prompts.planner import CUA_SYSTEM_PROMPT
from uipilot.prompts.review import TEST_SCRIPT_OUTPUT_SCHEMA, TEST_SCRIPT_REVIEW_PROMPT

__all__ = [
    "CUA_SYSTEM_PROMPT",
    "TEST_SCRIPT_OUTPUT_SCHEMA",
    "TEST_SCRIPT_REVIEW_PROMPT",
]
