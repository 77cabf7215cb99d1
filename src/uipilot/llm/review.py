"""Review service adapter (structured-output model).

Each call returns the full step array as JSON constrained by :data:`TEST_SCRIPT_OUTPUT_SCHEMA`;
the payload is validated into a :class:`TestScriptState` here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from uipilot.config import Settings
from uipilot.errors import ReviewOutputError
from uipilot.llm.responses import ResponsesClient
from uipilot.logging import get_logger
from uipilot.models.steps import TestScriptState
from uipilot.prompts import TEST_SCRIPT_OUTPUT_SCHEMA, TEST_SCRIPT_REVIEW_PROMPT
from uipilot.utils.images import png_data_url

logger = get_logger(__name__)

SCHEMA_NAME = "test_script_output"


@dataclass(frozen=True)
class ReviewResult:
    """One review turn."""

    response_id: str
    state: TestScriptState


class ReviewServiceClient:
    """Adapter over the screenshot review model."""

    def __init__(self, settings: Settings, responses: ResponsesClient) -> None:
        self._settings = settings
        self._responses = responses

    async def instantiate(self, instructions: str) -> ReviewResult:
        """Seed a review conversation with the test plan."""

        return await self._call(
            user_content="Instructions: " + instructions,
            previous_response_id=None,
        )

    async def review(
        self,
        screenshot: bytes,
        *,
        context: str | None = None,
        previous_response_id: str | None = None,
    ) -> ReviewResult:
        """Review a screenshot against the plan."""

        content: list[dict[str, Any]] = []
        if context:
            content.append({"type": "input_text", "text": "Context: " + context})
        content.append({"type": "input_image", "image_url": png_data_url(screenshot), "detail": "high"})
        return await self._call(user_content=content, previous_response_id=previous_response_id)

    async def _call(self, *, user_content: str | list[dict[str, Any]], previous_response_id: str | None) -> ReviewResult:
        request: dict[str, Any] = {
            "model": self._settings.review_model,
            "input": [
                {"role": "system", "content": TEST_SCRIPT_REVIEW_PROMPT},
                {"role": "user", "content": user_content},
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": SCHEMA_NAME,
                    "schema": TEST_SCRIPT_OUTPUT_SCHEMA,
                }
            },
        }
        if previous_response_id:
            request["previous_response_id"] = previous_response_id

        raw = await self._responses.create(request, operation="Test script review")
        return ReviewResult(response_id=_response_id(raw), state=parse_review_output(_output_text(raw)))


def parse_review_output(text: str) -> TestScriptState:
    """Validate the review JSON payload.

    Raises:
        ReviewOutputError: If the payload is not a valid step array.
    """

    try:
        return TestScriptState.model_validate_json(text)
    except ValidationError as e:
        raise ReviewOutputError(f"invalid review output: {e.error_count()} error(s)") from e


def _response_id(raw: Any) -> str:
    return raw["id"] if isinstance(raw, dict) else raw.id


def _output_text(raw: Any) -> str:
    text = raw.get("output_text") if isinstance(raw, dict) else getattr(raw, "output_text", None)
    if not text:
        raise ReviewOutputError("review response carried no output text")
    return text
