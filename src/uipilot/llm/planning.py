"""Planning service adapter (computer-use model).

Every call returns a validated :class:`PlannerResponse` whose ``id`` continues the conversation.
"""

from __future__ import annotations

import json
from typing import Any

from uipilot.config import Settings
from uipilot.llm.responses import ResponsesClient
from uipilot.logging import get_logger
from uipilot.models.planner import PlannerResponse
from uipilot.prompts import CUA_SYSTEM_PROMPT
from uipilot.utils.images import png_data_url

logger = get_logger(__name__)

MARK_DONE = "mark_done"


class PlanningServiceClient:
    """Adapter over the computer-use planning model."""

    def __init__(self, settings: Settings, responses: ResponsesClient) -> None:
        self._settings = settings
        self._responses = responses

    @property
    def tools(self) -> list[dict[str, Any]]:
        return [
            {
                "type": "computer_use_preview",
                "display_width": self._settings.display_width,
                "display_height": self._settings.display_height,
                "environment": "browser",
            },
            {
                "type": "function",
                "name": MARK_DONE,
                "description": "Use this tool to let the user know you have finished the tasks.",
                "parameters": {},
            },
        ]

    async def setup(self, instructions: str, user_info: str = "") -> PlannerResponse:
        """Open a planning conversation for a test script."""

        logger.debug(
            "Setting up planning conversation",
            extra={"instructions_len": len(instructions), "user_info_len": len(user_info)},
        )
        system_prompt = CUA_SYSTEM_PROMPT
        if self._settings.env_instructions:
            system_prompt += f"\nEnvironment specific instructions: {self._settings.env_instructions}"

        input_items: list[dict[str, Any]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": f"INSTRUCTIONS:\n{instructions}\n\nUSER INFO:\n{user_info}"},
        ]
        return await self._call(input_items, previous_response_id=None)

    async def send_screenshot(
        self,
        screenshot: bytes | None,
        *,
        previous_response_id: str | None,
        call_id: str | None = None,
        text: str | None = None,
    ) -> PlannerResponse:
        """Continue the conversation with an action result and/or free text.

        The screenshot is only sent when bound to ``call_id``.
        """

        logger.debug(
            "Sending screenshot to planner",
            extra={
                "screenshot_bytes": len(screenshot or b""),
                "has_call_id": call_id is not None,
                "has_text": text is not None,
            },
        )
        input_items: list[dict[str, Any]] = []
        if call_id is not None:
            input_items.append(
                {
                    "type": "computer_call_output",
                    "call_id": call_id,
                    "output": {
                        "type": "computer_screenshot",
                        "image_url": png_data_url(screenshot or b""),
                    },
                }
            )
        if text:
            input_items.append({"role": "user", "content": text})
        if not input_items:
            raise ValueError("send_screenshot needs a call_id or text")
        return await self._call(input_items, previous_response_id=previous_response_id)

    async def send_text(self, text: str, *, previous_response_id: str | None) -> PlannerResponse:
        return await self.send_screenshot(None, previous_response_id=previous_response_id, text=text)

    async def send_function_result(
        self,
        call_id: str,
        *,
        previous_response_id: str | None,
        result: dict[str, Any] | None = None,
    ) -> PlannerResponse:
        """Acknowledge a function call."""

        input_items = [
            {
                "type": "function_call_output",
                "call_id": call_id,
                "output": json.dumps(result or {}),
            }
        ]
        return await self._call(input_items, previous_response_id=previous_response_id)

    async def _call(
        self,
        input_items: list[dict[str, Any]],
        *,
        previous_response_id: str | None,
    ) -> PlannerResponse:
        request: dict[str, Any] = {
            "model": self._settings.planner_model,
            "tools": self.tools,
            "input": input_items,
            "reasoning": {"generate_summary": "concise"},
            "truncation": "auto",
            "tool_choice": "required",
        }
        if previous_response_id:
            request["previous_response_id"] = previous_response_id

        raw = await self._responses.create(request, operation="Planner call")
        response = PlannerResponse.from_api(raw)
        logger.debug("Planner response received", extra={"response_id": response.id, "items": len(response.output)})
        return response
