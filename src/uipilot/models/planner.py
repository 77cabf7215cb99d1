"""Planner output models.

The planning service returns an ordered, heterogeneous output list. Every item is validated
into one member of the closed :data:`PlannerItem` union at the service boundary, so the action
loop never inspects raw dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from uipilot.errors import PlannerOutputError
from uipilot.logging import get_logger

logger = get_logger(__name__)

ActionType = Literal[
    "click",
    "double_click",
    "type",
    "keypress",
    "scroll",
    "drag",
    "move",
    "wait",
    "screenshot",
    "navigate",
]

CLICK_ACTIONS: frozenset[str] = frozenset({"click", "double_click"})


class ComputerAction(BaseModel):
    """A structured browser action proposed by the planner."""

    model_config = ConfigDict(extra="allow")

    type: ActionType
    x: int | None = None
    y: int | None = None
    button: str | None = None
    text: str | None = None
    keys: list[str] | None = None
    scroll_x: int | None = None
    scroll_y: int | None = None
    path: list[dict[str, int]] | None = None
    url: str | None = None
    ms: int | None = None

    @property
    def is_click(self) -> bool:
        return self.type in CLICK_ACTIONS


class SafetyCheck(BaseModel):
    id: str | None = None
    code: str | None = None
    message: str = ""


class PointerAction(BaseModel):
    """A computer call: one browser action bound to a call id."""

    type: Literal["computer_call"] = "computer_call"
    call_id: str
    action: ComputerAction
    pending_safety_checks: list[SafetyCheck] = Field(default_factory=list)


class FunctionCall(BaseModel):
    type: Literal["function_call"] = "function_call"
    name: str
    call_id: str
    arguments: str = "{}"


class Message(BaseModel):
    """Assistant text. ``call_id`` is only present when the planner bound it to an action."""

    type: Literal["message"] = "message"
    text: str = ""
    call_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_content(cls, data: Any) -> Any:
        if isinstance(data, dict) and "text" not in data and isinstance(data.get("content"), list):
            texts = [
                c.get("text", "")
                for c in data["content"]
                if isinstance(c, dict) and c.get("type") == "output_text"
            ]
            data = {**data, "text": "\n".join(t for t in texts if t)}
        return data


class Reasoning(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    summary: str = ""

    @model_validator(mode="before")
    @classmethod
    def _flatten_summary(cls, data: Any) -> Any:
        if isinstance(data, dict):
            summary = data.get("summary")
            if isinstance(summary, list):
                parts = [s.get("text", "") for s in summary if isinstance(s, dict)]
                data = {**data, "summary": " ".join(p for p in parts if p) or "No reasoning provided"}
            elif summary is None:
                data = {**data, "summary": "No reasoning provided"}
        return data


PlannerItem = Annotated[
    Union[PointerAction, FunctionCall, Message, Reasoning],
    Field(discriminator="type"),
]

_KNOWN_TYPES = frozenset({"computer_call", "function_call", "message", "reasoning"})
_item_adapter: TypeAdapter[PlannerItem] = TypeAdapter(PlannerItem)


class PlannerResponse(BaseModel):
    """One planning service turn."""

    id: str
    output: list[PlannerItem] = Field(default_factory=list)
    # Output items that were malformed and dropped during validation.
    dropped: int = 0

    @classmethod
    def from_api(cls, raw: Any) -> PlannerResponse:
        """Validate a raw Responses API object or dict.

        Output items of unknown type, or of a known type but unexpected shape, are logged and
        dropped. Malformed items are counted in :attr:`dropped`.

        Raises:
            PlannerOutputError: If the response carries no id to continue from.
        """

        data = raw.model_dump() if hasattr(raw, "model_dump") else dict(raw)
        if not data.get("id"):
            raise PlannerOutputError("planner response has no id")

        items: list[PlannerItem] = []
        dropped = 0
        for item in data.get("output") or []:
            item_type = item.get("type") if isinstance(item, dict) else None
            if item_type not in _KNOWN_TYPES:
                logger.warning("Dropping unsupported planner output item", extra={"item_type": item_type})
                continue
            try:
                items.append(_item_adapter.validate_python(item))
            except ValidationError as e:
                dropped += 1
                logger.warning(
                    "Dropping malformed planner output item",
                    extra={"item_type": item_type, "errors": e.error_count()},
                )
        return cls(id=data["id"], output=items, dropped=dropped)

    def output_texts(self) -> list[str]:
        """Return the text of every message item, in order."""

        return [item.text for item in self.output if isinstance(item, Message) and item.text]


@dataclass
class ClassifiedOutput:
    """Planner output grouped by item kind, order preserved within each group."""

    pointer_calls: list[PointerAction] = field(default_factory=list)
    function_calls: list[FunctionCall] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    reasoning: list[Reasoning] = field(default_factory=list)


def classify_output(items: list[PlannerItem]) -> ClassifiedOutput:
    """Group output items by kind.

    Raises:
        TypeError: If an item is not a member of :data:`PlannerItem`.
    """

    out = ClassifiedOutput()
    for item in items:
        if isinstance(item, PointerAction):
            out.pointer_calls.append(item)
        elif isinstance(item, FunctionCall):
            out.function_calls.append(item)
        elif isinstance(item, Message):
            out.messages.append(item)
        elif isinstance(item, Reasoning):
            out.reasoning.append(item)
        else:
            raise TypeError(f"unhandled planner output item: {type(item).__name__}")
    return out
