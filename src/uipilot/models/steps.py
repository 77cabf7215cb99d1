"""Test plan and test script state models.

`TestCase` is the externally generated plan (what to do). `TestScriptState` is the live review
view of that plan (what has been verified so far) and is owned by the review queue.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator


class StepStatus(str, Enum):
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"


class TestCaseStep(BaseModel):
    """One instruction of a generated test plan."""

    __test__: ClassVar[bool] = False

    step_number: int
    step_instructions: str
    status: str | None = None


class TestCase(BaseModel):
    """A generated test plan."""

    __test__: ClassVar[bool] = False

    steps: list[TestCaseStep]


class TestStepState(BaseModel):
    """Review status of a single plan step."""

    __test__: ClassVar[bool] = False

    step_number: int
    status: StepStatus = StepStatus.PENDING
    step_reasoning: str = ""
    image_path: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        # The review service answers "Pass" / "Fail"; plans may carry null.
        if value is None:
            return StepStatus.PENDING
        if isinstance(value, str):
            return value.strip().lower()
        return value


class TestScriptState(BaseModel):
    """Ordered step states of one test run."""

    __test__: ClassVar[bool] = False

    steps: list[TestStepState] = Field(default_factory=list)

    def step_numbers(self) -> list[int]:
        return [s.step_number for s in self.steps]

    def get(self, step_number: int) -> TestStepState | None:
        for step in self.steps:
            if step.step_number == step_number:
                return step
        return None

    def to_json(self) -> str:
        """Serialize the state the way observers receive it."""

        return self.model_dump_json(exclude_none=True)

    @classmethod
    def from_test_case(cls, test_case: TestCase) -> TestScriptState:
        """Build an all-pending baseline from a plan."""

        return cls(
            steps=[
                TestStepState(step_number=s.step_number, status=s.status, step_reasoning="")
                for s in test_case.steps
            ]
        )


def convert_test_case_to_steps(test_case: TestCase) -> str:
    """Render a plan as the newline-delimited script given to the planner."""

    return "\n".join(f"Step {s.step_number}: {s.step_instructions}" for s in test_case.steps)
