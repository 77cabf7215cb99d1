"""Pydantic models used across the project."""

from __future__ import annotations

from uipilot.models.planner import (
    ClassifiedOutput,
    ComputerAction,
    FunctionCall,
    Message,
    PlannerItem,
    PlannerResponse,
    PointerAction,
    Reasoning,
    SafetyCheck,
    classify_output,
)
from uipilot.models.steps import (
    StepStatus,
    TestCase,
    TestCaseStep,
    TestScriptState,
    TestStepState,
    convert_test_case_to_steps,
)

__all__ = [
    "ClassifiedOutput",
    "ComputerAction",
    "FunctionCall",
    "Message",
    "PlannerItem",
    "PlannerResponse",
    "PointerAction",
    "Reasoning",
    "SafetyCheck",
    "classify_output",
    "StepStatus",
    "TestCase",
    "TestCaseStep",
    "TestScriptState",
    "TestStepState",
    "convert_test_case_to_steps",
]
