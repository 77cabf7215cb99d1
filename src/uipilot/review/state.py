"""Pure transitions of the test script state.

The review service answers with a whole step array. Its answer is aligned to the baseline plan
(the set and order of ``step_number`` values never change), then compared with the previous
state to find steps that just left ``pending`` and should get the current screenshot.
"""

from __future__ import annotations

from uipilot.logging import get_logger
from uipilot.models.steps import StepStatus, TestScriptState, TestStepState

logger = get_logger(__name__)


def align_to_baseline(baseline: TestScriptState, candidate: TestScriptState) -> TestScriptState:
    """Apply the candidate's status and reasoning onto the baseline steps.

    Steps the candidate adds are ignored; steps it drops or reorders keep their baseline
    position and values.
    """

    by_number: dict[int, TestStepState] = {}
    for step in candidate.steps:
        by_number.setdefault(step.step_number, step)

    baseline_numbers = set(baseline.step_numbers())
    extra = sorted(set(by_number) - baseline_numbers)
    missing = sorted(baseline_numbers - set(by_number))
    if extra or missing:
        logger.warning("Review output step set differs from plan", extra={"extra": extra, "missing": missing})

    steps: list[TestStepState] = []
    for step in baseline.steps:
        update = by_number.get(step.step_number)
        if update is None:
            steps.append(step.model_copy())
        else:
            steps.append(
                step.model_copy(update={"status": update.status, "step_reasoning": update.step_reasoning})
            )
    return TestScriptState(steps=steps)


def steps_with_status_change(old: TestScriptState, new: TestScriptState) -> set[int]:
    """Return step numbers whose status moved from pending to pass or fail."""

    changed: set[int] = set()
    for old_step in old.steps:
        new_step = new.get(old_step.step_number)
        if new_step is None:
            continue
        if old_step.status is StepStatus.PENDING and new_step.status is not StepStatus.PENDING:
            changed.add(old_step.step_number)

    logger.debug("Status changes detected", extra={"changed_steps": sorted(changed)})
    return changed


def merge_screenshot_refs(
    old: TestScriptState,
    new: TestScriptState,
    changed: set[int],
    screenshot_ref: str | None,
) -> TestScriptState:
    """Attach ``screenshot_ref`` to changed steps and carry every other reference forward."""

    steps: list[TestStepState] = []
    for step in new.steps:
        if step.step_number in changed and screenshot_ref:
            steps.append(step.model_copy(update={"image_path": screenshot_ref}))
            continue
        previous = old.get(step.step_number)
        if previous is not None and previous.image_path:
            steps.append(step.model_copy(update={"image_path": previous.image_path}))
        else:
            steps.append(step)
    return TestScriptState(steps=steps)
