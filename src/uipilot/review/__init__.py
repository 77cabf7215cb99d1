"""Screenshot review pipeline."""

from __future__ import annotations

from uipilot.review.queue import ReviewJob, ReviewQueue
from uipilot.review.screenshots import ScreenshotStore
from uipilot.review.state import align_to_baseline, merge_screenshot_refs, steps_with_status_change

__all__ = [
    "ReviewJob",
    "ReviewQueue",
    "ScreenshotStore",
    "align_to_baseline",
    "merge_screenshot_refs",
    "steps_with_status_change",
]
