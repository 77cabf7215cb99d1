"""Screenshot capture with bounded retry."""

from __future__ import annotations

import asyncio

from uipilot.errors import ScreenshotCaptureError
from uipilot.logging import get_logger
from uipilot.surface.protocol import AutomationSurface

logger = get_logger(__name__)


async def capture_screenshot(
    surface: AutomationSurface,
    *,
    retries: int = 3,
    backoff_s: float = 2.0,
) -> bytes:
    """Capture a screenshot, retrying with a fixed backoff.

    Args:
        surface: Page to capture.
        retries: Total number of attempts.
        backoff_s: Delay between attempts.

    Raises:
        ScreenshotCaptureError: If every attempt failed.
    """

    last_error: Exception | None = None
    for attempt in range(1, retries + 1):
        try:
            return await surface.screenshot()
        except Exception as e:
            last_error = e
            logger.error(
                "Screenshot capture failed",
                extra={"attempt": attempt, "max_retries": retries, "error": str(e)},
            )
            if attempt < retries:
                await asyncio.sleep(backoff_s)

    raise ScreenshotCaptureError(f"screenshot failed after {retries} attempts: {last_error}") from last_error
