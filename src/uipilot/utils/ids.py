"""ID utilities."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def new_run_id() -> str:
    """Return a sortable, unique test run id (e.g. ``20250101T120000Z-1a2b3c4d``)."""

    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


def screenshot_filename() -> str:
    return f"{uuid.uuid4()}.png"
