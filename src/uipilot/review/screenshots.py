"""Durable screenshot storage for review evidence."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from uipilot.logging import get_logger
from uipilot.utils.ids import screenshot_filename

logger = get_logger(__name__)


@dataclass
class ScreenshotStore:
    """Writes screenshots under ``<root>/test_results/<run_folder>/``.

    References returned by :meth:`save` are relative to ``root`` so a static file server mounted
    there can resolve them.
    """

    root: Path
    run_folder: str
    _ensured: bool = field(default=False, init=False, repr=False)

    @property
    def run_path(self) -> Path:
        return self.root / "test_results" / self.run_folder

    def ensure_run_folder(self) -> Path:
        if not self._ensured:
            self.run_path.mkdir(parents=True, exist_ok=True)
            self._ensured = True
            logger.debug("Run folder ready", extra={"path": str(self.run_path)})
        return self.run_path

    def save(self, png: bytes) -> str:
        """Persist a screenshot and return its reference."""

        name = screenshot_filename()
        (self.ensure_run_folder() / name).write_bytes(png)
        ref = f"/test_results/{self.run_folder}/{name}"
        logger.debug("Screenshot saved", extra={"ref": ref})
        return ref

    def resolve(self, ref: str) -> Path:
        """Map a reference back to its file."""

        return self.root / ref.lstrip("/")
