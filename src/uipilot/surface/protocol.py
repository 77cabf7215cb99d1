"""Protocol definitions for pluggable browser sessions.

The action loop drives a page through :class:`AutomationSurface`; concrete adapters (Playwright,
Selenium, a remote browser service) live outside this package.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from uipilot.models.planner import ComputerAction


class AutomationSurface(ABC):
    """A controllable browser page."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Load a URL."""

    @abstractmethod
    async def screenshot(self) -> bytes:
        """Capture the visible viewport as PNG bytes."""

    @abstractmethod
    async def list_tabs(self) -> list[AutomationSurface]:
        """Return every open page of the session, oldest first."""

    @abstractmethod
    async def viewport(self) -> tuple[int, int] | None:
        """Return ``(width, height)`` or ``None`` when unknown."""

    @abstractmethod
    async def set_viewport(self, width: int, height: int) -> None:
        """Resize the viewport."""

    @abstractmethod
    async def execute(self, action: ComputerAction) -> None:
        """Perform a planner action (click, type, scroll, drag, wait, navigate...)."""

    @abstractmethod
    async def close(self) -> None:
        """Release the session."""


class LoginHandler(ABC):
    """Site-specific login automation used before the planner takes over."""

    @abstractmethod
    async def fill_credentials(self, surface: AutomationSurface, username: str, password: str) -> None:
        """Fill the login form without submitting it."""

    @abstractmethod
    async def submit(self, surface: AutomationSurface) -> None:
        """Submit the login form."""
