"""Automation surface interface."""

from __future__ import annotations

from uipilot.surface.protocol import AutomationSurface, LoginHandler

__all__ = ["AutomationSurface", "LoginHandler"]
