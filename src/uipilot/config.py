"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `UIPILOT_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """uipilot settings.

    All fields are environment-configurable. Prefix is `UIPILOT_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="UIPILOT_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    app_env: Literal["dev", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")

    # LLM
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_timeout_s: float = Field(default=120.0)
    planner_model: str = Field(default="computer-use-preview")
    review_model: str = Field(default="gpt-4o")
    env_instructions: str = Field(default="")

    # Browser display
    display_width: int = Field(default=1024, ge=200, le=4096)
    display_height: int = Field(default=768, ge=200, le=4096)
    initial_load_wait_s: float = Field(default=2.0, ge=0.0, le=60.0)
    login_wait_s: float = Field(default=5.0, ge=0.0, le=60.0)

    # Action loop
    action_settle_s: float = Field(default=1.0, ge=0.0, le=30.0)
    screenshot_retries: int = Field(default=3, ge=1, le=10)
    screenshot_retry_backoff_s: float = Field(default=2.0, ge=0.0, le=30.0)
    max_tab_depth: int = Field(default=1, ge=0, le=10)
    # 0 disables the bound.
    loop_max_iterations: int = Field(default=200, ge=0)
    loop_timeout_s: float = Field(default=1800.0, ge=0.0)

    # Review
    review_include_previous_response: bool = Field(default=True)
    await_initial_review: bool = Field(default=False)

    # Artifacts
    artifacts_dir: Path = Field(default=Path("artifacts"))


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("UIPILOT_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
