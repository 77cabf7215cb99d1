"""Tests for the CLI."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from uipilot.cli import app

runner = CliRunner()


def test_script_prints_planner_steps(tmp_path: Path) -> None:
    plan = tmp_path / "plan.json"
    plan.write_text(
        json.dumps(
            {
                "steps": [
                    {"step_number": 1, "step_instructions": "Open the home page"},
                    {"step_number": 2, "step_instructions": "Search for shoes"},
                ]
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["script", str(plan)])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["Step 1: Open the home page", "Step 2: Search for shoes"]


def test_script_rejects_invalid_plan(tmp_path: Path) -> None:
    plan = tmp_path / "plan.json"
    plan.write_text('{"steps": [{"step_number": "one"}]}', encoding="utf-8")

    result = runner.invoke(app, ["script", str(plan)])

    assert result.exit_code != 0
