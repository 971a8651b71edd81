from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from prognest import __version__
from prognest.cli import app

runner = CliRunner()


def test_demo_reaches_total(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["demo", "--total", "1000", "--workers", "4", "--steps", "4", "--delay", "0"],
        env={"PROGNEST_LOG_FILE": str(tmp_path / "demo.log"), "PROGNEST_LOG_LEVEL": "INFO"},
    )
    assert result.exit_code == 0, result.output
    assert "final 1000" in result.output


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output
