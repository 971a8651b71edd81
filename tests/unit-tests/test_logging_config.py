from __future__ import annotations

import logging
from pathlib import Path

import pytest

from prognest import Progress, ZeroScaleError
from prognest import logging_config


def test_setup_logging_writes_to_env_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    target = tmp_path / "nested" / "run.log"
    monkeypatch.setenv("PROGNEST_LOG_FILE", str(target))
    monkeypatch.setenv("PROGNEST_LOG_LEVEL", "warning")
    run_dir = logging_config.setup_logging(force=True)
    assert run_dir == target.parent
    assert logging_config.get_log_path() == target
    assert logging_config.current_run_dir() == target.parent
    assert logging.getLogger("prognest").level == logging.WARNING

    prog = Progress(10)
    sub = prog.allocate(5, internal=0)
    with pytest.raises(ZeroScaleError):
        sub.advance(1)
    for handler in logging.getLogger("prognest").handlers:
        handler.flush()
    assert "zero internal scale" in target.read_text(encoding="utf-8")


def test_setup_logging_is_idempotent(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PROGNEST_LOG_FILE", str(tmp_path / "a.log"))
    first = logging_config.setup_logging(force=True)
    monkeypatch.setenv("PROGNEST_LOG_FILE", str(tmp_path / "other" / "b.log"))
    assert logging_config.setup_logging() == first
    assert logging_config.get_log_path() == tmp_path / "a.log"
