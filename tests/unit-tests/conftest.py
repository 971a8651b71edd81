# tests/unit-tests/conftest.py
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.monkeypatch import MonkeyPatch


@pytest.fixture(autouse=True)
def _progress_env(monkeypatch: "MonkeyPatch", tmp_path: Path) -> None:
    """
    Keep spinners off and logs inside the test's tmp dir, whatever terminal
    the suite happens to run in.
    """
    monkeypatch.setenv("PROGNEST_LOG_FILE", str(tmp_path / "logs" / "prognest.log"))
    monkeypatch.setenv("PROGNEST_PROGRESS_ACTIVE", "1")
    for key in ("PROGNEST_PROGRESS_FORCE", "PROGNEST_PROGRESS_TAIL", "PROGNEST_PROGRESS_WIDTH"):
        monkeypatch.delenv(key, raising=False)


# Make autouse fixture appear "used" to static analyzers without affecting runtime
if TYPE_CHECKING:
    _ = _progress_env
