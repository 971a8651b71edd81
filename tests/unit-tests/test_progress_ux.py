from __future__ import annotations

import io

import pytest

from prognest import Progress
from prognest.bridges import ObserverPump, live_percent
from prognest.progress_ux import (
    NullSpinner,
    ellipsize,
    format_amount,
    format_tail,
    percent_of,
    percent_spinner,
    should_enable_spinners,
    visible_len,
)


def test_format_amount() -> None:
    assert format_amount(4000.0) == "4000"
    assert format_amount(12) == "12"
    assert format_amount(0.25) == "0.25"
    assert format_amount("n/a") == "n/a"


def test_tail_modes_show_overshoot() -> None:
    assert format_tail(4000, 10000, "full") == "[ 4000/10000] [ 40.00%]"
    assert format_tail(16000, 10000, "short") == "[16000/10000] [160.0%]"
    assert format_tail(1, 3, "min") == "[33%]"
    assert format_tail(1, 3, "none") == ""
    assert percent_of(5, 0) == 0.0


def test_ellipsize_and_visible_len() -> None:
    assert ellipsize("abcdef", 4) == "abc…"
    assert ellipsize("abc", 10) == "abc"
    assert ellipsize("abc", 0) == ""
    assert visible_len("\x1b[31mred\x1b[0m") == 3


def test_spinners_disabled_off_tty() -> None:
    stream = io.StringIO()
    assert not should_enable_spinners(stream)
    sp = percent_spinner(prefix="T", total=10, stream=stream)
    assert isinstance(sp, NullSpinner)
    assert stream.getvalue() == ""


def test_spinners_disabled_when_nested(monkeypatch: pytest.MonkeyPatch) -> None:
    class _Tty(io.StringIO):
        def isatty(self) -> bool:
            return True

    monkeypatch.delenv("CI", raising=False)
    monkeypatch.setenv("TERM", "xterm-256color")
    monkeypatch.setenv("PROGNEST_PROGRESS_ACTIVE", "1")
    assert not should_enable_spinners(_Tty())
    monkeypatch.setenv("PROGNEST_PROGRESS_FORCE", "1")
    assert should_enable_spinners(_Tty())


def test_live_percent_mirrors_root_value() -> None:
    prog = Progress(10000)
    sub = prog.allocate(8000, internal=10000)
    with live_percent(prog, prefix="TEST", task="copy", stream=io.StringIO()) as sp:
        assert isinstance(sp, NullSpinner)
        sub.advance(5000)
    assert sp.state["value"] == 4000
    assert sp.state["total"] == 10000
    assert sp.state["task"] == "copy"


def test_live_percent_from_subtask_uses_root_total() -> None:
    prog = Progress(200)
    sub = prog.allocate(100)
    with live_percent(sub, stream=io.StringIO()) as sp:
        sub.advance(50)
    assert sp.state["total"] == 200
    assert sp.state["value"] == 50


def test_pump_stops_when_channel_closes() -> None:
    prog = Progress(10)
    spinner = NullSpinner()
    pump = ObserverPump(prog.subscribe(), spinner, poll=0.01).start()
    prog.advance(4)
    del prog
    pump.stop()
    assert spinner.state["value"] == 4
