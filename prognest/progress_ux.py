# progress_ux.py — terminal UX helpers (HALO spinner with absolute progress tail)
from __future__ import annotations

import itertools
import os
import re
import sys
import threading
import time
from types import TracebackType
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol, Type, cast

from colorama import Fore, Style
from colorama import init as colorama_init
from halo import Halo

colorama_init(autoreset=True)

DEFAULT_COLORS: List[str] = [
    Fore.RED, Fore.GREEN, Fore.BLUE, Fore.YELLOW, Fore.CYAN, Fore.MAGENTA, Fore.WHITE,
    Fore.LIGHTBLUE_EX, Fore.LIGHTCYAN_EX, Fore.LIGHTGREEN_EX, Fore.LIGHTMAGENTA_EX,
]

_TRUTHY = {"1", "true", "yes"}


class Spinner(Protocol):
    def __enter__(self) -> "Spinner": ...
    def __exit__(self, exc_type: Optional[Type[BaseException]], exc: Optional[BaseException], tb: Optional[TracebackType]) -> None: ...
    def start(self) -> "Spinner": ...
    def stop(self) -> None: ...
    def update(self, **kwargs: Any) -> "Spinner": ...
    @property
    def text(self) -> str: ...


def _should_enable_spinners(enabled: bool, stream: Any | None = None) -> bool:
    if not enabled:
        return False
    # Suppress nested spinners unless forced.
    if (os.environ.get("PROGNEST_PROGRESS_ACTIVE") == "1" and
            os.environ.get("PROGNEST_PROGRESS_FORCE", "").lower() not in _TRUTHY):
        return False
    target = stream or sys.stderr
    isatty = getattr(target, "isatty", None)
    try:
        if not callable(isatty) or not isatty():
            return False
    except (OSError, ValueError):
        return False
    if os.environ.get("CI"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return True


def should_enable_spinners(stream: Any | None = None) -> bool:
    return _should_enable_spinners(True, stream)


class NullSpinner:
    """Renders nothing; keeps the latest state so callers can still inspect it."""

    def __init__(self, *_: Any, **__: Any) -> None:
        self.state: Dict[str, Any] = {}

    def __enter__(self) -> "NullSpinner":
        return self

    def __exit__(self, exc_type: Optional[Type[BaseException]], exc: Optional[BaseException], tb: Optional[TracebackType]) -> None:
        self.stop()

    def start(self) -> "NullSpinner":
        return self

    def stop(self) -> None:
        return None

    def update(self, **kwargs: Any) -> "NullSpinner":
        self.state.update(kwargs)
        return self

    @property
    def text(self) -> str:
        return ""


if TYPE_CHECKING:
    class HaloType(Protocol):
        text: str
        def start(self, text: Optional[str] = ...) -> Any: ...
        def stop(self) -> Any: ...
        stream: Any
else:
    HaloType = Any


class DynamicSpinner:
    """
    A single-line spinner rendered via Halo. ``text_fn`` is re-evaluated on a
    background thread every ``interval`` seconds against the latest state.
    """
    def __init__(
        self,
        text_fn: Callable[[Dict[str, Any], str], str],
        state: Optional[Dict[str, Any]] = None,
        *,
        interval: float = 0.1,
        colors: Optional[List[str]] = None,
        spinner_type: str = "dots",
        stream: Any | None = None,
        final_newline: bool = True,
    ):
        self._text_fn = text_fn
        self.state: Dict[str, Any] = dict(state or {})
        self._state_lock = threading.Lock()
        self._interval = interval
        self._colors = itertools.cycle(colors or DEFAULT_COLORS)
        self._stop = threading.Event()
        self._stream = stream or sys.stderr
        self._final_newline = final_newline
        self._spinner = cast(HaloType, Halo(text="", spinner=spinner_type, stream=self._stream))
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "DynamicSpinner":
        os.environ["PROGNEST_PROGRESS_ACTIVE"] = "1"
        return self.start()

    def __exit__(self, exc_type: Optional[Type[BaseException]], exc: Optional[BaseException], tb: Optional[TracebackType]) -> None:
        try:
            self.stop()
        finally:
            os.environ.pop("PROGNEST_PROGRESS_ACTIVE", None)

    def _render(self, color: str) -> str:
        with self._state_lock:
            snapshot = dict(self.state)
        return self._text_fn(snapshot, color)

    def start(self) -> "DynamicSpinner":
        self._stop.clear()
        self._spinner.text = self._render(next(self._colors))
        self._spinner.start()

        def _loop() -> None:
            while not self._stop.is_set():
                self._spinner.text = self._render(next(self._colors))
                time.sleep(self._interval)

        self._thread = threading.Thread(target=_loop, name="prognest-spinner", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        try:
            if self._thread and self._thread.is_alive():
                self._thread.join(timeout=1.0)
        finally:
            # Paint the final state once before Halo clears the line.
            self._spinner.text = self._render("")
            self._spinner.stop()
            if self._final_newline:
                target = getattr(self._spinner, "stream", None) or self._stream
                target.write("\n")
                target.flush()

    def update(self, **kwargs: Any) -> "DynamicSpinner":
        # Accepts keys: value, total, task
        with self._state_lock:
            self.state.update(kwargs)
        return self

    @property
    def text(self) -> str:
        return self._render("")


def enabled_spinner(
    enabled: bool = True,
    *,
    stream: Any | None = None,
    final_newline: bool = True,
) -> Callable[..., Any]:
    def _ctor(
        text_fn: Callable[[Dict[str, Any], str], str],
        state: Optional[Dict[str, Any]] = None,
        *,
        interval: float = 0.1,
        colors: Optional[List[str]] = None,
        spinner_type: str = "dots",
    ) -> Any:
        chosen_stream = stream or sys.stderr
        if _should_enable_spinners(enabled, chosen_stream):
            return DynamicSpinner(
                text_fn,
                state,
                interval=interval,
                colors=colors,
                spinner_type=spinner_type,
                stream=chosen_stream,
                final_newline=final_newline,
            )
        null = NullSpinner()
        null.state.update(state or {})
        return null
    return _ctor


_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def visible_len(s: str) -> int:
    return len(_ANSI_RE.sub("", s))


def ellipsize(s: str, n: int) -> str:
    s = str(s or "")
    if n <= 0:
        return ""
    if len(s) <= n:
        return s
    if n == 1:
        return "…"
    return s[: n - 1].rstrip() + "…"


def format_amount(value: Any) -> str:
    """Integral amounts print without decimals; everything else with two."""
    try:
        f = float(value)
    except (TypeError, ValueError):
        return str(value)
    if f != f or f in (float("inf"), float("-inf")):
        return str(f)
    if f.is_integer():
        return str(int(f))
    return f"{f:.2f}"


def percent_of(value: Any, total: Any) -> float:
    """Percentage of ``value`` against ``total``; overshoot is shown as is."""
    try:
        t = float(total)
        if t == 0:
            return 0.0
        return 100.0 * float(value) / t
    except (TypeError, ValueError, OverflowError):
        return 0.0


def format_tail(value: Any, total: Any, mode: str = "full") -> str:
    pct = percent_of(value, total)
    v, t = format_amount(value), format_amount(total)
    if mode == "full":
        return f"[{v:>{len(t)}}/{t}] [{pct:6.2f}%]"
    if mode == "short":
        return f"[{v}/{t}] [{pct:5.1f}%]"
    if mode == "min":
        return f"[{int(round(pct))}%]"
    return ""


def percent_spinner(
    prefix: str = "PROGRESS",
    *,
    total: Any = 100,
    enabled: bool = True,
    spinner_type: str = "dots",
    stream: Any | None = None,
    final_newline: bool = True,
    interval: float | None = None,
) -> Spinner:
    """
    Fixed-width, single-line progress:
    <prefix> [Task:…]  [value/total] [zz.zz%]
    Only the task label is shrunk to fit the configured width.
    """
    DEFAULT_LINE_COLS = 100
    env_w = os.environ.get("PROGNEST_PROGRESS_WIDTH")
    try:
        line_cols = max(20, int(env_w)) if env_w else DEFAULT_LINE_COLS
    except ValueError:
        line_cols = DEFAULT_LINE_COLS

    tail_mode = (os.environ.get("PROGNEST_PROGRESS_TAIL", "full") or "full").lower()

    spinner_type = os.environ.get("PROGNEST_SPINNER", spinner_type)
    if "PROGNEST_PROGRESS_FINAL_NEWLINE" in os.environ:
        final_newline = os.environ.get("PROGNEST_PROGRESS_FINAL_NEWLINE", "0").lower() in _TRUTHY
    if interval is None:
        try:
            interval = float(os.environ.get("PROGNEST_SPINNER_INTERVAL", "0.05"))
        except ValueError:
            interval = 0.05

    ctor = enabled_spinner(enabled, stream=stream, final_newline=final_newline)

    def text_fn(state: Dict[str, Any], color: str) -> str:
        head = f"{color}{Style.BRIGHT}{prefix}{Style.RESET_ALL} "
        tail_plain = format_tail(state.get("value", 0), state.get("total", total), tail_mode)
        tail = f"{Fore.MAGENTA}{Style.BRIGHT} {tail_plain}{Style.RESET_ALL}" if tail_plain else ""
        mid_budget = max(3, line_cols - visible_len(head) - visible_len(tail))

        task = str(state.get("task") or "")
        mid_text = ""
        if task:
            op = f"{Fore.CYAN}{Style.BRIGHT}[Task:{Style.RESET_ALL}{Fore.RED}{Style.BRIGHT}"
            cl = f"{Style.RESET_ALL}{Fore.CYAN}{Style.BRIGHT}]"
            room = max(1, mid_budget - visible_len(op) - visible_len(cl))
            mid_text = op + ellipsize(task, room) + cl
        mid_vis = visible_len(mid_text)
        if mid_vis < mid_budget:
            mid_text += " " * (mid_budget - mid_vis)
        return f"{head}{mid_text}{tail}"

    return cast(Spinner, ctor(
        text_fn,
        state={"value": 0, "total": total, "task": None},
        interval=float(interval),
        spinner_type=spinner_type,
    ))
