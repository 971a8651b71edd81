"""
Progress tree ↔ Halo spinner bridge.

``live_percent`` subscribes an observer to the root of a progress tree and
mirrors every published absolute value into the percent spinner from a
background watcher thread. If the spinner cannot start (e.g. an invalid
stream handle under a test harness) a no-op spinner takes its place so the
workload never breaks.
"""
from __future__ import annotations

import logging
import sys
import threading
from contextlib import contextmanager
from typing import Any, Generator, Optional

from .channel import Observer
from .engine import Progress
from .exceptions import ChannelClosed
from .progress_ux import NullSpinner, Spinner, percent_spinner

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())


class ObserverPump:
    """Forward values from an observer into a spinner until stopped or closed."""

    def __init__(self, observer: Observer, spinner: Any, *, poll: float = 0.1) -> None:
        self._observer = observer
        self._spinner = spinner
        self._poll = poll
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "ObserverPump":
        self._spinner.update(value=self._observer.read_and_acknowledge())
        self._thread = threading.Thread(target=self._run, name="prognest-pump", daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                value = self._observer.wait_for_change_blocking(timeout=self._poll)
            except ChannelClosed:
                LOGGER.debug("observer pump: channel closed")
                return
            if value is not None:
                self._spinner.update(value=value)

    def stop(self) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        # Catch whatever was published after the last poll.
        self._spinner.update(value=self._observer.peek())


@contextmanager
def live_percent(
    progress: Progress,
    *,
    prefix: str = "PROGRESS",
    task: Optional[str] = None,
    stream: Any | None = None,
) -> Generator[Spinner, None, None]:
    """
    Context manager that opens a percent spinner kept in sync with the root
    value of ``progress``. Yields the spinner; callers may ``update(task=...)``.
    """
    # Prefer real stderr so progress remains visible even when stdio is redirected
    target = stream or getattr(sys, "__stderr__", None) or sys.stderr
    spinner: Any = percent_spinner(prefix=prefix, total=progress.total, stream=target, final_newline=False)
    if task:
        spinner.update(task=task)

    try:
        spinner.__enter__()
    except (OSError, ValueError) as exc:
        LOGGER.warning("spinner failed to start, continuing without display: %s", exc)
        spinner = NullSpinner()
        spinner.update(total=progress.total, task=task)

    pump = ObserverPump(progress.subscribe(), spinner).start()
    try:
        yield spinner
    finally:
        try:
            pump.stop()
        finally:
            spinner.__exit__(None, None, None)
