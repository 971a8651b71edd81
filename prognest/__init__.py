"""
prognest — nested progress mapped onto one absolute range.

A job creates a root ``Progress`` with an absolute total and hands subtasks
slices of it with ``allocate``. Each subtask picks its own internal scale and
advances in its own units; the library rescales every report up the tree and
publishes the root's absolute value on a latest-value-wins channel that
asyncio tasks and threads can observe.

Exports:
    Progress, ProgressTree, NodeState   → the progress tree
    ChangeChannel, Observer             → change notification
    ProgressError, ZeroScaleError, ChannelClosed
    __version__ : best-effort package version (falls back to "0+unknown")

Terminal display (``live_percent``) lives in ``prognest.bridges`` so that
importing the core does not pull in the spinner dependencies.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from .channel import ChangeChannel, Observer
from .engine import NodeState, Progress, ProgressTree
from .exceptions import ChannelClosed, ProgressError, ZeroScaleError

__all__ = [
    "__version__",
    "ChangeChannel",
    "ChannelClosed",
    "NodeState",
    "Observer",
    "Progress",
    "ProgressError",
    "ProgressTree",
    "ZeroScaleError",
]


def _detect_version() -> str:
    try:
        return _pkg_version("prognest")
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _detect_version()
