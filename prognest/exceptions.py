"""Exceptions raised by the progress tree and its change channel."""

from __future__ import annotations

from typing import Optional


class ProgressError(Exception):
    """Base progress error."""


class ZeroScaleError(ProgressError, ZeroDivisionError):
    """Raised when a node with an internal scale of zero has to report upward."""

    def __init__(self, message: str, node_id: Optional[int] = None, depth: Optional[int] = None):
        super().__init__(message)
        self.node_id = node_id
        self.depth = depth


class ChannelClosed(ProgressError):
    """Raised by observers once the channel is closed and nothing unseen remains."""
    pass
