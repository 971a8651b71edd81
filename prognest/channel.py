"""
Latest-value-wins change channel.

The root of a progress tree publishes its absolute value here. Any number of
observers can read the value, and wait for the next change either from an
asyncio task (``await observer.wait_for_change()``) or from a plain thread
(``observer.wait_for_change_blocking()``). Intermediate values may be
coalesced: an observer only ever sees the newest value at the time it reads.

Publishing a value equal to the stored one is dropped and wakes nobody.
Closing the channel wakes every waiter; once an observer has acknowledged the
last value of a closed channel its waits raise ``ChannelClosed``.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import weakref
from typing import Any, List, Optional, Tuple

from .exceptions import ChannelClosed

LOGGER = logging.getLogger(__name__)
LOGGER.addHandler(logging.NullHandler())

_Waiter = Tuple[asyncio.AbstractEventLoop, "asyncio.Future[None]"]


def _resolve(fut: "asyncio.Future[None]") -> None:
    if not fut.done():
        fut.set_result(None)


class ChangeChannel:
    def __init__(self, initial: Any = 0) -> None:
        self._cond = threading.Condition()
        self._value: Any = initial
        self._version = 0
        self._closed = False
        self._waiters: List[_Waiter] = []
        self._observers: "weakref.WeakSet[Observer]" = weakref.WeakSet()

    @property
    def value(self) -> Any:
        with self._cond:
            return self._value

    @property
    def version(self) -> int:
        with self._cond:
            return self._version

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def receiver_count(self) -> int:
        return len(self._observers)

    def subscribe(self) -> "Observer":
        obs = Observer(self)
        self._observers.add(obs)
        return obs

    def publish(self, value: Any) -> bool:
        """Store ``value`` and wake all waiters. Returns False if nothing changed."""
        with self._cond:
            if self._closed or value == self._value:
                return False
            self._value = value
            self._version += 1
            waiters, self._waiters = self._waiters, []
            self._cond.notify_all()
        self._wake(waiters)
        return True

    def close(self) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            waiters, self._waiters = self._waiters, []
            self._cond.notify_all()
        LOGGER.debug("change channel closed at value=%r", self._value)
        self._wake(waiters)

    def _wake(self, waiters: List[_Waiter]) -> None:
        for loop, fut in waiters:
            if loop.is_closed():
                continue
            try:
                loop.call_soon_threadsafe(_resolve, fut)
            except RuntimeError:
                # Loop closed after the check; its waiters are gone with it.
                LOGGER.debug("skipping waiter on a closed event loop")

    def _discard(self, fut: "asyncio.Future[None]") -> None:
        with self._cond:
            self._waiters = [w for w in self._waiters if w[1] is not fut]


class Observer:
    """
    Handle on a ``ChangeChannel``.

    A fresh observer treats the value current at subscription time as already
    seen, so its first ``wait_for_change`` resumes on the next publish.
    """

    def __init__(self, channel: ChangeChannel) -> None:
        self._channel = channel
        with channel._cond:
            self._seen = channel._version

    @property
    def channel(self) -> ChangeChannel:
        return self._channel

    def peek(self) -> Any:
        """Current value, without marking it as seen."""
        return self._channel.value

    def read_and_acknowledge(self) -> Any:
        ch = self._channel
        with ch._cond:
            self._seen = ch._version
            return ch._value

    def has_changed(self) -> bool:
        ch = self._channel
        with ch._cond:
            if ch._version != self._seen:
                return True
            if ch._closed:
                raise ChannelClosed("progress channel is closed")
            return False

    async def wait_for_change(self) -> Any:
        loop = asyncio.get_running_loop()
        ch = self._channel
        while True:
            with ch._cond:
                if ch._version != self._seen:
                    self._seen = ch._version
                    return ch._value
                if ch._closed:
                    raise ChannelClosed("progress channel is closed")
                fut: "asyncio.Future[None]" = loop.create_future()
                ch._waiters.append((loop, fut))
            try:
                await fut
            finally:
                ch._discard(fut)

    def wait_for_change_blocking(self, timeout: Optional[float] = None) -> Any:
        """Thread flavour of ``wait_for_change``; returns None on timeout."""
        ch = self._channel
        with ch._cond:
            ready = ch._cond.wait_for(lambda: ch._version != self._seen or ch._closed, timeout)
            if not ready:
                return None
            if ch._version != self._seen:
                self._seen = ch._version
                return ch._value
            raise ChannelClosed("progress channel is closed")

    def __aiter__(self) -> "Observer":
        return self

    async def __anext__(self) -> Any:
        try:
            return await self.wait_for_change()
        except ChannelClosed:
            raise StopAsyncIteration

    def __repr__(self) -> str:
        return f"Observer(seen={self._seen}, channel_version={self._channel.version})"
