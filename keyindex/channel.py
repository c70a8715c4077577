"""Unbuffered handoff channel between the enumerator and the fetcher."""

from __future__ import annotations

import threading
from typing import Generic, Iterator, Optional, TypeVar

T = TypeVar("T")

_EMPTY = object()


class ChannelClosed(RuntimeError):
    """Raised when sending on a channel that has already been closed."""


class ChannelCancelled(RuntimeError):
    """Raised when a blocked send is abandoned because of cancellation."""


class HandoffChannel(Generic[T]):
    """Single-producer, single-consumer rendezvous channel.

    ``send`` does not return until the receiver has taken the item, so the
    producer is never more than one item ahead of the consumer. ``close`` marks
    the end of the stream; ``cancel`` wakes every waiter and makes both ends
    stop.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._slot: object = _EMPTY
        self._sent = 0
        self._taken = 0
        self._closed = False
        self._cancelled = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def send(self, item: T) -> None:
        with self._cond:
            while self._slot is not _EMPTY and not self._cancelled:
                self._cond.wait()
            if self._cancelled:
                raise ChannelCancelled("channel cancelled")
            if self._closed:
                raise ChannelClosed("send on closed channel")
            self._slot = item
            self._sent += 1
            ticket = self._sent
            self._cond.notify_all()
            while self._taken < ticket and not self._cancelled:
                self._cond.wait()
            if self._taken < ticket:
                raise ChannelCancelled("channel cancelled before the item was received")

    def recv(self) -> Optional[T]:
        """Take the next item, or return None once closed and drained (or cancelled)."""
        with self._cond:
            while self._slot is _EMPTY and not self._closed and not self._cancelled:
                self._cond.wait()
            if self._cancelled or self._slot is _EMPTY:
                return None
            item = self._slot
            self._slot = _EMPTY
            self._taken += 1
            self._cond.notify_all()
            return item  # type: ignore[return-value]

    def close(self) -> None:
        with self._cond:
            if self._closed:
                raise ChannelClosed("channel already closed")
            self._closed = True
            self._cond.notify_all()

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self.recv()
            if item is None:
                return
            yield item
