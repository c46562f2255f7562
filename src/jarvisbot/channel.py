"""Unbounded multi-producer, single-consumer queues with explicit closure.

``asyncio.Queue`` has no notion of "every producer is gone" or "the consumer
went away", and both are how the bridge's tasks learn that they should stop.
A :class:`Sender` handle can be cloned for each producer; the queue reports
end-of-stream to the :class:`Receiver` once every handle has been closed and
the buffered items have been consumed.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .exceptions import QueueClosed

T = TypeVar("T")

__all__ = ["Receiver", "Sender", "open_channel"]


@dataclass(slots=True)
class _State(Generic[T]):
    items: deque[T] = field(default_factory=deque)
    senders: int = 0
    receiver_closed: bool = False
    waiter: asyncio.Future[Any] | None = None

    def wake(self) -> None:
        if self.waiter is not None and not self.waiter.done():
            self.waiter.set_result(None)


class Sender(Generic[T]):
    """Producer handle. ``send`` never blocks."""

    def __init__(self, state: _State[T]) -> None:
        self._state = state
        self._closed = False
        state.senders += 1

    @property
    def closed(self) -> bool:
        return self._closed or self._state.receiver_closed

    def send(self, item: T) -> None:
        """Enqueue ``item``; raises :class:`QueueClosed` if it can never be received."""
        if self._closed:
            raise QueueClosed("sender is closed")
        if self._state.receiver_closed:
            raise QueueClosed("receiver is closed")
        self._state.items.append(item)
        self._state.wake()

    def clone(self) -> Sender[T]:
        if self._closed:
            raise QueueClosed("sender is closed")
        return Sender(self._state)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._state.senders -= 1
        if self._state.senders == 0:
            self._state.wake()


class Receiver(Generic[T]):
    """Consumer handle. Only one task may ``recv`` at a time."""

    def __init__(self, state: _State[T]) -> None:
        self._state = state

    @property
    def closed(self) -> bool:
        return self._state.receiver_closed

    def __len__(self) -> int:
        return len(self._state.items)

    async def recv(self) -> T:
        state = self._state
        while True:
            if state.receiver_closed:
                raise QueueClosed("receiver is closed")
            if state.items:
                return state.items.popleft()
            if state.senders == 0:
                raise QueueClosed("all senders are closed")
            state.waiter = asyncio.get_running_loop().create_future()
            try:
                await state.waiter
            finally:
                state.waiter = None

    def close(self) -> None:
        """Drop the receiving end; buffered items are discarded."""
        state = self._state
        state.receiver_closed = True
        state.items.clear()
        state.wake()

    def __aiter__(self) -> Receiver[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.recv()
        except QueueClosed:
            raise StopAsyncIteration from None


def open_channel() -> tuple[Sender[Any], Receiver[Any]]:
    state: _State[Any] = _State()
    return Sender(state), Receiver(state)
