"""Snapshot publishing for observable pipeline state."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StatePublisher(Generic[T]):
    """
    Holds the latest immutable snapshot and fans it out to observers.

    Owners call ``publish`` only after a transition has fully completed,
    so readers never see a half-applied change.
    """

    def __init__(self, initial: T) -> None:
        self._current = initial
        self._callbacks: list[Callable[[T], None]] = []
        self._queues: list[asyncio.Queue[T]] = []

    @property
    def current(self) -> T:
        return self._current

    def publish(self, snapshot: T) -> None:
        """Replace the current snapshot and notify every observer."""
        self._current = snapshot
        for callback in list(self._callbacks):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning(f"State observer {callback!r} failed: {e}")
        for queue in self._queues:
            queue.put_nowait(snapshot)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a callback invoked with every new snapshot.

        Returns:
            A function that removes the callback again
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def updates(self) -> AsyncIterator[T]:
        """Yield the current snapshot, then every subsequent one."""
        queue: asyncio.Queue[T] = asyncio.Queue()
        queue.put_nowait(self._current)
        self._queues.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.remove(queue)
