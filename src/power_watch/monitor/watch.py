"""Last-value broadcast: one writer, any number of independent readers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class Cursor:
    """A reader's position in the publish sequence.

    ``version`` is the publish event the reader last observed.
    """

    version: int = 0


class LatestValue(Generic[T]):
    """Holds the most recent value and wakes readers on every publish.

    Readers wait for a publish newer than their cursor, not for a different
    value: publishing equal content twice wakes them twice. Values published
    while a reader was busy are skipped; it only ever sees the newest.

    All methods must be called from the event loop thread.
    """

    def __init__(self) -> None:
        self._value: T | None = None
        self._version = 0
        self._published = asyncio.Event()

    @property
    def value(self) -> T | None:
        return self._value

    @property
    def version(self) -> int:
        return self._version

    def cursor(self) -> Cursor:
        """Create a cursor positioned at the current publish event."""
        return Cursor(version=self._version)

    def publish(self, value: T) -> None:
        """Replace the value and wake all waiting readers. Never blocks."""
        self._value = value
        self._version += 1
        published, self._published = self._published, asyncio.Event()
        published.set()

    async def wait_newer(self, cursor: Cursor) -> T:
        """Wait for a publish newer than ``cursor``, then advance it to the latest."""
        while self._version <= cursor.version:
            await self._published.wait()
        cursor.version = self._version
        return self._value  # type: ignore[return-value]
