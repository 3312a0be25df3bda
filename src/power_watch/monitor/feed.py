"""Change feed: turns native change notifications plus a poll floor into readings."""

from __future__ import annotations

import asyncio
import logging

from power_watch.battery.snapshot import Snapshot
from power_watch.source.base import BatterySource

logger = logging.getLogger(__name__)

# Native notifications that warrant a fresh reading
CHANGE_CATEGORIES = frozenset({"Energy", "Percentage", "State", "BatteryLevel"})


class ChangeFeed:
    """Produces a fresh reading whenever the battery may have changed.

    ``await_next`` resolves when the source reports a relevant change or the
    poll floor elapses, whichever comes first. Consecutive readings may be
    equal; filtering is the consumer's job. Without a poll floor only native
    notifications wake it.
    """

    def __init__(self, source: BatterySource, poll_interval: float | None = None) -> None:
        self._source = source
        self._poll_interval = poll_interval
        self._changed = asyncio.Event()
        self._read_count = 0
        source.watch(self._on_native_change)

    @property
    def read_count(self) -> int:
        return self._read_count

    def _on_native_change(self, category: str) -> None:
        if category in CHANGE_CATEGORIES:
            self._changed.set()

    async def await_next(self) -> Snapshot:
        """Wait for a change or the poll floor, then read the battery.

        Raises:
            SourceError: The read failed. Not retried.
        """
        try:
            await asyncio.wait_for(self._changed.wait(), timeout=self._poll_interval)
            trigger = "change"
        except asyncio.TimeoutError:
            trigger = "poll"
        self._changed.clear()

        snapshot = await self._source.read()
        self._read_count += 1
        logger.debug(
            "Battery read (%s): %.1f%% %.1fW %s",
            trigger, snapshot.percentage, snapshot.wattage, type(snapshot.status).__name__,
        )
        return snapshot

    def __aiter__(self) -> ChangeFeed:
        return self

    async def __anext__(self) -> Snapshot:
        return await self.await_next()
