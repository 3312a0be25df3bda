"""Battery monitor: publishes the current snapshot to any number of readers."""

from __future__ import annotations

import logging

from power_watch.battery.snapshot import Snapshot
from power_watch.monitor.feed import ChangeFeed
from power_watch.monitor.watch import Cursor, LatestValue
from power_watch.source.base import BatterySource

logger = logging.getLogger(__name__)


class BatteryMonitor:
    """Owns the current battery snapshot.

    ``run`` is the only writer. Readers each hold a ``Cursor`` from
    ``subscribe`` and call ``changed_state`` to wait for the next publish.
    A slow reader never holds up ``run``; it just sees the newest snapshot
    when it next asks.
    """

    def __init__(self, source: BatterySource, feed: ChangeFeed) -> None:
        self._source = source
        self._feed = feed
        self._latest: LatestValue[Snapshot] = LatestValue()

    @property
    def current(self) -> Snapshot | None:
        return self._latest.value

    @property
    def publish_count(self) -> int:
        return self._latest.version

    def subscribe(self) -> Cursor:
        """Return a cursor that will see publishes made from now on."""
        return self._latest.cursor()

    def publish(self, snapshot: Snapshot) -> None:
        self._latest.publish(snapshot)

    async def run(self) -> None:
        """Publish an initial reading, then every reading the feed produces.

        Runs until cancelled. A ``SourceError`` from the source propagates.
        """
        snapshot = await self._source.read()
        logger.info(
            "Initial battery state: %.1f%% %.1fW %s",
            snapshot.percentage, snapshot.wattage, type(snapshot.status).__name__,
        )
        self.publish(snapshot)

        async for snapshot in self._feed:
            self.publish(snapshot)

    async def changed_state(self, cursor: Cursor) -> Snapshot:
        """Wait for a publish newer than ``cursor``; return the latest snapshot."""
        return await self._latest.wait_newer(cursor)
