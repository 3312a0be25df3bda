"""Battery source protocol."""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from power_watch.battery.snapshot import Snapshot

# Native change notification: called with the name of what changed
ChangeCallback = Callable[[str], None]


@runtime_checkable
class BatterySource(Protocol):
    """Protocol for battery sources to implement.

    Every method raises ``SourceError`` on failure.
    """

    async def connect(self) -> None:
        """Open the underlying device or bus connection."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...

    async def read(self) -> Snapshot:
        """Take one fresh battery reading."""
        ...

    def watch(self, callback: ChangeCallback) -> None:
        """Register for native change notifications.

        Sources without native notifications never invoke the callback.
        """
        ...
