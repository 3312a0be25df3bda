"""Canonical text rendering of battery snapshots.

One compact JSON object per snapshot, e.g.::

    {"percentage":43,"wattage":12,"type":"discharging","time_to_empty":"1.5h"}
"""

from __future__ import annotations

import json
import math
from datetime import timedelta
from typing import Any

from power_watch.battery.snapshot import (
    BatteryStatus,
    Charging,
    Discharging,
    FullyCharged,
    NotCharging,
    Snapshot,
    Unknown,
)
from power_watch.errors import SerializationError

# Status class → "type" tag
STATUS_TAGS: dict[type, str] = {
    Discharging: "discharging",
    Charging: "charging",
    FullyCharged: "fully_charged",
    NotCharging: "not_charging",
    Unknown: "unknown",
}


def whole_number(value: float) -> int:
    """Round to the nearest non-negative integer, halves up. Negatives render as 0."""
    return max(int(math.floor(value + 0.5)), 0)


def human_duration(duration: timedelta) -> str:
    """Render a duration as ``30s``, ``12m`` or ``1.5h``."""
    secs = max(int(duration.total_seconds()), 0)
    if secs >= 3600:
        return f"{secs / 3600:.1f}h"
    if secs >= 60:
        return f"{secs // 60}m"
    return f"{secs}s"


def status_fields(status: BatteryStatus) -> dict[str, Any]:
    """Flatten a status into its tag plus any time estimate."""
    tag = STATUS_TAGS.get(type(status))
    if tag is None:
        raise SerializationError(f"Unsupported battery status: {status!r}")

    fields: dict[str, Any] = {"type": tag}
    if isinstance(status, Discharging):
        fields["time_to_empty"] = human_duration(status.time_to_empty)
    elif isinstance(status, Charging):
        fields["time_to_full"] = human_duration(status.time_to_full)
    return fields


def snapshot_fields(snapshot: Snapshot) -> dict[str, Any]:
    try:
        return {
            "percentage": whole_number(snapshot.percentage),
            "wattage": whole_number(snapshot.wattage),
            **status_fields(snapshot.status),
        }
    except (ValueError, OverflowError) as e:
        raise SerializationError(f"Cannot render snapshot {snapshot!r}: {e}") from e


def to_canonical_text(snapshot: Snapshot) -> str:
    """Render a snapshot as its single-line canonical text."""
    try:
        return json.dumps(snapshot_fields(snapshot), separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot render snapshot {snapshot!r}: {e}") from e
