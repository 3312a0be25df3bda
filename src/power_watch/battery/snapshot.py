"""Battery snapshot data model."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Union


def _non_negative(duration: timedelta) -> timedelta:
    return duration if duration > timedelta(0) else timedelta(0)


@dataclass(frozen=True)
class Charging:
    time_to_full: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "time_to_full", _non_negative(self.time_to_full))


@dataclass(frozen=True)
class Discharging:
    time_to_empty: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "time_to_empty", _non_negative(self.time_to_empty))


@dataclass(frozen=True)
class FullyCharged:
    pass


@dataclass(frozen=True)
class NotCharging:
    """AC connected but the battery is held rather than charged."""


@dataclass(frozen=True)
class Unknown:
    pass


BatteryStatus = Union[Charging, Discharging, FullyCharged, NotCharging, Unknown]


def clamp_percentage(value: float) -> float:
    """Clamp a raw percentage into [0, 100]. NaN becomes 0."""
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(max(value, 0.0), 100.0)


@dataclass(frozen=True)
class Snapshot:
    """Immutable battery reading.

    ``observed_at`` is informational and excluded from equality, so two
    readings of the same battery state compare equal.
    """

    percentage: float
    wattage: float
    status: BatteryStatus = field(default_factory=Unknown)
    observed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "percentage", clamp_percentage(self.percentage))
        object.__setattr__(self, "wattage", float(self.wattage))
