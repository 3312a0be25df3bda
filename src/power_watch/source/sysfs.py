"""Linux sysfs battery source (``/sys/class/power_supply``).

Reads the ``uevent`` file of one power supply. Units as exported by the
kernel:
  ENERGY_*   µWh      POWER_NOW    µW
  CHARGE_*   µAh      CURRENT_NOW  µA
  VOLTAGE_*  µV       CAPACITY     %

sysfs offers no change notifications, so this source relies entirely on the
change feed's poll floor.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path

from power_watch.battery.snapshot import (
    BatteryStatus,
    Charging,
    Discharging,
    FullyCharged,
    NotCharging,
    Snapshot,
    Unknown,
)
from power_watch.config.schema import SourceConfig
from power_watch.errors import SourceError
from power_watch.source.base import ChangeCallback

logger = logging.getLogger(__name__)

UEVENT_PREFIX = "POWER_SUPPLY_"


def parse_uevent(text: str) -> dict[str, str]:
    """Parse ``POWER_SUPPLY_KEY=value`` lines into ``{"KEY": "value"}``."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        key, sep, value = line.partition("=")
        if not sep:
            raise SourceError(f"Malformed uevent line: {line!r}")
        if key.startswith(UEVENT_PREFIX):
            key = key[len(UEVENT_PREFIX):]
        fields[key] = value
    return fields


def _int_field(fields: dict[str, str], key: str) -> int | None:
    raw = fields.get(key)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise SourceError(f"Non-numeric {key}={raw!r} in uevent") from e


def _hours(amount: int | None, rate: int | None) -> timedelta:
    if amount is None or not rate:
        return timedelta(0)
    return timedelta(hours=max(amount, 0) / abs(rate))


def snapshot_from_uevent(fields: dict[str, str]) -> Snapshot:
    """Build a snapshot from parsed uevent fields."""
    energy_now = _int_field(fields, "ENERGY_NOW")
    energy_full = _int_field(fields, "ENERGY_FULL")
    charge_now = _int_field(fields, "CHARGE_NOW")
    charge_full = _int_field(fields, "CHARGE_FULL")
    power_now = _int_field(fields, "POWER_NOW")
    current_now = _int_field(fields, "CURRENT_NOW")
    voltage_now = _int_field(fields, "VOLTAGE_NOW")

    # Energy-based gauges report µWh/µW; charge-based ones µAh/µA
    if energy_now is not None and energy_full:
        percentage = energy_now * 100 / energy_full
        now, full, rate = energy_now, energy_full, power_now
    elif charge_now is not None and charge_full:
        percentage = charge_now * 100 / charge_full
        now, full, rate = charge_now, charge_full, current_now
    else:
        capacity = _int_field(fields, "CAPACITY")
        if capacity is None:
            raise SourceError("uevent has neither energy, charge nor capacity fields")
        percentage = float(capacity)
        now = full = rate = None

    if power_now is not None:
        wattage = power_now / 1_000_000
    elif current_now is not None and voltage_now is not None:
        wattage = current_now * voltage_now / 1_000_000_000_000
    else:
        wattage = 0.0

    raw_status = fields.get("STATUS", "Unknown")
    status: BatteryStatus
    if raw_status == "Charging":
        remaining = full - now if full is not None and now is not None else None
        status = Charging(time_to_full=_hours(remaining, rate))
    elif raw_status == "Discharging":
        status = Discharging(time_to_empty=_hours(now, rate))
    elif raw_status == "Full":
        status = FullyCharged()
    elif raw_status == "Not charging":
        status = NotCharging()
    else:
        status = Unknown()

    return Snapshot(percentage=percentage, wattage=wattage, status=status)


class SysfsSource:
    """Battery source backed by a power supply's sysfs ``uevent`` file."""

    def __init__(self, config: SourceConfig) -> None:
        self._root = Path(config.sysfs_root)
        self._device_name = config.sysfs_device
        self._uevent_path: Path | None = None

    async def connect(self) -> None:
        """Resolve which power supply to read."""
        if self._device_name:
            path = self._root / self._device_name / "uevent"
            if not path.exists():
                raise SourceError(f"No uevent file at {path}")
        else:
            path = self._find_battery()
        self._uevent_path = path
        logger.info("Reading battery from %s", path)

    async def close(self) -> None:
        self._uevent_path = None

    async def read(self) -> Snapshot:
        if self._uevent_path is None:
            raise SourceError("Sysfs source not connected")
        try:
            text = self._uevent_path.read_text()
        except OSError as e:
            raise SourceError(f"Failed to read {self._uevent_path}: {e}") from e
        return snapshot_from_uevent(parse_uevent(text))

    def watch(self, callback: ChangeCallback) -> None:
        logger.debug("sysfs has no change notifications; relying on polling")

    def _find_battery(self) -> Path:
        try:
            candidates = sorted(d for d in self._root.iterdir() if d.is_dir())
        except OSError as e:
            raise SourceError(f"Cannot list {self._root}: {e}") from e

        for device in candidates:
            uevent = device / "uevent"
            if not uevent.exists():
                continue
            try:
                fields = parse_uevent(uevent.read_text())
            except (OSError, SourceError):
                logger.debug("Skipping unreadable power supply %s", device.name)
                continue
            if fields.get("TYPE", "").lower() == "battery":
                return uevent

        raise SourceError(f"No battery found under {self._root}")
