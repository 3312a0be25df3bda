"""UPower battery source over the D-Bus system bus.

Reads UPower's composite "display device", the battery the desktop shows.

Sample property readout:
  Percentage=80.0  EnergyRate=38.763  State=5  TimeToEmpty=0  TimeToFull=0
  Energy=76.47  EnergyFull=95.04  BatteryLevel=1  Online=False
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import IntEnum
from typing import Any

from dbus_fast import BusType
from dbus_fast.aio import MessageBus, ProxyInterface

from power_watch.battery.snapshot import (
    BatteryStatus,
    Charging,
    Discharging,
    FullyCharged,
    NotCharging,
    Snapshot,
    Unknown,
)
from power_watch.errors import SourceError
from power_watch.source.base import ChangeCallback

logger = logging.getLogger(__name__)

UPOWER_BUS_NAME = "org.freedesktop.UPower"
UPOWER_PATH = "/org/freedesktop/UPower"
UPOWER_INTERFACE = "org.freedesktop.UPower"
DEVICE_INTERFACE = "org.freedesktop.UPower.Device"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"


class UPowerState(IntEnum):
    """UPower device ``State`` property values."""

    UNKNOWN = 0
    CHARGING = 1
    DISCHARGING = 2
    EMPTY = 3
    FULLY_CHARGED = 4
    PENDING_CHARGE = 5
    PENDING_DISCHARGE = 6


def status_from_upower(state: int, time_to_full: int, time_to_empty: int) -> BatteryStatus:
    """Map a UPower state and its time estimates (seconds) to a battery status."""
    if state == UPowerState.CHARGING:
        return Charging(time_to_full=timedelta(seconds=time_to_full))
    if state == UPowerState.DISCHARGING:
        return Discharging(time_to_empty=timedelta(seconds=time_to_empty))
    if state == UPowerState.FULLY_CHARGED:
        return FullyCharged()
    # AC connected but charging is held, e.g. by a charge limit
    if state == UPowerState.PENDING_CHARGE:
        return NotCharging()
    return Unknown()


def snapshot_from_properties(props: dict[str, Any]) -> Snapshot:
    """Build a snapshot from a ``GetAll`` result (variants already unwrapped)."""
    try:
        return Snapshot(
            percentage=float(props["Percentage"]),
            wattage=float(props["EnergyRate"]),
            status=status_from_upower(
                int(props["State"]),
                int(props.get("TimeToFull", 0)),
                int(props.get("TimeToEmpty", 0)),
            ),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SourceError(f"Incomplete UPower device properties: {e}") from e


class UPowerSource:
    """Battery source reading UPower's display device via dbus-fast."""

    def __init__(self) -> None:
        self._bus: MessageBus | None = None
        self._properties: ProxyInterface | None = None
        self._callbacks: list[ChangeCallback] = []

    async def connect(self) -> None:
        """Connect to the system bus and resolve the display device."""
        bus: MessageBus | None = None
        try:
            bus = await MessageBus(bus_type=BusType.SYSTEM).connect()
            introspection = await bus.introspect(UPOWER_BUS_NAME, UPOWER_PATH)
            upower = bus.get_proxy_object(
                UPOWER_BUS_NAME, UPOWER_PATH, introspection,
            ).get_interface(UPOWER_INTERFACE)
            device_path = await upower.call_get_display_device()

            device_introspection = await bus.introspect(UPOWER_BUS_NAME, device_path)
            device = bus.get_proxy_object(UPOWER_BUS_NAME, device_path, device_introspection)
            properties = device.get_interface(PROPERTIES_INTERFACE)
            properties.on_properties_changed(self._on_properties_changed)
        except Exception as e:
            if bus is not None:
                bus.disconnect()
            raise SourceError(f"Failed to connect to UPower: {e}") from e

        self._bus = bus
        self._properties = properties
        logger.info("Connected to UPower display device %s", device_path)

    async def close(self) -> None:
        if self._properties is not None:
            self._properties.off_properties_changed(self._on_properties_changed)
            self._properties = None
        if self._bus is not None:
            self._bus.disconnect()
            self._bus = None
            logger.info("Disconnected from UPower")

    async def read(self) -> Snapshot:
        if self._properties is None:
            raise SourceError("UPower source not connected")
        try:
            variants = await self._properties.call_get_all(DEVICE_INTERFACE)
        except Exception as e:
            raise SourceError(f"Failed to read UPower device properties: {e}") from e
        return snapshot_from_properties({name: v.value for name, v in variants.items()})

    def watch(self, callback: ChangeCallback) -> None:
        self._callbacks.append(callback)

    def _on_properties_changed(
        self,
        interface_name: str,
        changed_properties: dict[str, Any],
        invalidated_properties: list[str],
    ) -> None:
        if interface_name != DEVICE_INTERFACE:
            return
        for name in [*changed_properties, *invalidated_properties]:
            for callback in self._callbacks:
                callback(name)
