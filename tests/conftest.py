"""Shared test fixtures for Power Watch."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Callable

import pytest

from power_watch.battery.snapshot import Discharging, Snapshot
from power_watch.config.schema import AppConfig
from power_watch.source.base import ChangeCallback


class FakeSource:
    """In-memory battery source.

    ``read`` returns readings in order and keeps repeating the last one.
    ``notify`` simulates a native change notification.
    """

    def __init__(self, readings: list[Snapshot] | None = None) -> None:
        self.readings = list(readings or [make_snapshot()])
        self.callbacks: list[ChangeCallback] = []
        self.error: Exception | None = None
        self.read_count = 0
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def read(self) -> Snapshot:
        self.read_count += 1
        if self.error is not None:
            raise self.error
        if len(self.readings) > 1:
            return self.readings.pop(0)
        return self.readings[0]

    def watch(self, callback: ChangeCallback) -> None:
        self.callbacks.append(callback)

    def notify(self, category: str = "Percentage") -> None:
        for callback in self.callbacks:
            callback(category)


def make_snapshot(percentage: float = 50.0, wattage: float = 10.0, minutes: int = 90) -> Snapshot:
    return Snapshot(
        percentage=percentage,
        wattage=wattage,
        status=Discharging(time_to_empty=timedelta(minutes=minutes)),
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def config() -> AppConfig:
    """Provide a default test configuration."""
    return AppConfig()


@pytest.fixture
def source() -> FakeSource:
    """Provide a fake source with one 50% discharging reading."""
    return FakeSource()
