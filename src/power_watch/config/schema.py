"""Pydantic configuration models for all system settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class MonitorConfig(BaseModel):
    # None = rely on native change notifications only
    min_poll_interval_seconds: float | None = Field(30.0, gt=0)


class AlertConfig(BaseModel):
    threshold: float = Field(10.0, ge=0.0, le=100.0)
    command: str | None = None  # Run with /bin/sh -c; None = alerts disabled
    refire_interval_seconds: float | None = Field(None, gt=0)


class SourceConfig(BaseModel):
    type: Literal["upower", "sysfs"] = "upower"
    sysfs_root: str = "/sys/class/power_supply"
    sysfs_device: str | None = None  # None = first supply with TYPE=Battery


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"
    file: str = ""


class AppConfig(BaseModel):
    """Root configuration model containing all system settings."""

    monitor: MonitorConfig = MonitorConfig()
    alert: AlertConfig = AlertConfig()
    source: SourceConfig = SourceConfig()
    logging: LoggingConfig = LoggingConfig()

    @property
    def poll_floor_seconds(self) -> float | None:
        """Longest time the change feed may wait without re-reading the battery.

        The refire interval also bounds it, so a low battery is re-sampled
        often enough for the alert to actually re-fire.
        """
        intervals = [
            interval
            for interval in (
                self.monitor.min_poll_interval_seconds,
                self.alert.refire_interval_seconds,
            )
            if interval is not None
        ]
        return min(intervals) if intervals else None
