"""Exception types raised by Power Watch components."""

from __future__ import annotations


class PowerWatchError(Exception):
    """Base class for all Power Watch errors."""


class SourceError(PowerWatchError):
    """A battery reading or change subscription failed."""


class SerializationError(PowerWatchError):
    """A snapshot could not be rendered to its canonical text."""


class AlertCommandError(PowerWatchError):
    """The alert command could not be spawned or awaited."""

    def __init__(self, command: str, message: str) -> None:
        super().__init__(f"Alert command {command!r} failed: {message}")
        self.command = command
