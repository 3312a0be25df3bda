"""Low-battery alert throttle: decides when the alert command fires.

Two states:
1. Armed: the next reading at or below the threshold fires.
2. Cooling: fired at ``last_fired_at``; fires again only once the refire
   interval has elapsed (never, if no refire interval is configured).

Any reading above the threshold re-arms, so the next drop fires immediately.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

from power_watch.config.schema import AlertConfig

logger = logging.getLogger(__name__)


class AlertDecision(str, Enum):
    FIRE = "fire"
    SUPPRESS = "suppress"


@dataclass
class AlertThrottleState:
    """Tracks state for alert throttling."""

    last_fired_at: float | None = None  # None = armed
    fire_count: int = 0
    suppressed_count: int = 0

    @property
    def armed(self) -> bool:
        return self.last_fired_at is None


class AlertThrottler:
    """Fire/suppress state machine over battery percentage and time."""

    def __init__(self, config: AlertConfig) -> None:
        self._config = config
        self._state = AlertThrottleState()

    @property
    def state(self) -> AlertThrottleState:
        return self._state

    @property
    def enabled(self) -> bool:
        return bool(self._config.command)

    def evaluate(self, percentage: float, now: float | None = None) -> AlertDecision:
        """Decide whether a reading fires the alert.

        A reading exactly at the threshold counts as low.

        Args:
            percentage: Battery charge, 0-100.
            now: Monotonic timestamp in seconds. Defaults to ``time.monotonic()``.
        """
        if now is None:
            now = time.monotonic()

        if percentage > self._config.threshold:
            if not self._state.armed:
                logger.info(
                    "Battery back above alert threshold (%.1f%% > %.1f%%), alert re-armed",
                    percentage, self._config.threshold,
                )
            self._state.last_fired_at = None
            return AlertDecision.SUPPRESS

        if not self.enabled:
            return AlertDecision.SUPPRESS

        last = self._state.last_fired_at
        if last is None:
            return self._fire(now)

        refire = self._config.refire_interval_seconds
        if refire is not None and now - last >= refire:
            return self._fire(now)

        logger.debug(
            "Alert suppressed: %.1f%%, last fired %.0fs ago (refire=%s)",
            percentage, now - last, refire,
        )
        self._state.suppressed_count += 1
        return AlertDecision.SUPPRESS

    def _fire(self, now: float) -> AlertDecision:
        self._state.last_fired_at = now
        self._state.fire_count += 1
        return AlertDecision.FIRE
