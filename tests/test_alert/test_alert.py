"""Tests for the alert throttle and alert command runner."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from power_watch.alert.command import run_alert_command
from power_watch.alert.throttle import AlertDecision, AlertThrottler
from power_watch.config.schema import AlertConfig
from power_watch.errors import AlertCommandError

FIRE = AlertDecision.FIRE
SUPPRESS = AlertDecision.SUPPRESS


def _throttler(
    threshold: float = 10.0,
    command: str | None = "notify-send 'battery low'",
    refire: float | None = 60.0,
) -> AlertThrottler:
    return AlertThrottler(
        AlertConfig(threshold=threshold, command=command, refire_interval_seconds=refire)
    )


def _feed(throttler: AlertThrottler, readings: list[tuple[float, float]]) -> list[AlertDecision]:
    """Evaluate (time, percentage) pairs in order."""
    return [throttler.evaluate(pct, now=t) for t, pct in readings]


class TestAlertThrottler:
    def test_fires_once_while_low_within_refire(self) -> None:
        decisions = _feed(_throttler(), [(0, 5), (10, 5), (20, 5)])
        assert decisions == [FIRE, SUPPRESS, SUPPRESS]

    def test_crossing_above_threshold_rearms(self) -> None:
        decisions = _feed(_throttler(), [(0, 5), (5, 15), (6, 5)])
        assert decisions == [FIRE, SUPPRESS, FIRE]

    def test_refires_after_interval(self) -> None:
        decisions = _feed(_throttler(), [(0, 5), (59, 5), (60, 4), (100, 4), (120, 3)])
        assert decisions == [FIRE, SUPPRESS, FIRE, SUPPRESS, FIRE]

    def test_no_refire_interval_suppresses_until_rearmed(self) -> None:
        throttler = _throttler(refire=None)
        decisions = _feed(throttler, [(0, 5), (3600, 5), (86400, 2), (86401, 50), (86402, 9)])
        assert decisions == [FIRE, SUPPRESS, SUPPRESS, SUPPRESS, FIRE]

    def test_reading_at_threshold_is_low(self) -> None:
        assert _throttler().evaluate(10.0, now=0) is FIRE

    def test_reading_just_above_threshold_is_safe(self) -> None:
        assert _throttler().evaluate(10.01, now=0) is SUPPRESS

    def test_never_fires_without_command(self) -> None:
        throttler = _throttler(command=None)
        readings = [(t, pct) for t, pct in enumerate([50, 10, 5, 0, 0, 12, 3, 0])]
        assert set(_feed(throttler, readings)) == {SUPPRESS}
        assert throttler.state.fire_count == 0
        assert throttler.enabled is False

    def test_empty_command_counts_as_unset(self) -> None:
        assert _throttler(command="").evaluate(0, now=0) is SUPPRESS

    def test_state_tracks_last_fire(self) -> None:
        throttler = _throttler()
        assert throttler.state.armed is True
        throttler.evaluate(5, now=100.0)
        assert throttler.state.last_fired_at == 100.0
        assert throttler.state.armed is False
        throttler.evaluate(50, now=101.0)
        assert throttler.state.armed is True

    def test_counters(self) -> None:
        throttler = _throttler()
        _feed(throttler, [(0, 5), (1, 5), (2, 5), (61, 5)])
        assert throttler.state.fire_count == 2
        assert throttler.state.suppressed_count == 2

    def test_defaults_to_monotonic_clock(self) -> None:
        throttler = _throttler()
        with patch("power_watch.alert.throttle.time.monotonic", return_value=500.0):
            assert throttler.evaluate(5) is FIRE
        assert throttler.state.last_fired_at == 500.0


class TestRunAlertCommand:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        assert await run_alert_command("true") == 0

    @pytest.mark.asyncio
    async def test_runs_through_shell(self, tmp_path) -> None:
        marker = tmp_path / "fired"
        await run_alert_command(f"echo low > '{marker}' && exit 0")
        assert marker.read_text().strip() == "low"

    @pytest.mark.asyncio
    async def test_nonzero_exit_returned_not_raised(self) -> None:
        assert await run_alert_command("exit 3") == 3

    @pytest.mark.asyncio
    async def test_spawn_failure_raises(self) -> None:
        with patch(
            "power_watch.alert.command.asyncio.create_subprocess_shell",
            new=AsyncMock(side_effect=OSError("fork failed")),
        ):
            with pytest.raises(AlertCommandError) as excinfo:
                await run_alert_command("notify-send low")
        assert excinfo.value.command == "notify-send low"
        assert "spawn failed" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_wait_failure_raises(self) -> None:
        process = AsyncMock()
        process.wait = AsyncMock(side_effect=OSError("ECHILD"))
        with patch(
            "power_watch.alert.command.asyncio.create_subprocess_shell",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(AlertCommandError):
                await run_alert_command("notify-send low")
