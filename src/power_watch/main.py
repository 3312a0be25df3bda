"""Power Watch application entry point and lifecycle orchestrator.

Startup sequence:
  CLI args → config → logging → battery source → change feed → monitor →
  tasks (monitor, snapshot printer, alert loop)

The three tasks run until one of them fails; the first failure cancels the
others and ends the process.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, TextIO

import yaml
from pydantic import ValidationError

from power_watch import __version__
from power_watch.alert.command import run_alert_command
from power_watch.alert.throttle import AlertDecision, AlertThrottler
from power_watch.battery.format import to_canonical_text
from power_watch.config.manager import ConfigManager
from power_watch.config.schema import AppConfig
from power_watch.errors import PowerWatchError
from power_watch.logging.context import bind_context
from power_watch.logging.structured import setup_logging
from power_watch.monitor.feed import ChangeFeed
from power_watch.monitor.monitor import BatteryMonitor
from power_watch.monitor.watch import Cursor
from power_watch.source.base import BatterySource

logger = logging.getLogger(__name__)


class Application:
    """Main application lifecycle manager.

    Wires the source, feed and monitor together and runs the snapshot
    printer and alert loop against the monitor.
    """

    def __init__(
        self,
        config: AppConfig,
        source: BatterySource | None = None,
        output: TextIO | None = None,
    ) -> None:
        self.config = config
        self._source = source
        self._output = output
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self.monitor: BatteryMonitor | None = None
        self.throttler = AlertThrottler(config.alert)

    async def run(self) -> None:
        """Run until stopped or until any task fails.

        Raises:
            PowerWatchError: The first fatal error from any task.
        """
        logger.info("Starting Power Watch v%s", __version__)
        source = self._source or self._create_source()
        self._source = source

        try:
            await source.connect()
            await self._run_tasks(source)
        finally:
            await self._cancel_tasks()
            await self._close_source()
            self._running = False

    async def _run_tasks(self, source: BatterySource) -> None:
        poll_floor = self.config.poll_floor_seconds
        feed = ChangeFeed(source, poll_floor)
        monitor = BatteryMonitor(source, feed)
        self.monitor = monitor

        # Subscribe before any task runs so the initial reading reaches both loops
        snapshot_cursor = monitor.subscribe()
        alert_cursor = monitor.subscribe()

        logger.info(
            "Monitoring battery: source=%s poll_floor=%s alert_threshold=%.0f%% alert_command=%s",
            self.config.source.type,
            f"{poll_floor:g}s" if poll_floor is not None else "none",
            self.config.alert.threshold,
            "set" if self.config.alert.command else "unset",
        )

        self._running = True
        self._tasks = [
            asyncio.create_task(monitor.run(), name="monitor"),
            asyncio.create_task(
                self._snapshot_loop(monitor, snapshot_cursor), name="snapshot_printer",
            ),
            asyncio.create_task(
                self._alert_loop(monitor, alert_cursor), name="alert_loop",
            ),
        ]

        await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in self._tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                logger.error("Task %s failed", task.get_name())
                raise task.exception()  # type: ignore[misc]

    async def stop(self) -> None:
        """Cancel all tasks; ``run`` then returns normally."""
        if not self._running:
            return
        logger.info("Shutting down Power Watch")
        for task in self._tasks:
            task.cancel()

    def _create_source(self) -> BatterySource:
        """Instantiate the configured battery source."""
        source_cfg = self.config.source
        if source_cfg.type == "sysfs":
            from power_watch.source.sysfs import SysfsSource

            return SysfsSource(source_cfg)

        from power_watch.source.upower import UPowerSource

        return UPowerSource()

    async def _snapshot_loop(self, monitor: BatteryMonitor, cursor: Cursor) -> None:
        """Print each snapshot whose canonical text differs from the last one printed."""
        bind_context(task="snapshot_printer")
        last_output: str | None = None
        while True:
            snapshot = await monitor.changed_state(cursor)
            output = to_canonical_text(snapshot)
            if output == last_output:
                continue
            self._emit(output)
            last_output = output

    async def _alert_loop(self, monitor: BatteryMonitor, cursor: Cursor) -> None:
        """Feed each new percentage to the throttler; run the alert command on fire.

        The command is awaited before the next reading is considered, so
        alert invocations never overlap.
        """
        bind_context(task="alert_loop")
        command = self.config.alert.command
        while True:
            snapshot = await monitor.changed_state(cursor)
            decision = self.throttler.evaluate(snapshot.percentage)
            if decision is AlertDecision.FIRE and command:
                logger.warning(
                    "Battery low: %.1f%% <= %.0f%%, firing alert",
                    snapshot.percentage, self.config.alert.threshold,
                )
                await run_alert_command(command)

    def _emit(self, line: str) -> None:
        print(line, file=self._output or sys.stdout, flush=True)

    async def _cancel_tasks(self) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _close_source(self) -> None:
        if self._source is None:
            return
        try:
            await self._source.close()
        except Exception:
            logger.exception("Error closing battery source")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="power-watch",
        description=(
            "Print a JSON line whenever the battery state changes and run a "
            "command when the charge is low."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", type=Path, default=None,
        help="YAML config file. Command-line options override it.",
    )
    poll = parser.add_mutually_exclusive_group()
    poll.add_argument(
        "-i", "--min-poll-interval", type=float, metavar="SECONDS",
        help="Re-read the battery at least this often (default 30).",
    )
    poll.add_argument(
        "--no-poll", action="store_true",
        help="Only re-read the battery when the source reports a change.",
    )
    parser.add_argument(
        "-l", "--alert-threshold", type=float, metavar="PERCENT",
        help="Run the alert command at or below this percentage (default 10).",
    )
    parser.add_argument(
        "-c", "--alert-command", metavar="COMMAND",
        help="Command to run with /bin/sh -c when the battery is low.",
    )
    parser.add_argument(
        "-r", "--alert-refire-interval", type=float, metavar="SECONDS",
        help="Run the alert command again after this long while still low.",
    )
    parser.add_argument("--source", choices=["upower", "sysfs"], help="Battery source.")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL.")
    parser.add_argument("--log-format", choices=["json", "console"], help="Log output format.")
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Turn parsed command-line options into a config override dict."""
    overrides: dict[str, Any] = {}

    def put(section: str, key: str, value: Any) -> None:
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    if args.no_poll:
        overrides["monitor"] = {"min_poll_interval_seconds": None}
    else:
        put("monitor", "min_poll_interval_seconds", args.min_poll_interval)
    put("alert", "threshold", args.alert_threshold)
    put("alert", "command", args.alert_command)
    put("alert", "refire_interval_seconds", args.alert_refire_interval)
    put("source", "type", args.source)
    put("logging", "level", args.log_level)
    put("logging", "format", args.log_format)
    return overrides


def main(argv: list[str] | None = None) -> int:
    """Entry point for the application. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        config = ConfigManager(args.config).load(overrides_from_args(args))
    except (ValidationError, yaml.YAMLError, OSError) as e:
        print(f"power-watch: invalid configuration:\n{e}", file=sys.stderr)
        return 2

    setup_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.file,
    )

    app = Application(config)
    signal_count = 0

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _request_stop() -> None:
        nonlocal signal_count
        signal_count += 1
        if signal_count >= 2:
            os._exit(130)
        loop.call_soon_threadsafe(lambda: asyncio.create_task(app.stop()))

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)

    try:
        loop.run_until_complete(app.run())
    except PowerWatchError as e:
        logger.critical("Fatal error: %s", e, exc_info=True)
        return 1
    except KeyboardInterrupt:
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
    finally:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()

    logger.info("Shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
