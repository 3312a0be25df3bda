"""Alert command execution."""

from __future__ import annotations

import asyncio
import logging
import time

from power_watch.errors import AlertCommandError

logger = logging.getLogger(__name__)


async def run_alert_command(command: str) -> int:
    """Run ``command`` through ``/bin/sh -c`` and wait for it to exit.

    The child inherits stdout and stderr. A non-zero exit status is logged
    and returned, not raised.

    Raises:
        AlertCommandError: The shell could not be spawned or awaited.
    """
    logger.info("Running alert command: %s", command)
    started = time.monotonic()

    try:
        process = await asyncio.create_subprocess_shell(command)
    except OSError as e:
        raise AlertCommandError(command, f"spawn failed: {e}") from e

    try:
        returncode = await process.wait()
    except OSError as e:
        raise AlertCommandError(command, f"wait failed: {e}") from e

    elapsed_ms = int((time.monotonic() - started) * 1000)
    if returncode != 0:
        logger.warning("Alert command exited with status %d after %dms", returncode, elapsed_ms)
    else:
        logger.debug("Alert command finished in %dms", elapsed_ms)
    return returncode
