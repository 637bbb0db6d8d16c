"""Bounded, cancellable execution of ffmpeg and ffprobe.

Every external call in ffsmart goes through run_command. A child never
outlives its timeout, and a long trial encode or pipeline run can be
abandoned from another thread by setting a threading.Event. In both cases
the child is killed and reaped before the exception reaches the caller.
"""

from __future__ import annotations

import logging
import subprocess  # nosec B404 - subprocess is required for FFmpeg invocation
import threading
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

logger = logging.getLogger(__name__)

# How often a running command checks its cancel event (seconds)
CANCEL_POLL_INTERVAL = 0.25


class CommandCancelledError(Exception):
    """The cancel event was set while a command was running."""

    def __init__(self, command: str) -> None:
        super().__init__(f"{command} cancelled")
        self.command = command


def _describe(args: Sequence[str]) -> str:
    return " ".join(args[:3]) + (" ..." if len(args) > 3 else "")


def _reap(process: subprocess.Popen) -> None:
    process.kill()
    process.communicate()


def _wait(
    process: subprocess.Popen,
    args: list[str],
    timeout: float,
    cancel_event: threading.Event | None,
) -> tuple[str, str]:
    """Collect output, polling the cancel event until the deadline."""
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise subprocess.TimeoutExpired(args, timeout)
        step = remaining if cancel_event is None else min(remaining, CANCEL_POLL_INTERVAL)
        try:
            return process.communicate(timeout=step)
        except subprocess.TimeoutExpired:
            # communicate() may be retried; nothing read so far is lost
            if cancel_event is not None and cancel_event.is_set():
                raise CommandCancelledError(Path(args[0]).name) from None


def run_command(
    args: Sequence[str | Path],
    timeout: float = 120,
    *,
    cancel_event: threading.Event | None = None,
    env: Mapping[str, str] | None = None,
    errors: str = "replace",
) -> tuple[str, str, int]:
    """Run an external command and capture its output as text.

    stdin is closed so ffmpeg never waits for interactive keys.

    Args:
        args: Command and arguments. Path objects are converted to strings.
        timeout: Wall-clock limit in seconds.
        cancel_event: When set, the command is killed at the next poll.
        env: Replacement environment for the child.
        errors: Decoding error mode for stdout and stderr.

    Returns:
        Tuple of (stdout, stderr, returncode).

    Raises:
        subprocess.TimeoutExpired: The command ran past timeout.
        CommandCancelledError: cancel_event was set before or during the run.
        OSError: The executable could not be started.

    Example:
        >>> stdout, stderr, rc = run_command(["ffmpeg", "-version"], timeout=10)
    """
    str_args = [str(arg) for arg in args]
    command_name = Path(str_args[0]).name if str_args else "unknown"

    if cancel_event is not None and cancel_event.is_set():
        raise CommandCancelledError(command_name)

    logger.debug("Executing: %s", " ".join(str_args))
    start = time.monotonic()

    process = subprocess.Popen(  # nosec B603 - callers build argument lists
        str_args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors=errors,
        env=dict(env) if env is not None else None,
    )
    try:
        stdout, stderr = _wait(process, str_args, timeout, cancel_event)
    except subprocess.TimeoutExpired:
        _reap(process)
        logger.warning("Command timed out after %ss: %s", timeout, _describe(str_args))
        raise
    except CommandCancelledError:
        _reap(process)
        logger.info(
            "Command cancelled after %.1fs: %s",
            time.monotonic() - start,
            _describe(str_args),
        )
        raise
    except BaseException:
        _reap(process)
        raise

    logger.debug(
        "%s exited %d after %.3fs",
        command_name,
        process.returncode,
        time.monotonic() - start,
    )
    return stdout or "", stderr or "", process.returncode
