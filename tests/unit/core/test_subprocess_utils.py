"""Tests for core subprocess utilities.

These run the current interpreter as the child process so timeouts and
cancellation are exercised against a real process.
"""

import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from ffsmart.core.subprocess_utils import CommandCancelledError, run_command

PYTHON = Path(sys.executable)
SLEEPER = [PYTHON, "-c", "import time; time.sleep(30)"]


class TestRunCommand:
    """Tests for run_command function."""

    def test_returns_output_tuple(self):
        """run_command returns stdout, stderr and the return code."""
        stdout, stderr, rc = run_command(
            [
                PYTHON,
                "-c",
                "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)",
            ],
            timeout=30,
        )

        assert stdout.strip() == "out"
        assert stderr.strip() == "err"
        assert rc == 3

    def test_stdin_is_closed(self):
        """A child reading stdin sees EOF instead of blocking."""
        stdout, _, rc = run_command(
            [PYTHON, "-c", "import sys; print(repr(sys.stdin.read()))"], timeout=30
        )

        assert rc == 0
        assert stdout.strip() == "''"

    def test_undecodable_output_is_replaced(self):
        """Invalid UTF-8 on stderr does not raise."""
        _, stderr, _ = run_command(
            [PYTHON, "-c", "import sys; sys.stderr.buffer.write(b'frame=\\xff')"],
            timeout=30,
        )

        assert stderr.startswith("frame=")

    def test_env_is_passed(self):
        stdout, _, _ = run_command(
            [PYTHON, "-c", "import os; print(os.environ['FFSMART_TEST'])"],
            timeout=30,
            env={"FFSMART_TEST": "yes"},
        )

        assert stdout.strip() == "yes"

    def test_timeout_kills_child(self):
        """A command past its timeout raises after the child is gone."""
        start = time.monotonic()

        with pytest.raises(subprocess.TimeoutExpired):
            run_command(SLEEPER, timeout=0.5)

        assert time.monotonic() - start < 10

    def test_missing_executable(self, tmp_path):
        """A command that cannot start raises OSError."""
        with pytest.raises(OSError):
            run_command([tmp_path / "no-such-ffmpeg", "-version"], timeout=5)


class TestCancellation:
    """Tests for cancelling a running command."""

    def test_event_set_during_run(self):
        """Setting the event kills the child long before its timeout."""
        event = threading.Event()
        timer = threading.Timer(0.3, event.set)
        timer.start()
        start = time.monotonic()

        try:
            with pytest.raises(CommandCancelledError) as exc_info:
                run_command(SLEEPER, timeout=30, cancel_event=event)
        finally:
            timer.cancel()

        assert time.monotonic() - start < 10
        assert exc_info.value.command == PYTHON.name

    def test_event_set_before_start(self, tmp_path):
        """A pre-set event refuses to launch anything."""
        event = threading.Event()
        event.set()

        # The executable does not exist, so launching would raise OSError
        with pytest.raises(CommandCancelledError):
            run_command([tmp_path / "ffmpeg"], timeout=5, cancel_event=event)

    def test_unset_event_lets_command_finish(self):
        event = threading.Event()

        stdout, _, rc = run_command(
            [PYTHON, "-c", "import time; time.sleep(0.5); print('done')"],
            timeout=30,
            cancel_event=event,
        )

        assert rc == 0
        assert stdout.strip() == "done"
