"""Unit tests for ffmpeg progress parsing."""

import pytest

from ffsmart.tools.progress import last_progress, parse_stderr_progress, speed_multiplier


class TestParseStderrProgress:
    """Tests for parse_stderr_progress."""

    def test_full_status_line(self):
        """All fields of a status line are parsed."""
        line = (
            "frame=  300 fps=241 q=-0.0 Lsize=N/A time=00:00:10.00 "
            "bitrate=N/A speed=8.03x"
        )

        progress = parse_stderr_progress(line)

        assert progress is not None
        assert progress.frame == 300
        assert progress.fps == 241.0
        assert progress.speed == 8.03

    def test_non_progress_line(self):
        """Lines without frame= are not progress."""
        assert parse_stderr_progress("Stream #0:0: Video: h264") is None

    def test_missing_speed(self):
        """A status line without speed leaves it None."""
        progress = parse_stderr_progress("frame=   10 fps=0.0 q=0.0 size=N/A")

        assert progress is not None
        assert progress.speed is None


class TestSpeedMultiplier:
    """Tests for speed_multiplier."""

    def test_uses_last_status_line(self):
        """Carriage-return separated updates resolve to the final one."""
        stderr = (
            "Input #0, lavfi\n"
            "frame=   30 fps=0.0 speed=1.00x\r"
            "frame=  150 fps=180 speed=6.02x\r"
            "frame=  150 fps=181 speed=6.10x\n"
        )

        assert speed_multiplier(stderr, 30) == pytest.approx(6.10)

    def test_falls_back_to_fps_ratio(self):
        """Without speed=, fps over the source rate is used."""
        stderr = "frame=  150 fps=90 q=-0.0 size=N/A\n"

        assert speed_multiplier(stderr, 30) == pytest.approx(3.0)

    def test_no_progress_is_zero(self):
        """Output without any status line scores zero."""
        assert speed_multiplier("Conversion failed!\n", 30) == 0.0

    def test_zero_source_fps(self):
        """A zero source rate cannot produce a ratio."""
        assert speed_multiplier("frame= 1 fps=30\n", 0) == 0.0

    def test_last_progress_empty(self):
        """Empty stderr has no progress."""
        assert last_progress("") is None
