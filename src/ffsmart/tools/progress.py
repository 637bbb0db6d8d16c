"""Parsing of ffmpeg stderr progress lines.

Trial encodes report throughput through the status line ffmpeg rewrites on
stderr (``frame= 300 fps=240 ... speed=8.01x``). The speed multiplier is the
benchmark score.
"""

import re
from dataclasses import dataclass

PROGRESS_PATTERNS = {
    "frame": re.compile(r"frame=\s*(\d+)"),
    "fps": re.compile(r"fps=\s*([\d.]+)"),
    "speed": re.compile(r"speed=\s*([\d.]+)x"),
}


@dataclass
class TrialProgress:
    """One parsed ffmpeg status line."""

    frame: int | None = None
    fps: float | None = None
    speed: float | None = None


def parse_stderr_progress(line: str) -> TrialProgress | None:
    """Parse an ffmpeg stderr progress line.

    Args:
        line: A line from ffmpeg stderr.

    Returns:
        Parsed TrialProgress or None if not a progress line.
    """
    if "frame=" not in line:
        return None

    result = TrialProgress()
    match = PROGRESS_PATTERNS["frame"].search(line)
    if match:
        result.frame = int(match.group(1))
    for key in ("fps", "speed"):
        match = PROGRESS_PATTERNS[key].search(line)
        if match:
            try:
                setattr(result, key, float(match.group(1)))
            except ValueError:
                pass
    return result


def last_progress(stderr: str) -> TrialProgress | None:
    """Return the final progress line of an ffmpeg run.

    ffmpeg separates status updates with carriage returns, so both \\r and
    \\n are treated as line breaks.
    """
    for line in reversed(re.split(r"[\r\n]+", stderr)):
        progress = parse_stderr_progress(line)
        if progress is not None:
            return progress
    return None


def speed_multiplier(stderr: str, source_fps: float) -> float:
    """Extract the realtime speed multiplier from ffmpeg stderr.

    Uses the reported ``speed=`` value, falling back to the encode frame
    rate divided by the source frame rate when speed is missing or zero.

    Args:
        stderr: Complete stderr of a finished ffmpeg run.
        source_fps: Frame rate of the encoded input.

    Returns:
        Speed multiplier, or 0.0 when nothing usable was reported.
    """
    progress = last_progress(stderr)
    if progress is None:
        return 0.0
    if progress.speed:
        return progress.speed
    if progress.fps and source_fps > 0:
        return progress.fps / source_fps
    return 0.0
