"""External tool detection and output parsing."""

from ffsmart.tools.detection import detect_ffmpeg, find_tool
from ffsmart.tools.models import FFmpegInfo, ToolStatus
from ffsmart.tools.progress import TrialProgress, parse_stderr_progress, speed_multiplier

__all__ = [
    "FFmpegInfo",
    "ToolStatus",
    "TrialProgress",
    "detect_ffmpeg",
    "find_tool",
    "parse_stderr_progress",
    "speed_multiplier",
]
