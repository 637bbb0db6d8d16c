"""ffmpeg and ffprobe discovery.

Finds the executables, reads the ffmpeg version and enumerates the encoders
the build was compiled with.
"""

import logging
import re
import shutil
import subprocess  # nosec B404 - needed for TimeoutExpired
from datetime import datetime, timezone
from pathlib import Path

from ffsmart.core import run_command
from ffsmart.tools.models import FFmpegInfo, ToolStatus

logger = logging.getLogger(__name__)

# Timeout for version/capability detection commands (seconds)
DETECTION_TIMEOUT = 10

_VERSION_PATTERN = r"ffmpeg version (\S+)"


def find_tool(name: str, configured_path: Path | None = None) -> Path | None:
    """Find a tool executable.

    Args:
        name: Tool name (e.g., "ffmpeg").
        configured_path: Optional configured path override.

    Returns:
        Path to tool executable, or None if not found.
    """
    if configured_path:
        if configured_path.is_file():
            return configured_path
        logger.warning(
            "Configured path for %s is not a file: %s", name, configured_path
        )

    which_result = shutil.which(name)
    if which_result:
        return Path(which_result)

    return None


def _run_quiet(args: list[str | Path]) -> tuple[str, str, int]:
    """Run a detection command, folding launch failures into a return code."""
    try:
        return run_command(args, timeout=DETECTION_TIMEOUT)
    except subprocess.TimeoutExpired:
        return "", "timeout", -1
    except OSError as e:
        return "", str(e), -1


# =============================================================================
# List Parsing
# =============================================================================


def _parse_ffmpeg_list(output: str, pattern: str) -> set[str]:
    """Parse ffmpeg list output.

    Args:
        output: Command output.
        pattern: Regex pattern with a single capture group for the name.

    Returns:
        Set of names (lowercase).
    """
    compiled = re.compile(pattern)
    return {
        match.group(1).casefold()
        for line in output.split("\n")
        if (match := compiled.match(line)) and match.group(1) != "="
    }


def parse_encoder_list(output: str) -> set[str]:
    """Parse ffmpeg -encoders output."""
    # Format: " V....D h264_qsv    H.264 / AVC (Intel Quick Sync Video)"
    return _parse_ffmpeg_list(output, r"\s+[VASFXBDI.]{6}\s+(\S+)")


# =============================================================================
# Detection
# =============================================================================


def detect_ffmpeg(configured_path: Path | None = None) -> FFmpegInfo:
    """Detect ffmpeg and enumerate its capabilities.

    Args:
        configured_path: Optional configured path to ffmpeg.

    Returns:
        FFmpegInfo with version and encoders. A missing or broken binary
        is reported through the status fields.
    """
    info = FFmpegInfo(detected_at=datetime.now(timezone.utc))

    path = find_tool("ffmpeg", configured_path)
    if not path:
        info.status = ToolStatus.MISSING
        info.status_message = "ffmpeg not found in PATH"
        return info

    info.path = path

    stdout, stderr, rc = _run_quiet([path, "-version"])
    if rc != 0:
        info.status = ToolStatus.ERROR
        info.status_message = f"Failed to get ffmpeg version: {stderr}"
        return info

    version_match = re.search(_VERSION_PATTERN, stdout)
    if version_match:
        info.version = version_match.group(1)
    else:
        logger.warning("Could not read ffmpeg version from %s", path)

    stdout, stderr, rc = _run_quiet([path, "-hide_banner", "-encoders"])
    if rc == 0:
        info.encoders = parse_encoder_list(stdout)
    else:
        logger.warning("Failed to enumerate ffmpeg encoders: %s", stderr)

    info.status = ToolStatus.AVAILABLE
    logger.debug(
        "Detected ffmpeg %s at %s (%d encoders)",
        info.version,
        path,
        len(info.encoders),
    )
    return info
