"""Data models for ffmpeg tool detection."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class ToolStatus(Enum):
    """Status of an external tool."""

    AVAILABLE = "available"  # Tool found and version detected
    MISSING = "missing"  # Tool not found in PATH or configured location
    ERROR = "error"  # Tool found but detection failed


@dataclass
class FFmpegInfo:
    """Detected ffmpeg binary and the encoders it was compiled with.

    The version string is kept verbatim; it only needs to compare equal
    between runs to detect an upgraded ffmpeg.
    """

    path: Path | None = None
    version: str | None = None
    status: ToolStatus = ToolStatus.MISSING
    status_message: str | None = None
    detected_at: datetime | None = None
    encoders: set[str] = field(default_factory=set)

    def is_available(self) -> bool:
        """Return True if ffmpeg is available and usable."""
        return self.status == ToolStatus.AVAILABLE
