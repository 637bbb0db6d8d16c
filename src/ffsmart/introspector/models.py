"""Normalized stream metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass

# Transfer characteristics that mark HDR content (PQ and HLG)
HDR_TRANSFERS = frozenset({"smpte2084", "arib-std-b67"})

_TEN_BIT_PIX_FMT = re.compile(r"p010|10le$|10be$|y210|x2rgb10|x2bgr10|v210")

UHD_WIDTH = 3840
UHD_HEIGHT = 2160


@dataclass(frozen=True)
class StreamProfile:
    """Properties of an input stream relevant to encoder selection.

    Only video_codec is mandatory; everything else may be missing from
    ffprobe output and is then None (or 0 for dimensions).
    """

    video_codec: str
    width: int = 0
    height: int = 0
    pixel_format: str | None = None
    color_transfer: str | None = None
    frame_rate: str | None = None  # raw "num/den" as reported
    audio_codec: str | None = None
    audio_bitrate: int | None = None
    audio_channels: int | None = None

    @property
    def is_hdr(self) -> bool:
        """PQ or HLG transfer characteristic."""
        return (self.color_transfer or "").casefold() in HDR_TRANSFERS

    @property
    def is_10bit(self) -> bool:
        """Pixel format carries 10 bits per component."""
        return bool(
            self.pixel_format
            and _TEN_BIT_PIX_FMT.search(self.pixel_format.casefold())
        )

    @property
    def is_uhd(self) -> bool:
        """4K or larger in either dimension."""
        return self.width >= UHD_WIDTH or self.height >= UHD_HEIGHT
