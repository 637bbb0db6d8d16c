"""Encoding plan data models.

An EncodingPlan is either Passthrough (copy the video untouched) or
Transcode (re-encode with fully resolved parameters). Both are immutable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ffsmart.hardware.models import Accelerator, Codec


class PassthroughReason(Enum):
    """Why the video is copied instead of re-encoded."""

    UHD = "uhd"
    TEN_BIT = "10bit"
    HDR = "hdr"


@dataclass(frozen=True)
class EncodeOverrides:
    """User choices that take precedence over probed capabilities.

    None means "derive from capabilities".
    """

    accelerator: str | None = None
    codec: str | None = None
    allow_10bit: bool | None = None
    allow_hdr: bool | None = None
    force_reprobe: bool = False


@dataclass(frozen=True)
class Passthrough:
    """Copy the input video stream without re-encoding."""

    reason: PassthroughReason


@dataclass(frozen=True)
class HdrMetadata:
    """Color signaling attached to HDR hevc output."""

    color_transfer: str
    color_primaries: str = "bt2020"
    colorspace: str = "bt2020nc"


@dataclass(frozen=True)
class Transcode:
    """Fully resolved re-encode parameters.

    Attributes:
        accelerator: Effective accelerator.
        codec: Effective output codec.
        encoder: Concrete ffmpeg encoder id.
        low_power: Use the accelerator's low-power path.
        video_bitrate: Target video bitrate (bits/s).
        max_bitrate: Peak video bitrate (bits/s).
        buffer_size: Rate-control buffer (bits).
        gop: Keyframe interval in frames (about one second).
        frame_rate: Output frame rate as "num/den".
        b_frames: Maximum consecutive B-frames.
        audio_bitrate: AAC bitrate (bits/s).
        channel_layout: Output channel layout name.
        audio_channels: Output channel count.
        hdr: HDR color signaling, or None for SDR output.
        pixel_format_filter: Filter converting 10-bit input for h264
            output, or None. Assumes frames decoded on the accelerator.
        source_10bit: Input carries 10-bit frames.
        gop_fallback: Frame rate was unusable and defaults were applied.
        channel_layout_forced: Source channel count had no standard
            layout and stereo was forced.
        diagnostics: Human readable notes about applied fallbacks.
    """

    accelerator: Accelerator
    codec: Codec
    encoder: str
    low_power: bool
    video_bitrate: int
    max_bitrate: int
    buffer_size: int
    gop: int
    frame_rate: str
    b_frames: int
    audio_bitrate: int
    channel_layout: str
    audio_channels: int
    hdr: HdrMetadata | None = None
    pixel_format_filter: str | None = None
    source_10bit: bool = False
    gop_fallback: bool = False
    channel_layout_forced: bool = False
    diagnostics: tuple[str, ...] = ()


EncodingPlan = Passthrough | Transcode
