"""Pure parsing functions for ffprobe JSON output.

These functions turn raw ffprobe output into a StreamProfile. They perform
no I/O so they can be tested against captured probe output.
"""

import logging
import re
from typing import Any

from ffsmart.introspector.interface import NoVideoStreamError
from ffsmart.introspector.models import StreamProfile

logger = logging.getLogger(__name__)

# codec_name values ffprobe emits for streams it could not identify
_UNRECOGNIZED_CODECS = frozenset({"", "null", "none", "unknown"})

_RATIONAL = re.compile(r"([0-9]+)/([0-9]+)")


def _clean_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def coerce_non_negative_int(value: Any, field_name: str) -> int | None:
    """Coerce an ffprobe numeric field to a non-negative int.

    ffprobe reports some numbers as JSON numbers (width) and others as
    strings (bit_rate). Invalid values are logged and dropped.

    Args:
        value: Raw value.
        field_name: Field name for warning messages.

    Returns:
        Validated value or None if missing or invalid.
    """
    if value is None or value == "N/A":
        return None
    if isinstance(value, bool):
        logger.warning("Expected int for %s, got bool", field_name)
        return None
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            logger.warning("Non-numeric %s: %r", field_name, value)
            return None
    if not isinstance(value, int):
        logger.warning("Expected int for %s, got %s", field_name, type(value).__name__)
        return None
    if value < 0:
        logger.warning("Invalid negative %s: %d", field_name, value)
        return None
    return value


def parse_rational(value: str | None) -> tuple[int, int] | None:
    """Parse an ffprobe rational like "30000/1001" into (num, den).

    Only the exact digits/digits form is accepted; bare integers, signs and
    underscores are not. The denominator may be zero; callers decide how to
    treat that.

    Returns:
        (numerator, denominator), or None if the value is not an unsigned
        integer rational.
    """
    if not value:
        return None
    match = _RATIONAL.fullmatch(value.strip())
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def _first_stream(streams: list[Any], codec_type: str) -> dict | None:
    for stream in streams:
        if not isinstance(stream, dict) or stream.get("codec_type") != codec_type:
            continue
        # Embedded cover art is reported as a video stream
        disposition = stream.get("disposition") or {}
        if codec_type == "video" and disposition.get("attached_pic") == 1:
            continue
        return stream
    return None


def normalize(raw: dict) -> StreamProfile:
    """Build a StreamProfile from ffprobe -show_streams JSON.

    Uses the first video stream and the first audio stream. Audio is
    optional; a missing video stream is not.

    Args:
        raw: Parsed ffprobe JSON.

    Returns:
        StreamProfile describing the input.

    Raises:
        NoVideoStreamError: If there is no video stream or its codec is
            missing or unrecognized.
    """
    streams = raw.get("streams") or []
    video = _first_stream(streams, "video")
    if video is None:
        raise NoVideoStreamError("input has no video stream")

    codec = _clean_str(video.get("codec_name"))
    if codec is None or codec.casefold() in _UNRECOGNIZED_CODECS:
        raise NoVideoStreamError(f"unrecognized video codec {codec!r}")

    frame_rate = _clean_str(video.get("r_frame_rate"))
    if frame_rate in (None, "0/0"):
        frame_rate = _clean_str(video.get("avg_frame_rate")) or frame_rate

    audio = _first_stream(streams, "audio") or {}

    profile = StreamProfile(
        video_codec=codec.casefold(),
        width=coerce_non_negative_int(video.get("width"), "width") or 0,
        height=coerce_non_negative_int(video.get("height"), "height") or 0,
        pixel_format=_clean_str(video.get("pix_fmt")),
        color_transfer=_clean_str(video.get("color_transfer")),
        frame_rate=frame_rate,
        audio_codec=_clean_str(audio.get("codec_name")),
        audio_bitrate=coerce_non_negative_int(audio.get("bit_rate"), "audio bit_rate"),
        audio_channels=coerce_non_negative_int(audio.get("channels"), "channels"),
    )
    logger.debug(
        "Stream profile: %s %dx%d %s transfer=%s fps=%s audio=%s",
        profile.video_codec,
        profile.width,
        profile.height,
        profile.pixel_format,
        profile.color_transfer,
        profile.frame_rate,
        profile.audio_codec,
    )
    return profile
