"""Encoding decision logic.

Combines a StreamProfile, the host's CapabilitySnapshot and user overrides
into an EncodingPlan. The decision is a pure function of its inputs.

Passthrough precedence is fixed: UHD first, then 10-bit (when 10-bit output
is not allowed), then HDR (when HDR output is not allowed). Everything else
is transcoded with parameters scaled from the source.
"""

import logging
from dataclasses import dataclass

from ffsmart.hardware.accelerators import ACCELERATOR_PRIORITY, get_profile
from ffsmart.hardware.models import Accelerator, Codec
from ffsmart.introspector.models import StreamProfile
from ffsmart.introspector.parsers import parse_rational
from ffsmart.planner.exceptions import (
    EncoderUnavailableError,
    UnknownAcceleratorError,
    UnknownCodecError,
)
from ffsmart.planner.models import (
    EncodeOverrides,
    EncodingPlan,
    HdrMetadata,
    Passthrough,
    PassthroughReason,
    Transcode,
)
from ffsmart.probe.models import CapabilitySnapshot

logger = logging.getLogger(__name__)

# Video bitrate scales linearly with pixel count from 8 Mbps at 1080p
REFERENCE_VIDEO_BITRATE = 8_000_000
REFERENCE_PIXELS = 1920 * 1080
MIN_VIDEO_BITRATE = 2_000_000

FALLBACK_GOP = 50
FALLBACK_FRAME_RATE = "25/1"

# Source audio bitrates outside this range are treated as bogus
AUDIO_BITRATE_MIN = 60_000
AUDIO_BITRATE_MAX = 500_000
AUDIO_BITRATE_PER_CHANNEL = 64_000
DEFAULT_AUDIO_CHANNELS = 2

CHANNEL_LAYOUTS: dict[int, str] = {1: "mono", 2: "stereo", 6: "5.1", 8: "7.1"}

DEFAULT_B_FRAMES = 2


@dataclass(frozen=True)
class GopSettings:
    """Keyframe interval and output frame rate derived from the source."""

    gop: int
    frame_rate: str
    fallback_reason: str | None = None


def compute_video_bitrate(width: int, height: int) -> int:
    """Target bitrate proportional to pixel count, floored at 2 Mbps."""
    scaled = REFERENCE_VIDEO_BITRATE * width * height // REFERENCE_PIXELS
    return max(MIN_VIDEO_BITRATE, scaled)


def compute_gop(frame_rate: str | None) -> GopSettings:
    """Derive a one-second GOP from the source frame rate.

    The GOP is the frame rate rounded half up to an integer and the output
    frame rate keeps the source rational. An unparseable rate, a zero
    denominator or a rate rounding to zero falls back to 50 frames at 25/1.

    Example:
        >>> compute_gop("30000/1001")
        GopSettings(gop=30, frame_rate='30000/1001', fallback_reason=None)
    """
    parsed = parse_rational(frame_rate)
    if parsed is None:
        return GopSettings(
            FALLBACK_GOP, FALLBACK_FRAME_RATE, f"fps parse failed ({frame_rate!r})"
        )

    num, den = parsed
    if den == 0:
        return GopSettings(
            FALLBACK_GOP, FALLBACK_FRAME_RATE, f"invalid fps denominator ({frame_rate})"
        )

    gop = (num + den // 2) // den
    if gop < 1:
        return GopSettings(
            FALLBACK_GOP, FALLBACK_FRAME_RATE, f"fps rounds to zero ({frame_rate})"
        )
    return GopSettings(gop, f"{num}/{den}")


def select_audio_bitrate(source_bitrate: int | None, channels: int | None) -> int:
    """Keep a plausible source audio bitrate, else 64 kbps per channel."""
    if source_bitrate is not None and (
        AUDIO_BITRATE_MIN <= source_bitrate <= AUDIO_BITRATE_MAX
    ):
        return source_bitrate
    return AUDIO_BITRATE_PER_CHANNEL * (channels or DEFAULT_AUDIO_CHANNELS)


def select_channel_layout(channels: int | None) -> tuple[str, int, bool]:
    """Map a source channel count to an output layout.

    Returns:
        (layout, channel_count, forced). forced is True when the source
        count is missing or has no standard layout and stereo was
        substituted.
    """
    layout = CHANNEL_LAYOUTS.get(channels) if channels else None
    if layout is None:
        return "stereo", DEFAULT_AUDIO_CHANNELS, True
    return layout, channels, False


def _resolve_accelerator(name: str | None, caps: CapabilitySnapshot) -> Accelerator:
    if name is None:
        return caps.best_accelerator
    try:
        return Accelerator.parse(name)
    except ValueError:
        raise UnknownAcceleratorError(
            name, (a.value for a in ACCELERATOR_PRIORITY)
        ) from None


def _resolve_codec(name: str | None, caps: CapabilitySnapshot) -> Codec:
    if name is None:
        return caps.best_codec
    try:
        return Codec.parse(name)
    except ValueError:
        raise UnknownCodecError(name) from None


def use_hw_decode(profile: StreamProfile, caps: CapabilitySnapshot) -> bool:
    """Whether to decode on the accelerator.

    8-bit input always is. 10-bit input only is where the probe proved a
    10-bit hardware decode works; otherwise frames are decoded in software
    and uploaded by the renderer.
    """
    return not profile.is_10bit or caps.supports_10bit_decode


def decide(
    profile: StreamProfile,
    caps: CapabilitySnapshot,
    overrides: EncodeOverrides | None = None,
) -> EncodingPlan:
    """Decide how to handle a stream.

    Args:
        profile: Normalized input stream properties.
        caps: Probed capabilities of this host.
        overrides: User overrides; unset fields derive from caps.

    Returns:
        Passthrough or Transcode plan.

    Raises:
        UnknownAcceleratorError: If the accelerator override is unknown.
        UnknownCodecError: If the codec override is unknown.
        EncoderUnavailableError: If the resolved encoder is not compiled
            into ffmpeg.
    """
    overrides = overrides or EncodeOverrides()

    accelerator = _resolve_accelerator(overrides.accelerator, caps)
    codec = _resolve_codec(overrides.codec, caps)
    accel_profile = get_profile(accelerator)
    encoder = accel_profile.encoder_for(codec)
    if encoder not in caps.available_encoders:
        raise EncoderUnavailableError(encoder, accelerator.value, codec.value)

    allow_10bit = (
        overrides.allow_10bit
        if overrides.allow_10bit is not None
        else caps.supports_10bit_encode
    )
    allow_hdr = (
        overrides.allow_hdr
        if overrides.allow_hdr is not None
        else caps.supports_10bit_encode
    )

    if profile.is_uhd:
        reason = PassthroughReason.UHD
    elif profile.is_10bit and not allow_10bit:
        reason = PassthroughReason.TEN_BIT
    elif profile.is_hdr and not allow_hdr:
        reason = PassthroughReason.HDR
    else:
        reason = None

    if reason is not None:
        logger.info(
            "Passthrough (%s): %s %dx%d %s",
            reason.value,
            profile.video_codec,
            profile.width,
            profile.height,
            profile.pixel_format,
        )
        return Passthrough(reason)

    low_power = accel_profile.supports_low_power and caps.prefers_low_power(
        accelerator, codec
    )

    video_bitrate = compute_video_bitrate(profile.width, profile.height)
    gop = compute_gop(profile.frame_rate)
    layout, channels, layout_forced = select_channel_layout(profile.audio_channels)

    diagnostics = []
    if gop.fallback_reason:
        logger.warning(
            "Using GOP %d at %s: %s", gop.gop, gop.frame_rate, gop.fallback_reason
        )
        diagnostics.append(f"gop fallback: {gop.fallback_reason}")
    if layout_forced:
        logger.warning(
            "No standard layout for %s audio channels, forcing stereo",
            profile.audio_channels,
        )
        source_channels = profile.audio_channels or "unknown"
        diagnostics.append(f"layout forced: {source_channels} channels -> stereo")

    hdr = None
    if profile.is_hdr and codec is Codec.HEVC and allow_hdr:
        hdr = HdrMetadata(color_transfer=profile.color_transfer or "")

    pixel_format_filter = None
    if profile.is_10bit and codec is Codec.H264:
        pixel_format_filter = accel_profile.downconvert_filter

    b_frames = DEFAULT_B_FRAMES
    if low_power and not accel_profile.bframes_in_low_power:
        b_frames = 0

    plan = Transcode(
        accelerator=accelerator,
        codec=codec,
        encoder=encoder,
        low_power=low_power,
        video_bitrate=video_bitrate,
        max_bitrate=video_bitrate * 5 // 4,
        buffer_size=video_bitrate * 2,
        gop=gop.gop,
        frame_rate=gop.frame_rate,
        b_frames=b_frames,
        audio_bitrate=select_audio_bitrate(profile.audio_bitrate, profile.audio_channels),
        channel_layout=layout,
        audio_channels=channels,
        hdr=hdr,
        pixel_format_filter=pixel_format_filter,
        source_10bit=profile.is_10bit,
        gop_fallback=gop.fallback_reason is not None,
        channel_layout_forced=layout_forced,
        diagnostics=tuple(diagnostics),
    )
    logger.debug(
        "Transcode with %s%s: %d bps, gop %d, %s audio at %d bps",
        encoder,
        " (low power)" if low_power else "",
        plan.video_bitrate,
        plan.gop,
        plan.channel_layout,
        plan.audio_bitrate,
    )
    return plan
