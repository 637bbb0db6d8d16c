"""FFmpeg command rendering for encoding plans.

Turns an EncodingPlan into the argument list that streams the input as
MPEG-TS to stdout. The layout matches what IPTV-style consumers expect:
tolerant input flags, reconnect options for HTTP sources, the first video
and (optional) first audio stream, and a muxer that repeats PAT/PMT.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from ffsmart.hardware.accelerators import (
    DEFAULT_VAAPI_DEVICE,
    SOFTWARE_DOWNCONVERT_FILTER,
    get_profile,
)
from ffsmart.hardware.models import Codec
from ffsmart.planner.models import EncodingPlan, Passthrough, Transcode

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = "pipe:1"

HTTP_RECONNECT_ARGS: tuple[str, ...] = (
    "-reconnect",
    "1",
    "-reconnect_at_eof",
    "1",
    "-reconnect_streamed",
    "1",
    "-reconnect_delay_max",
    "30",
    "-rw_timeout",
    "15000000",
)

INPUT_TOLERANCE_ARGS: tuple[str, ...] = (
    "-fflags",
    "+genpts+igndts+discardcorrupt",
    "-err_detect",
    "ignore_err",
)

MPEGTS_OUTPUT_ARGS: tuple[str, ...] = (
    "-avoid_negative_ts",
    "make_zero",
    "-mpegts_flags",
    "+pat_pmt_at_frames+resend_headers",
    "-flush_packets",
    "1",
    "-max_muxing_queue_size",
    "4096",
    "-f",
    "mpegts",
)


def is_network_source(source: str) -> bool:
    """Check whether a source is read over HTTP(S)."""
    return source.lower().startswith(("http://", "https://"))


def build_input_args(
    source: str,
    *,
    user_agent: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> list[str]:
    """Build the network options that precede -i for a source."""
    if not is_network_source(source):
        return []
    args: list[str] = []
    if user_agent:
        args.extend(["-user_agent", user_agent])
    if headers:
        args.extend(["-headers", "".join(f"{k}: {v}\r\n" for k, v in headers.items())])
    args.extend(HTTP_RECONNECT_ARGS)
    return args


def select_video_filter(plan: Transcode, *, hw_frames: bool = True) -> str | None:
    """Choose the -vf chain for where decoded frames live.

    Frames decoded on the accelerator use the plan's downconvert filter,
    which runs on the device. Software-decoded frames are uploaded when the
    encoder only takes device frames, otherwise they are converted with a
    software filter.

    Args:
        plan: Transcode plan.
        hw_frames: Decoded frames are already on the accelerator.

    Returns:
        Filter chain, or None when the encoder takes frames as decoded.
    """
    if hw_frames:
        return plan.pixel_format_filter

    profile = get_profile(plan.accelerator)
    if profile.upload_filter is not None:
        pix_fmt = "nv12"
        if plan.source_10bit and plan.codec is Codec.HEVC:
            pix_fmt = profile.ten_bit_pix_fmt
        return profile.upload_chain(pix_fmt)
    if plan.pixel_format_filter:
        return SOFTWARE_DOWNCONVERT_FILTER
    return None


def build_video_args(plan: Transcode, *, hw_frames: bool = True) -> list[str]:
    """Build the video encoder arguments for a transcode plan.

    Args:
        plan: Transcode plan.
        hw_frames: Decoded frames are already on the accelerator.
    """
    profile = get_profile(plan.accelerator)
    args: list[str] = []

    video_filter = select_video_filter(plan, hw_frames=hw_frames)
    if video_filter:
        args.extend(["-vf", video_filter])

    args.extend(["-c:v", plan.encoder])
    args.extend(profile.rate_control_args)
    if plan.low_power:
        args.extend(profile.low_power_args)

    args.extend(
        [
            "-b:v",
            str(plan.video_bitrate),
            "-maxrate",
            str(plan.max_bitrate),
            "-bufsize",
            str(plan.buffer_size),
            "-g",
            str(plan.gop),
            "-bf",
            str(plan.b_frames),
        ]
    )

    if plan.codec is Codec.HEVC:
        # Apple players and many TV clients only accept hvc1-tagged hevc
        args.extend(["-tag:v", "hvc1"])

    if plan.hdr is not None:
        args.extend(
            [
                "-color_primaries",
                plan.hdr.color_primaries,
                "-colorspace",
                plan.hdr.colorspace,
                "-color_trc",
                plan.hdr.color_transfer,
            ]
        )

    args.extend(["-fps_mode", "cfr", "-r", plan.frame_rate])
    return args


def build_audio_args(plan: Transcode) -> list[str]:
    """Build the AAC audio arguments for a transcode plan."""
    return [
        "-c:a",
        "aac",
        "-b:a",
        str(plan.audio_bitrate),
        "-ac",
        str(plan.audio_channels),
        "-af",
        "aresample=async=1",
    ]


def build_ffmpeg_args(
    plan: EncodingPlan,
    source: str,
    *,
    user_agent: str | None = None,
    headers: Mapping[str, str] | None = None,
    vaapi_device: str = DEFAULT_VAAPI_DEVICE,
    hw_decode: bool = True,
    ffmpeg: str = "ffmpeg",
    output: str = DEFAULT_OUTPUT,
    duration: float | None = None,
    stats: bool = False,
) -> list[str]:
    """Render a plan as a complete ffmpeg command line.

    Args:
        plan: Passthrough or Transcode plan.
        source: Input URL or path.
        user_agent: HTTP User-Agent for network sources.
        headers: Extra HTTP headers for network sources.
        vaapi_device: Render node substituted into VAAPI options.
        hw_decode: Decode on the accelerator when transcoding with one.
        ffmpeg: Executable name or path, used as argv[0].
        output: Output target.
        duration: Stop after this many seconds of output.
        stats: Keep the ffmpeg progress line on stderr despite the quiet
            log level.

    Returns:
        Argument list starting with the executable.
    """
    args = [ffmpeg, "-hide_banner", "-loglevel", "warning"]
    if stats:
        args.append("-stats")
    args.extend(build_input_args(source, user_agent=user_agent, headers=headers))

    hw_frames = False
    if isinstance(plan, Transcode):
        profile = get_profile(plan.accelerator)
        hw_frames = hw_decode and bool(profile.hwaccel_args)
        if hw_frames:
            args.extend(profile.input_args(vaapi_device))
        else:
            # Encoders fed uploaded frames still need the device opened
            args.extend(profile.device_init_args(vaapi_device))

    args.extend(INPUT_TOLERANCE_ARGS)
    args.extend(["-i", source, "-map", "0:v:0", "-map", "0:a:0?"])

    if isinstance(plan, Passthrough):
        args.extend(["-c:v", "copy", "-c:a", "copy"])
    else:
        args.extend(build_video_args(plan, hw_frames=hw_frames))
        args.extend(build_audio_args(plan))

    if duration is not None:
        args.extend(["-t", f"{duration:g}"])
    args.extend(MPEGTS_OUTPUT_ARGS)
    args.append(output)
    logger.debug("Rendered ffmpeg command: %s", " ".join(args))
    return args


def describe_plan(plan: EncodingPlan) -> str:
    """One-line human readable summary of a plan."""
    if isinstance(plan, Passthrough):
        return f"passthrough ({plan.reason.value})"
    parts = [
        f"{plan.accelerator.value}/{plan.codec.value}",
        plan.encoder + (" low-power" if plan.low_power else ""),
        f"{plan.video_bitrate // 1000}k",
        f"gop {plan.gop}@{plan.frame_rate}",
        f"aac {plan.audio_bitrate // 1000}k {plan.channel_layout}",
    ]
    if plan.hdr is not None:
        parts.append(f"hdr {plan.hdr.color_transfer}")
    if plan.pixel_format_filter:
        parts.append(plan.pixel_format_filter)
    return ", ".join(parts)
