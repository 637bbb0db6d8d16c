"""ffsmart plan and run commands.

Both commands profile the input, resolve capabilities and decide on an
encoding plan. `plan` prints it; `run` replaces the process with ffmpeg
streaming MPEG-TS to stdout.
"""

import json
import logging
import os
import shlex
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import click

from ffsmart.cli.exit_codes import ExitCode
from ffsmart.config import FFSmartConfig
from ffsmart.executor import build_ffmpeg_args, describe_plan
from ffsmart.introspector import (
    FFprobeStreamProber,
    NoVideoStreamError,
    StreamProbeError,
    StreamProfile,
)
from ffsmart.planner import (
    EncodeOverrides,
    EncoderUnavailableError,
    EncodingPlan,
    Passthrough,
    UnknownAcceleratorError,
    UnknownCodecError,
    decide,
    use_hw_decode,
)
from ffsmart.probe import CapabilitySnapshot, ProbeError
from ffsmart.probe.service import resolve_capabilities
from ffsmart.tools.detection import find_tool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
    """Everything the plan and run commands need to report or execute."""

    profile: StreamProfile
    caps: CapabilitySnapshot
    plan: EncodingPlan
    args: list[str]


def plan_to_dict(plan: EncodingPlan) -> dict[str, Any]:
    """Convert a plan into a JSON-compatible dict."""
    if isinstance(plan, Passthrough):
        return {"mode": "passthrough", "reason": plan.reason.value}
    return {
        "mode": "transcode",
        "accelerator": plan.accelerator.value,
        "codec": plan.codec.value,
        "encoder": plan.encoder,
        "low_power": plan.low_power,
        "video_bitrate": plan.video_bitrate,
        "max_bitrate": plan.max_bitrate,
        "buffer_size": plan.buffer_size,
        "gop": plan.gop,
        "frame_rate": plan.frame_rate,
        "b_frames": plan.b_frames,
        "audio_bitrate": plan.audio_bitrate,
        "channel_layout": plan.channel_layout,
        "audio_channels": plan.audio_channels,
        "hdr": (
            {
                "color_transfer": plan.hdr.color_transfer,
                "color_primaries": plan.hdr.color_primaries,
                "colorspace": plan.hdr.colorspace,
            }
            if plan.hdr
            else None
        ),
        "pixel_format_filter": plan.pixel_format_filter,
        "source_10bit": plan.source_10bit,
        "gop_fallback": plan.gop_fallback,
        "channel_layout_forced": plan.channel_layout_forced,
        "diagnostics": list(plan.diagnostics),
    }


def _tri_state(allow: bool | None, default: bool | None) -> bool | None:
    return allow if allow is not None else default


def _encode_options(func: Callable) -> Callable:
    """Attach the options shared by plan and run."""
    options = [
        click.option(
            "--input",
            "-i",
            "url",
            required=True,
            help="Input URL or path.",
        ),
        click.option("--user-agent", default=None, help="HTTP User-Agent."),
        click.option(
            "--accel",
            default=None,
            help="Force an accelerator (nvenc, qsv, vaapi, videotoolbox, "
            "v4l2m2m, software).",
        ),
        click.option("--vc", "codec", default=None, help="Force h264 or hevc output."),
        click.option(
            "--10bit/--no-10bit",
            "allow_10bit",
            default=None,
            help="Allow or forbid transcoding 10-bit sources.",
        ),
        click.option(
            "--hdr/--no-hdr",
            "allow_hdr",
            default=None,
            help="Allow or forbid transcoding HDR sources.",
        ),
        click.option(
            "--refresh",
            is_flag=True,
            help="Benchmark again instead of using cached capabilities.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_plan(
    ctx: click.Context,
    url: str,
    user_agent: str | None,
    accel: str | None,
    codec: str | None,
    allow_10bit: bool | None,
    allow_hdr: bool | None,
    refresh: bool,
    *,
    ffmpeg: str = "ffmpeg",
) -> PlanResult:
    """Profile the input and decide how to encode it.

    Exits the command with a specific ExitCode on any fatal error.
    """
    config: FFSmartConfig = ctx.obj["config"]
    defaults = config.defaults
    user_agent = user_agent or defaults.user_agent

    overrides = EncodeOverrides(
        accelerator=accel or defaults.accelerator,
        codec=codec or defaults.codec,
        allow_10bit=_tri_state(allow_10bit, defaults.allow_10bit),
        allow_hdr=_tri_state(allow_hdr, defaults.allow_hdr),
        force_reprobe=refresh,
    )

    try:
        prober = ctx.obj.get("prober") or FFprobeStreamProber(config.tools.ffprobe)
        profile = prober.profile(url, user_agent=user_agent)
    except NoVideoStreamError as e:
        click.echo(f"Error: No usable video stream in {url}: {e}", err=True)
        ctx.exit(ExitCode.NO_VIDEO_STREAM)
    except StreamProbeError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.STREAM_PROBE_FAILED)

    try:
        caps = resolve_capabilities(config, force_reprobe=overrides.force_reprobe)
    except KeyboardInterrupt:
        click.echo("Interrupted.", err=True)
        ctx.exit(ExitCode.INTERRUPTED)
    except ProbeError as e:
        click.echo(f"Error: Capability probe failed: {e}", err=True)
        ctx.exit(ExitCode.PROBE_FAILED)

    try:
        plan = decide(profile, caps, overrides)
    except (UnknownAcceleratorError, UnknownCodecError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.INVALID_OVERRIDE)
    except EncoderUnavailableError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.ENCODER_UNAVAILABLE)

    args = build_ffmpeg_args(
        plan,
        url,
        user_agent=user_agent,
        vaapi_device=config.probe.vaapi_device,
        hw_decode=use_hw_decode(profile, caps),
        ffmpeg=ffmpeg,
    )
    return PlanResult(profile=profile, caps=caps, plan=plan, args=args)


@click.command("plan")
@_encode_options
@click.option("--json", "json_output", is_flag=True, help="Output the plan as JSON.")
@click.option(
    "--args",
    "args_output",
    is_flag=True,
    help="Output only the ffmpeg command line.",
)
@click.pass_context
def plan_command(
    ctx: click.Context,
    url: str,
    user_agent: str | None,
    accel: str | None,
    codec: str | None,
    allow_10bit: bool | None,
    allow_hdr: bool | None,
    refresh: bool,
    json_output: bool,
    args_output: bool,
) -> None:
    """Show how an input would be encoded on this host.

    Examples:
        ffsmart plan -i https://example.com/live.m3u8
        ffsmart plan -i movie.mkv --vc hevc --json
        ffsmart plan -i movie.mkv --accel software --args
    """
    if json_output and args_output:
        raise click.UsageError("--json and --args are mutually exclusive")

    tools = ctx.obj["config"].tools
    result = build_plan(
        ctx,
        url,
        user_agent,
        accel,
        codec,
        allow_10bit,
        allow_hdr,
        refresh,
        ffmpeg=str(tools.ffmpeg) if tools.ffmpeg else "ffmpeg",
    )

    if args_output:
        click.echo(shlex.join(result.args))
        return

    if json_output:
        output = {
            "input": url,
            "profile": {
                "video_codec": result.profile.video_codec,
                "width": result.profile.width,
                "height": result.profile.height,
                "pixel_format": result.profile.pixel_format,
                "color_transfer": result.profile.color_transfer,
                "frame_rate": result.profile.frame_rate,
                "is_hdr": result.profile.is_hdr,
                "is_10bit": result.profile.is_10bit,
                "is_uhd": result.profile.is_uhd,
            },
            "hardware_fingerprint": result.caps.hardware_fingerprint,
            "plan": plan_to_dict(result.plan),
            "args": result.args,
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo(f"Input:   {url}")
    click.echo(
        f"Source:  {result.profile.video_codec} "
        f"{result.profile.width}x{result.profile.height} "
        f"{result.profile.pixel_format or '?'} @ {result.profile.frame_rate or '?'}"
    )
    click.echo(f"Host:    {result.caps.hardware_fingerprint}")
    click.echo(f"Plan:    {describe_plan(result.plan)}")
    for note in getattr(result.plan, "diagnostics", ()):
        click.echo(f"  ! {note}")
    click.echo(f"Command: {shlex.join(result.args)}")


@click.command("run")
@_encode_options
@click.pass_context
def run_command(
    ctx: click.Context,
    url: str,
    user_agent: str | None,
    accel: str | None,
    codec: str | None,
    allow_10bit: bool | None,
    allow_hdr: bool | None,
    refresh: bool,
) -> None:
    """Stream an input as MPEG-TS to stdout with the best encoder.

    The process is replaced by ffmpeg; stdout carries only the stream.

    Example:
        ffsmart run -i https://example.com/live.m3u8 | mpv -
    """
    config: FFSmartConfig = ctx.obj["config"]
    ffmpeg_path = find_tool("ffmpeg", config.tools.ffmpeg)
    if ffmpeg_path is None:
        click.echo(
            "Error: ffmpeg is not installed or not in PATH. "
            "Install ffmpeg or set FFSMART_FFMPEG_PATH.",
            err=True,
        )
        ctx.exit(ExitCode.TOOL_NOT_AVAILABLE)

    result = build_plan(
        ctx,
        url,
        user_agent,
        accel,
        codec,
        allow_10bit,
        allow_hdr,
        refresh,
        ffmpeg=str(ffmpeg_path),
    )
    logger.info("Streaming %s: %s", url, describe_plan(result.plan))

    try:
        os.execv(result.args[0], result.args)  # nosec B606
    except OSError as e:
        click.echo(f"Error: Could not start ffmpeg: {e}", err=True)
        ctx.exit(ExitCode.EXEC_FAILED)
