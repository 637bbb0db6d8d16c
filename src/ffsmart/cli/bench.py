"""ffsmart bench command.

Runs the production command line for every accelerator/codec combination
against real sources and reports end-to-end throughput.
"""

import logging
from datetime import datetime
from pathlib import Path

import click

from ffsmart.cli.exit_codes import ExitCode
from ffsmart.config import FFSmartConfig
from ffsmart.core.subprocess_utils import run_command
from ffsmart.executor.command import is_network_source
from ffsmart.executor.pipeline import (
    DEFAULT_DURATION,
    PipelineBenchmark,
    PipelineResult,
    parse_source_arg,
    pipeline_cases,
    write_pipeline_csv,
)
from ffsmart.hardware.accelerators import order_by_priority
from ffsmart.hardware.models import Accelerator
from ffsmart.introspector import FFprobeStreamProber, StreamProbeError
from ffsmart.probe import ProbeError
from ffsmart.probe.service import resolve_capabilities
from ffsmart.tools.detection import find_tool

logger = logging.getLogger(__name__)


def format_result(result: PipelineResult) -> str:
    """One report line, aligned like the capability probe table."""
    head = f"  {result.case.accelerator.value:<10} {result.case.codec.value:<5} "
    if not result.ok:
        return head + "FAILED"
    return (
        head
        + f"{result.frames:>5} frames, {result.fps:>6g} fps, "
        + f"{result.speed:>5g}x realtime"
    )


def _default_csv_path(config: FFSmartConfig) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return config.results_dir / f"pipeline_results_{stamp}.csv"


@click.command("bench")
@click.argument("sources", nargs=-1, required=True)
@click.option(
    "--duration",
    type=click.FloatRange(min=1),
    default=DEFAULT_DURATION,
    show_default=True,
    help="Seconds of output per run.",
)
@click.option(
    "--accel",
    "accels",
    multiple=True,
    type=click.Choice([a.value for a in Accelerator]),
    help="Limit runs to these accelerators (repeatable).",
)
@click.option("--user-agent", default=None, help="HTTP User-Agent.")
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="CSV export path (default: timestamped file in the data directory).",
)
@click.pass_context
def bench_command(
    ctx: click.Context,
    sources: tuple[str, ...],
    duration: float,
    accels: tuple[str, ...],
    user_agent: str | None,
    csv_path: Path | None,
) -> None:
    """Benchmark complete encoding pipelines against real sources.

    Each SOURCE is a URL or file, optionally named as NAME=SOURCE. Every
    accelerator found by the capability probe is run with h264 and hevc
    output; successful runs are exported as CSV.

    Examples:
        ffsmart bench cnn=https://example.com/live/index.m3u8
        ffsmart bench movie.mkv --duration 30 --accel qsv --accel software
    """
    config: FFSmartConfig = ctx.obj["config"]
    user_agent = user_agent or config.defaults.user_agent

    ffmpeg_path = find_tool("ffmpeg", config.tools.ffmpeg)
    if ffmpeg_path is None:
        click.echo(
            "Error: ffmpeg is not installed or not in PATH. "
            "Install ffmpeg or set FFSMART_FFMPEG_PATH.",
            err=True,
        )
        ctx.exit(ExitCode.TOOL_NOT_AVAILABLE)

    try:
        caps = resolve_capabilities(config)
    except KeyboardInterrupt:
        click.echo("Interrupted.", err=True)
        ctx.exit(ExitCode.INTERRUPTED)
    except ProbeError as e:
        logger.error("Capability probe failed: %s", e)
        click.echo(f"Error: Capability probe failed: {e}", err=True)
        ctx.exit(ExitCode.PROBE_FAILED)

    if accels:
        accelerators = order_by_priority(Accelerator(a) for a in accels)
    else:
        found = {result.candidate.accelerator for result in caps.results}
        accelerators = order_by_priority(found | {Accelerator.SOFTWARE})
    cases = pipeline_cases(accelerators)

    prober = ctx.obj.get("prober") or FFprobeStreamProber(config.tools.ffprobe)
    benchmark = PipelineBenchmark(
        caps,
        duration=duration,
        ffmpeg=str(ffmpeg_path),
        vaapi_device=config.probe.vaapi_device,
        user_agent=user_agent,
        runner=ctx.obj.get("runner", run_command),
    )

    click.echo("ffsmart Pipeline Benchmark")
    click.echo("=" * 40)
    click.echo(f"  Duration:     {duration:g}s per run")
    click.echo(f"  Accelerators: {' '.join(a.value for a in accelerators)}")
    click.echo()

    results: list[PipelineResult] = []
    interrupted = False
    try:
        for arg in sources:
            name, source = parse_source_arg(arg)
            live = " (LIVE)" if is_network_source(source) else ""
            click.echo(f"=== Source: {name}{live} ===")
            try:
                profile = prober.profile(source, user_agent=user_agent)
            except StreamProbeError as e:
                logger.warning("Skipping %s: %s", name, e)
                click.echo(f"  Skipped: {e}")
                click.echo()
                continue
            results.extend(
                benchmark.run_source(
                    name,
                    source,
                    profile,
                    cases,
                    on_result=lambda r: click.echo(format_result(r)),
                )
            )
            click.echo()
    except KeyboardInterrupt:
        interrupted = True
        click.echo("Interrupted.", err=True)

    csv_path = csv_path or _default_csv_path(config)
    try:
        rows = write_pipeline_csv(results, csv_path)
    except OSError as e:
        click.echo(f"Error: Could not write {csv_path}: {e}", err=True)
        ctx.exit(ExitCode.GENERAL_ERROR)
    logger.info("Wrote %d pipeline rows to %s", rows, csv_path)
    click.echo(f"Results saved to: {csv_path}")

    if interrupted:
        ctx.exit(ExitCode.INTERRUPTED)
    if not any(result.ok for result in results):
        ctx.exit(ExitCode.GENERAL_ERROR)
