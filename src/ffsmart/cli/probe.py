"""ffsmart probe command.

Resolves (and optionally refreshes) the capability snapshot of this host
and reports the benchmark result table.
"""

import csv
import json
import logging
from pathlib import Path

import click

from ffsmart.cli.exit_codes import ExitCode
from ffsmart.config import FFSmartConfig
from ffsmart.probe import CapabilityCache, CapabilitySnapshot, ProbeError
from ffsmart.probe.cache import serialize_snapshot
from ffsmart.probe.service import resolve_capabilities

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "fingerprint",
    "accel",
    "codec",
    "encoder",
    "mode",
    "speed",
    "10bit_decode",
    "10bit_encode",
)


def _format_flag(value: bool) -> str:
    return "yes" if value else "no"


def write_results_csv(snapshot: CapabilitySnapshot, path: Path) -> int:
    """Export the per-candidate result table as CSV.

    Returns:
        Number of data rows written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for result in snapshot.results:
            candidate = result.candidate
            writer.writerow(
                [
                    snapshot.hardware_fingerprint,
                    candidate.accelerator.value,
                    candidate.codec.value,
                    result.encoder,
                    candidate.power_mode.value,
                    f"{result.speed_multiplier:.2f}",
                    int(result.supports_10bit_decode),
                    int(result.supports_10bit_encode),
                ]
            )
    return len(snapshot.results)


def _print_summary(snapshot: CapabilitySnapshot) -> None:
    click.echo("ffsmart Capability Probe")
    click.echo("=" * 40)
    click.echo(f"  Fingerprint: {snapshot.hardware_fingerprint}")
    click.echo(f"  ffmpeg:      {snapshot.ffmpeg_version or 'unknown'}")
    if snapshot.probed_at:
        click.echo(f"  Probed at:   {snapshot.probed_at.isoformat()}")
    click.echo()

    lp = " (low power)" if snapshot.best_uses_low_power else ""
    click.echo(
        f"  Best: {snapshot.best_accelerator.value}/{snapshot.best_codec.value} "
        f"-> {snapshot.best_encoder}{lp}"
    )
    click.echo(f"  10-bit decode: {_format_flag(snapshot.supports_10bit_decode)}")
    click.echo(f"  10-bit encode: {_format_flag(snapshot.supports_10bit_encode)}")

    if snapshot.results:
        click.echo()
        click.echo(f"  {'Encoder':<20} {'Mode':<10} {'Speed':>8}  10-bit dec/enc")
        click.echo("  " + "-" * 56)
        for result in snapshot.results:
            speed = (
                f"{result.speed_multiplier:.2f}x" if result.usable else "failed"
            )
            click.echo(
                f"  {result.encoder:<20} {result.candidate.power_mode.value:<10} "
                f"{speed:>8}  "
                f"{_format_flag(result.supports_10bit_decode)}/"
                f"{_format_flag(result.supports_10bit_encode)}"
            )


@click.command("probe")
@click.option(
    "--refresh",
    is_flag=True,
    help="Ignore the capability cache and benchmark again.",
)
@click.option(
    "--clear-cache",
    is_flag=True,
    help="Delete the capability cache and exit.",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output the snapshot as JSON.",
)
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Also export the benchmark result table to a CSV file.",
)
@click.pass_context
def probe_command(
    ctx: click.Context,
    refresh: bool,
    clear_cache: bool,
    json_output: bool,
    csv_path: Path | None,
) -> None:
    """Benchmark available encoders and report this host's capabilities.

    Results are cached per hardware fingerprint; subsequent runs reuse them
    until the hardware or the ffmpeg version changes.

    Examples:
        ffsmart probe
        ffsmart probe --refresh --csv results.csv
        ffsmart probe --json
    """
    config: FFSmartConfig = ctx.obj["config"]

    if clear_cache:
        CapabilityCache(config.cache_path).invalidate()
        click.echo(f"Cleared capability cache: {config.cache_path}")
        ctx.exit(ExitCode.SUCCESS)

    try:
        snapshot = resolve_capabilities(config, force_reprobe=refresh)
    except KeyboardInterrupt:
        click.echo("Interrupted.", err=True)
        ctx.exit(ExitCode.INTERRUPTED)
    except ProbeError as e:
        logger.error("Capability probe failed: %s", e)
        click.echo(f"Error: Capability probe failed: {e}", err=True)
        ctx.exit(ExitCode.PROBE_FAILED)

    if csv_path is not None:
        try:
            rows = write_results_csv(snapshot, csv_path)
        except OSError as e:
            click.echo(f"Error: Could not write {csv_path}: {e}", err=True)
            ctx.exit(ExitCode.GENERAL_ERROR)
        logger.info("Wrote %d result rows to %s", rows, csv_path)

    if json_output:
        click.echo(json.dumps(serialize_snapshot(snapshot), indent=2))
    else:
        _print_summary(snapshot)
