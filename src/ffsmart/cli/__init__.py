"""CLI module for ffsmart."""

import logging
from pathlib import Path

import click

from ffsmart.cli.exit_codes import ExitCode
from ffsmart.config import TomlParseError, get_config
from ffsmart.logging import configure_logging

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(package_name="ffsmart")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: $FFSMART_CONFIG_PATH or ~/.ffsmart/config.toml).",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default=None,
    help="Override log format.",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--ffmpeg",
    "ffmpeg_path",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    default=None,
    help="ffmpeg executable (default: $FFSMART_FFMPEG_PATH or PATH lookup).",
)
@click.option(
    "--ffprobe",
    "ffprobe_path",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    default=None,
    help="ffprobe executable (default: $FFSMART_FFPROBE_PATH or PATH lookup).",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    log_level: str | None,
    log_format: str | None,
    log_file: Path | None,
    ffmpeg_path: Path | None,
    ffprobe_path: Path | None,
) -> None:
    """ffsmart - Hardware-aware ffmpeg encoder selection."""
    ctx.ensure_object(dict)

    # Tests may inject a ready config
    if "config" not in ctx.obj:
        try:
            config = get_config(
                config_path=config_path,
                ffmpeg_path=ffmpeg_path,
                ffprobe_path=ffprobe_path,
                log_level=log_level,
                log_format=log_format,
                log_file=log_file,
                strict=config_path is not None,
            )
        except (TomlParseError, ValueError) as e:
            click.echo(f"Error: Invalid configuration: {e}", err=True)
            ctx.exit(ExitCode.CONFIG_ERROR)
        ctx.obj["config"] = config
        configure_logging(config.logging)

    logger.debug("ffsmart data_dir=%s", ctx.obj["config"].data_dir)


# Defer import to avoid circular dependency
def _register_commands():
    from ffsmart.cli.bench import bench_command
    from ffsmart.cli.fingerprint import fingerprint_command
    from ffsmart.cli.plan import plan_command, run_command
    from ffsmart.cli.probe import probe_command

    main.add_command(fingerprint_command)
    main.add_command(probe_command)
    main.add_command(plan_command)
    main.add_command(run_command)
    main.add_command(bench_command)


_register_commands()
