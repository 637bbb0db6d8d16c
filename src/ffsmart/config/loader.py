"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (FFSMART_*, VAAPI_DEVICE)
3. Config file (<data_dir>/config.toml)
4. Default values

Environment variables:
- FFSMART_DATA_DIR: Data directory (overrides ~/.ffsmart/)
- FFSMART_CONFIG_PATH: Path to config file (overrides default location)
- FFSMART_FFMPEG_PATH / FFSMART_FFPROBE_PATH: Tool paths
- FFSMART_TRIAL_TIMEOUT / FFSMART_TRIAL_RUNS: Benchmark limits
- FFSMART_SAMPLE_URL: Reference sample location
- FFSMART_CACHE_FILE: Capability cache location
- FFSMART_LOG_LEVEL / FFSMART_LOG_FORMAT: Logging
- VAAPI_DEVICE: VAAPI render node (default /dev/dri/renderD128)
"""

from __future__ import annotations

import logging
from pathlib import Path

from ffsmart.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from ffsmart.config.env import EnvReader
from ffsmart.config.models import FFSmartConfig
from ffsmart.config.toml_parser import load_toml_file

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".ffsmart"
CONFIG_FILE_NAME = "config.toml"


def get_data_dir(env_reader: EnvReader | None = None) -> Path:
    """Get the ffsmart data directory.

    Holds the config file, the capability cache and the reference sample.
    Can be overridden by FFSMART_DATA_DIR (tilde expansion supported).

    Returns:
        Path to the data directory (~/.ffsmart/ by default).
    """
    reader = env_reader or EnvReader()
    env_path = reader.get_str("FFSMART_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_DATA_DIR


def get_default_config_path(env_reader: EnvReader | None = None) -> Path:
    """Get the config file path.

    Can be overridden by FFSMART_CONFIG_PATH.
    """
    reader = env_reader or EnvReader()
    env_path = reader.get_str("FFSMART_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_data_dir(reader) / CONFIG_FILE_NAME


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    ffmpeg_path: Path | None = None,
    ffprobe_path: Path | None = None,
    log_level: str | None = None,
    log_format: str | None = None,
    log_file: Path | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> FFSmartConfig:
    """Get ffsmart configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides FFSMART_CONFIG_PATH).
        ffmpeg_path: CLI override for ffmpeg path.
        ffprobe_path: CLI override for ffprobe path.
        log_level: CLI override for log level.
        log_format: CLI override for log format.
        log_file: CLI override for log file.
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise TomlParseError on config file parse failures.

    Returns:
        FFSmartConfig with merged configuration.

    Raises:
        TomlParseError: When strict=True and the config file cannot be parsed.
        ValueError: When a configured value is out of range.
    """
    reader = env_reader or EnvReader()

    path = config_path or get_default_config_path(reader)
    file_config = load_toml_file(path, strict=strict)

    cli_source = ConfigSource(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        logging_level=log_level,
        logging_format=log_format,
        logging_file=log_file,
    )

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config))
    builder.apply(source_from_env(reader))
    builder.apply(cli_source)

    return builder.build(get_data_dir(reader))
