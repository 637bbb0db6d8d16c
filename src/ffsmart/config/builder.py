"""Configuration builder with explicit layering.

This module provides ConfigBuilder for building FFSmartConfig by composing
multiple configuration sources with explicit precedence handling.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from ffsmart.config.env import EnvReader
from ffsmart.config.models import (
    DefaultsConfig,
    FFSmartConfig,
    LoggingConfig,
    ProbeConfig,
    ToolPathsConfig,
)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None values indicate "not specified in this source" and will not
    override values from lower-precedence sources.
    """

    # Tool paths
    ffmpeg_path: Path | None = None
    ffprobe_path: Path | None = None

    # Probe config
    trial_timeout: float | None = None
    trial_duration: float | None = None
    trial_runs: int | None = None
    decode_timeout: float | None = None
    sample_url: str | None = None
    sample_timeout: float | None = None
    vaapi_device: str | None = None

    # Cache
    cache_file: Path | None = None

    # Encode defaults
    default_accelerator: str | None = None
    default_codec: str | None = None
    allow_10bit: bool | None = None
    allow_hdr: bool | None = None
    user_agent: str | None = None

    # Logging config
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


class ConfigBuilder:
    """Builds FFSmartConfig by layering ConfigSources with precedence.

    Later sources override earlier ones (for non-None values).

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config))
        builder.apply(source_from_env(reader))
        builder.apply(cli_source)
        config = builder.build(data_dir)
    """

    def __init__(self) -> None:
        """Initialize the builder with no values set."""
        self._values: dict[str, Any] = {}

    def apply(self, source: ConfigSource) -> None:
        """Apply configuration source, overriding existing values.

        Args:
            source: Configuration source to apply.
        """
        for field_obj in fields(source):
            value = getattr(source, field_obj.name)
            if value is not None:
                self._values[field_obj.name] = value

    def _get(self, key: str, default: Any) -> Any:
        return self._values.get(key, default)

    def build(self, data_dir: Path) -> FFSmartConfig:
        """Build the final FFSmartConfig with defaults for unset values.

        Args:
            data_dir: Resolved data directory.

        Returns:
            Complete FFSmartConfig with all values resolved.

        Raises:
            ValueError: If a resolved value fails validation.
        """
        tools = ToolPathsConfig(
            ffmpeg=self._get("ffmpeg_path", None),
            ffprobe=self._get("ffprobe_path", None),
        )

        probe_defaults = ProbeConfig()
        probe = ProbeConfig(
            trial_timeout=float(
                self._get("trial_timeout", probe_defaults.trial_timeout)
            ),
            trial_duration=float(
                self._get("trial_duration", probe_defaults.trial_duration)
            ),
            trial_runs=int(self._get("trial_runs", probe_defaults.trial_runs)),
            decode_timeout=float(
                self._get("decode_timeout", probe_defaults.decode_timeout)
            ),
            sample_url=self._get("sample_url", probe_defaults.sample_url),
            sample_timeout=float(
                self._get("sample_timeout", probe_defaults.sample_timeout)
            ),
            vaapi_device=self._get("vaapi_device", probe_defaults.vaapi_device),
        )

        defaults = DefaultsConfig(
            accelerator=self._get("default_accelerator", None),
            codec=self._get("default_codec", None),
            allow_10bit=self._get("allow_10bit", None),
            allow_hdr=self._get("allow_hdr", None),
            user_agent=self._get("user_agent", None),
        )

        logging_config = LoggingConfig(
            level=self._get("logging_level", "info"),
            file=self._get("logging_file", None),
            format=self._get("logging_format", "text"),
            include_stderr=self._get("logging_include_stderr", False),
            max_bytes=self._get("logging_max_bytes", 10_485_760),
            backup_count=self._get("logging_backup_count", 5),
        )

        return FFSmartConfig(
            data_dir=data_dir,
            tools=tools,
            probe=probe,
            defaults=defaults,
            logging=logging_config,
            cache_file=self._get("cache_file", None),
        )


def _optional_path(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Create ConfigSource from parsed TOML config file.

    Args:
        file_config: Parsed configuration dictionary from TOML file.

    Returns:
        ConfigSource with values from the config file.
    """
    tools = file_config.get("tools", {})
    probe = file_config.get("probe", {})
    cache = file_config.get("cache", {})
    defaults = file_config.get("defaults", {})
    logging_conf = file_config.get("logging", {})

    return ConfigSource(
        # Tool paths
        ffmpeg_path=_optional_path(tools.get("ffmpeg")),
        ffprobe_path=_optional_path(tools.get("ffprobe")),
        # Probe
        trial_timeout=probe.get("trial_timeout"),
        trial_duration=probe.get("trial_duration"),
        trial_runs=probe.get("trial_runs"),
        decode_timeout=probe.get("decode_timeout"),
        sample_url=probe.get("sample_url"),
        sample_timeout=probe.get("sample_timeout"),
        vaapi_device=probe.get("vaapi_device"),
        # Cache
        cache_file=_optional_path(cache.get("file")),
        # Encode defaults
        default_accelerator=defaults.get("accelerator"),
        default_codec=defaults.get("codec"),
        allow_10bit=defaults.get("allow_10bit"),
        allow_hdr=defaults.get("allow_hdr"),
        user_agent=defaults.get("user_agent"),
        # Logging
        logging_level=logging_conf.get("level"),
        logging_file=_optional_path(logging_conf.get("file")),
        logging_format=logging_conf.get("format"),
        logging_include_stderr=logging_conf.get("include_stderr"),
        logging_max_bytes=logging_conf.get("max_bytes"),
        logging_backup_count=logging_conf.get("backup_count"),
    )


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create ConfigSource from environment variables.

    Args:
        reader: EnvReader instance for reading environment variables.

    Returns:
        ConfigSource with values from environment variables.
    """
    return ConfigSource(
        # Tool paths
        ffmpeg_path=reader.get_path("FFSMART_FFMPEG_PATH"),
        ffprobe_path=reader.get_path("FFSMART_FFPROBE_PATH"),
        # Probe
        trial_timeout=reader.get_float("FFSMART_TRIAL_TIMEOUT"),
        trial_runs=reader.get_int("FFSMART_TRIAL_RUNS"),
        sample_url=reader.get_str("FFSMART_SAMPLE_URL"),
        # Shared with other VAAPI tooling, hence no prefix
        vaapi_device=reader.get_str("VAAPI_DEVICE"),
        # Cache
        cache_file=reader.get_path("FFSMART_CACHE_FILE", must_exist=False),
        # Logging
        logging_level=reader.get_str("FFSMART_LOG_LEVEL"),
        logging_format=reader.get_str("FFSMART_LOG_FORMAT"),
    )
