"""Configuration loading for ffsmart."""

from ffsmart.config.env import EnvReader
from ffsmart.config.loader import get_config, get_data_dir, get_default_config_path
from ffsmart.config.models import (
    DefaultsConfig,
    FFSmartConfig,
    LoggingConfig,
    ProbeConfig,
    ToolPathsConfig,
)
from ffsmart.config.toml_parser import TomlParseError

__all__ = [
    "DefaultsConfig",
    "EnvReader",
    "FFSmartConfig",
    "LoggingConfig",
    "ProbeConfig",
    "TomlParseError",
    "ToolPathsConfig",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
]
