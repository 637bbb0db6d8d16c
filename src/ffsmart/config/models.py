"""Configuration data models.

This module defines dataclasses for ffsmart configuration options.
"""

from dataclasses import dataclass, field
from pathlib import Path

from ffsmart.hardware.accelerators import DEFAULT_VAAPI_DEVICE
from ffsmart.probe.sample import DEFAULT_SAMPLE_URL

CACHE_FILE_NAME = "capabilities.json"
SAMPLES_DIR_NAME = "samples"
RESULTS_DIR_NAME = "benchmark-results"


@dataclass
class ToolPathsConfig:
    """Configuration for external tool paths.

    All paths are optional. If not specified, tools are looked up in PATH.
    """

    ffmpeg: Path | None = None
    ffprobe: Path | None = None


@dataclass
class ProbeConfig:
    """Configuration for the capability benchmark."""

    # Hard limit per trial encode; the process is killed when exceeded
    trial_timeout: float = 30.0

    # Length of the synthetic clip encoded per trial (seconds)
    trial_duration: float = 5.0

    # Repetitions averaged per candidate
    trial_runs: int = 1

    # Hard limit for the 10-bit hardware decode check
    decode_timeout: float = 30.0

    sample_url: str = DEFAULT_SAMPLE_URL

    # Wall-clock budget for downloading the reference sample
    sample_timeout: float = 120.0

    vaapi_device: str = DEFAULT_VAAPI_DEVICE

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.trial_timeout <= 0:
            raise ValueError(f"trial_timeout must be positive, got {self.trial_timeout}")
        if not 0 < self.trial_duration < self.trial_timeout:
            raise ValueError(
                "trial_duration must be positive and shorter than trial_timeout, "
                f"got {self.trial_duration}"
            )
        if self.trial_runs < 1:
            raise ValueError(f"trial_runs must be at least 1, got {self.trial_runs}")
        if self.decode_timeout <= 0:
            raise ValueError(
                f"decode_timeout must be positive, got {self.decode_timeout}"
            )


@dataclass
class DefaultsConfig:
    """Default encode overrides applied when the CLI does not set them.

    None means "derive from the probed capabilities".
    """

    accelerator: str | None = None
    codec: str | None = None
    allow_10bit: bool | None = None
    allow_hdr: bool | None = None
    user_agent: str | None = None


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class FFSmartConfig:
    """Complete resolved configuration."""

    data_dir: Path
    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Explicit cache file; None places it in the data directory
    cache_file: Path | None = None

    @property
    def cache_path(self) -> Path:
        """Location of the persisted capability snapshot."""
        return self.cache_file or self.data_dir / CACHE_FILE_NAME

    @property
    def samples_dir(self) -> Path:
        """Directory holding the downloaded reference sample."""
        return self.data_dir / SAMPLES_DIR_NAME

    @property
    def results_dir(self) -> Path:
        """Default directory for pipeline benchmark CSV exports."""
        return self.data_dir / RESULTS_DIR_NAME
