"""Logging configuration for ffsmart.

stdout belongs to the media stream: `ffsmart run` writes MPEG-TS there, so
no handler installed here ever targets it, and a log file that resolves to
stdout is refused. Handlers are tagged so that reconfiguring only replaces
ffsmart's own handlers and leaves any others on the root logger alone.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from ffsmart.logging.context import TrialContextFilter
from ffsmart.logging.handlers import JSONFormatter

if TYPE_CHECKING:
    from ffsmart.config.models import LoggingConfig

_LEVEL_MAP: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Third-party loggers that flood info/debug output with per-request detail
NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

_STDOUT_ALIASES = frozenset({"-", "/dev/stdout", "/dev/fd/1", "/proc/self/fd/1"})

_TEXT_FORMAT = "%(asctime)s - %(trial_tag)s%(name)s - %(levelname)s - %(message)s"

_OWNED = "_ffsmart_handler"


def _is_stdout(path: Path) -> bool:
    return str(path) in _STDOUT_ALIASES


def _open_log_file(config: LoggingConfig) -> logging.Handler | None:
    file_path = Path(config.file).expanduser()
    if _is_stdout(file_path):
        sys.stderr.write(
            f"Warning: Ignoring log file {config.file}: stdout carries the stream\n"
        )
        return None
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            file_path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Could not open log file {config.file}: {e}\n")
        return None


def configure_logging(config: LoggingConfig) -> None:
    """Install ffsmart's log handlers on the root logger.

    Records go to the configured file, to stderr, or both. Without a usable
    file, stderr is always used. Every handler carries the trial context
    filter so benchmark lines are tagged with the accelerator under test.

    Args:
        config: Logging configuration.
    """
    level = _LEVEL_MAP.get(config.level.casefold(), logging.INFO)

    if config.format.casefold() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        # trial_tag is "[qsv:h264_qsv] " during a benchmark trial, else empty
        formatter = logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")

    handlers: list[logging.Handler] = []
    if config.file:
        file_handler = _open_log_file(config)
        if file_handler is not None:
            handlers.append(file_handler)
    if config.include_stderr or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    root_logger = logging.getLogger()
    for handler in [h for h in root_logger.handlers if getattr(h, _OWNED, False)]:
        root_logger.removeHandler(handler)
        handler.close()

    context_filter = TrialContextFilter()
    for handler in handlers:
        setattr(handler, _OWNED, True)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    noisy_level = level if level == logging.DEBUG else max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
