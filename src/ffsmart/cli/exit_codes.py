"""Centralized exit codes for all CLI commands.

Exit code ranges:
    0: Success
    1-9: General errors
    10-19: Validation errors (overrides, config)
    20-29: Input stream errors
    30-39: Tool/encoder errors
    40-49: Operation errors
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for ffsmart CLI commands."""

    # Success (0)
    SUCCESS = 0

    # General errors (1-9)
    GENERAL_ERROR = 1
    INTERRUPTED = 2

    # Validation errors (10-19)
    INVALID_OVERRIDE = 10
    CONFIG_ERROR = 11

    # Input stream errors (20-29)
    NO_VIDEO_STREAM = 20
    STREAM_PROBE_FAILED = 21

    # Tool/encoder errors (30-39)
    TOOL_NOT_AVAILABLE = 30
    ENCODER_UNAVAILABLE = 31

    # Operation errors (40-49)
    PROBE_FAILED = 40
    EXEC_FAILED = 41
