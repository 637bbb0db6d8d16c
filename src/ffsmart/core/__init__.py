"""Core utilities shared across ffsmart packages."""

from ffsmart.core.subprocess_utils import CommandCancelledError, run_command

__all__ = ["CommandCancelledError", "run_command"]
