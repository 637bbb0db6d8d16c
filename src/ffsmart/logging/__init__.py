"""Logging setup and trial context for ffsmart."""

from ffsmart.logging.config import configure_logging
from ffsmart.logging.context import TrialContextFilter, trial_context
from ffsmart.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "TrialContextFilter",
    "configure_logging",
    "trial_context",
]
