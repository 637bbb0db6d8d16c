"""Trial context for structured logging.

While the benchmark runs a trial encode, the accelerator and encoder under
test are carried in contextvars and injected into every log record, so that
messages from the subprocess layer can be attributed to a trial.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_accelerator: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "accelerator", default=None
)
_encoder: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "encoder", default=None
)
_low_power: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "low_power", default=False
)


@contextmanager
def trial_context(
    accelerator: str,
    encoder: str | None = None,
    low_power: bool = False,
) -> Generator[None, None, None]:
    """Context manager marking log records as belonging to a trial.

    Args:
        accelerator: Accelerator name (e.g., "qsv").
        encoder: Encoder under test (e.g., "h264_qsv").
        low_power: Whether the low-power path is being measured.

    Example:
        with trial_context("qsv", "h264_qsv", low_power=True):
            logger.info("Trial finished")  # [qsv:h264_qsv(lp)]
    """
    tokens = (
        _accelerator.set(accelerator),
        _encoder.set(encoder),
        _low_power.set(low_power),
    )
    try:
        yield
    finally:
        _accelerator.reset(tokens[0])
        _encoder.reset(tokens[1])
        _low_power.reset(tokens[2])


def get_trial_context() -> tuple[str | None, str | None, bool]:
    """Get current trial context as (accelerator, encoder, low_power)."""
    return _accelerator.get(), _encoder.get(), _low_power.get()


class TrialContextFilter(logging.Filter):
    """Logging filter that injects trial context into log records.

    Adds accelerator, encoder and low_power attributes for JSON output and a
    compact trial_tag like ``[qsv:h264_qsv(lp)] `` for text output.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject trial context into log record.

        Args:
            record: The log record to process.

        Returns:
            Always True (does not filter, only enriches).
        """
        accelerator, encoder, low_power = get_trial_context()

        record.accelerator = accelerator
        record.encoder = encoder
        record.low_power = low_power

        if accelerator:
            tag = accelerator
            if encoder:
                tag += f":{encoder}"
            if low_power:
                tag += "(lp)"
            record.trial_tag = f"[{tag}] "
        else:
            record.trial_tag = ""

        return True
