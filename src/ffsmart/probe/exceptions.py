"""Capability probe exceptions.

Most probe problems are not exceptions at all: failed trials score zero, a
missing sample skips the 10-bit decode check and a bad cache is a miss. Only
caller-initiated cancellation interrupts a probe.
"""


class ProbeError(Exception):
    """Base class for capability probe errors."""


class ProbeCancelledError(ProbeError):
    """Raised when the caller cancels a running probe."""

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Capability probe cancelled during {stage}")
