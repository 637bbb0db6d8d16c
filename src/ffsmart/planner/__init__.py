"""Encoding decisions: stream profile + capabilities -> encoding plan."""

from ffsmart.planner.decisions import decide, use_hw_decode
from ffsmart.planner.exceptions import (
    EncoderUnavailableError,
    PlanError,
    UnknownAcceleratorError,
    UnknownCodecError,
)
from ffsmart.planner.models import (
    EncodeOverrides,
    EncodingPlan,
    HdrMetadata,
    Passthrough,
    PassthroughReason,
    Transcode,
)

__all__ = [
    "EncodeOverrides",
    "EncoderUnavailableError",
    "EncodingPlan",
    "HdrMetadata",
    "Passthrough",
    "PassthroughReason",
    "PlanError",
    "Transcode",
    "UnknownAcceleratorError",
    "UnknownCodecError",
    "decide",
    "use_hw_decode",
]
