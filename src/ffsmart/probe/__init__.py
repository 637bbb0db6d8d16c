"""Capability probing: sample download, encoder benchmark and caching."""

from ffsmart.probe.benchmark import EncoderBenchmark, ProbeSettings
from ffsmart.probe.cache import CapabilityCache
from ffsmart.probe.exceptions import ProbeCancelledError, ProbeError
from ffsmart.probe.models import (
    BenchmarkResult,
    CapabilitySnapshot,
    EncoderCandidate,
    ProbeContext,
)
from ffsmart.probe.sample import (
    CapabilitySampleProvider,
    SampleHandle,
    SampleUnavailable,
)
from ffsmart.probe.service import resolve_capabilities

__all__ = [
    "BenchmarkResult",
    "CapabilityCache",
    "CapabilitySampleProvider",
    "CapabilitySnapshot",
    "EncoderBenchmark",
    "EncoderCandidate",
    "ProbeCancelledError",
    "ProbeContext",
    "ProbeError",
    "ProbeSettings",
    "SampleHandle",
    "SampleUnavailable",
    "resolve_capabilities",
]
