"""Capability resolution: cache first, benchmark on a miss.

This is the main entry point for obtaining a CapabilitySnapshot. It will
use the cached snapshot if it was measured on the same hardware with the
same ffmpeg, or run the benchmark and persist its result otherwise.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from ffsmart.hardware.fingerprint import HardwareFingerprinter
from ffsmart.probe.benchmark import EncoderBenchmark, ProbeSettings
from ffsmart.probe.cache import CapabilityCache
from ffsmart.probe.models import CapabilitySnapshot, ProbeContext
from ffsmart.probe.sample import CapabilitySampleProvider, SampleHandle
from ffsmart.tools.detection import detect_ffmpeg

if TYPE_CHECKING:
    from ffsmart.config.models import FFSmartConfig

logger = logging.getLogger(__name__)


def resolve_capabilities(
    config: FFSmartConfig,
    *,
    force_reprobe: bool = False,
    fingerprinter: HardwareFingerprinter | None = None,
    benchmark: EncoderBenchmark | None = None,
    sample_provider: CapabilitySampleProvider | None = None,
    cancel_event: threading.Event | None = None,
) -> CapabilitySnapshot:
    """Return the capability snapshot for this host.

    Args:
        config: Resolved configuration.
        force_reprobe: Ignore any cached snapshot and benchmark again.
        fingerprinter: Override hardware discovery (tests).
        benchmark: Override the benchmark (tests).
        sample_provider: Override the sample provider (tests).
        cancel_event: Optional event cancelling download and trials.

    Returns:
        CapabilitySnapshot. When ffmpeg itself is missing the software
        default is returned and nothing is cached.

    Raises:
        ProbeCancelledError: If cancel_event is set during the probe.
    """
    fingerprint = (fingerprinter or HardwareFingerprinter()).fingerprint()
    canonical = fingerprint.canonical()

    ffmpeg = detect_ffmpeg(config.tools.ffmpeg)
    if not ffmpeg.is_available() or ffmpeg.path is None:
        logger.warning(
            "ffmpeg unavailable (%s), assuming software h264", ffmpeg.status_message
        )
        return CapabilitySnapshot.software_default(canonical)

    cache = CapabilityCache(config.cache_path)
    if force_reprobe:
        logger.info("Forced re-probe, ignoring capability cache")
    else:
        cached = cache.load(canonical, ffmpeg.version)
        if cached is not None:
            return cached

    sample = None
    if not fingerprint.is_software:
        provider = sample_provider or CapabilitySampleProvider(
            config.samples_dir,
            url=config.probe.sample_url,
            timeout=config.probe.sample_timeout,
            cancel_event=cancel_event,
        )
        outcome = provider.ensure_sample()
        if isinstance(outcome, SampleHandle):
            sample = outcome
        else:
            logger.info("Skipping 10-bit decode checks: %s", outcome.reason)

    context = ProbeContext(
        fingerprint=fingerprint,
        encoders=frozenset(ffmpeg.encoders),
        ffmpeg_path=ffmpeg.path,
        sample=sample,
        ffmpeg_version=ffmpeg.version,
        vaapi_device=config.probe.vaapi_device,
        force_reprobe=force_reprobe,
    )

    bench = benchmark or EncoderBenchmark(
        ProbeSettings(
            trial_timeout=config.probe.trial_timeout,
            trial_duration=config.probe.trial_duration,
            trial_runs=config.probe.trial_runs,
            decode_timeout=config.probe.decode_timeout,
        ),
        cancel_event=cancel_event,
    )
    snapshot = bench.probe(context)
    cache.save(snapshot)
    return snapshot
