"""Encoder benchmarking.

Measures every shortlisted accelerator/codec/power-mode combination with a
short trial encode and condenses the results into a CapabilitySnapshot.

Trials run strictly one after another: running them concurrently would make
them compete for the same encoder block and skew every score. Each trial is
bounded by a hard timeout, and any failure (timeout, crash, missing device)
scores the candidate zero instead of raising.
"""

from __future__ import annotations

import logging
import re
import subprocess  # nosec B404 - needed for TimeoutExpired
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ffsmart.core import CommandCancelledError, run_command
from ffsmart.hardware.accelerators import (
    CODEC_PRIORITY,
    AcceleratorProfile,
    get_profile,
    order_by_priority,
    shortlist_accelerators,
)
from ffsmart.hardware.models import Accelerator, Codec, PowerMode
from ffsmart.logging.context import trial_context
from ffsmart.probe.exceptions import ProbeCancelledError
from ffsmart.probe.models import (
    BenchmarkResult,
    CapabilitySnapshot,
    EncoderCandidate,
    ProbeContext,
)
from ffsmart.tools.progress import speed_multiplier

logger = logging.getLogger(__name__)

TRIAL_SIZE = "1920x1080"
TRIAL_RATE = 30

# Production-representative rate control: 8 Mbps target, 1s GOP, no B-frames
TRIAL_RATE_CONTROL: tuple[str, ...] = (
    "-b:v",
    "8000000",
    "-maxrate",
    "10000000",
    "-bufsize",
    "20000000",
    "-g",
    "30",
    "-bf",
    "0",
)

# Seconds of the reference sample decoded by the 10-bit decode check
DECODE_CHECK_SECONDS = 2

# ffmpeg silently falls back to software decode when hwaccel setup fails
_HWACCEL_FALLBACK = re.compile(
    r"failed setup for format|hwaccel initiali[sz]ation returned error"
    r"|no device available for decoder|device creation failed",
    re.IGNORECASE,
)

Runner = Callable[..., tuple[str, str, int]]


@dataclass(frozen=True)
class ProbeSettings:
    """Limits applied to benchmark trials (seconds unless noted)."""

    trial_timeout: float = 30.0
    trial_duration: float = 5.0
    trial_runs: int = 1
    decode_timeout: float = 30.0


def build_trial_command(
    ffmpeg_path: Path,
    profile: AcceleratorProfile,
    codec: Codec,
    *,
    duration: float,
    low_power: bool = False,
    pix_fmt: str | None = None,
    vaapi_device: str,
) -> list[str]:
    """Build the ffmpeg command for one trial encode of a synthetic clip.

    Args:
        ffmpeg_path: ffmpeg executable.
        profile: Accelerator under test.
        codec: Output codec.
        duration: Clip length in seconds.
        low_power: Add the accelerator's low-power options.
        pix_fmt: Force an input pixel format (10-bit trials).
        vaapi_device: Render node for VAAPI device initialization.

    Returns:
        Command as a list of arguments.
    """
    cmd = [str(ffmpeg_path), "-hide_banner", "-nostdin", "-y"]
    cmd.extend(profile.device_init_args(vaapi_device))
    cmd.extend(["-f", "lavfi", "-i", f"testsrc2=size={TRIAL_SIZE}:rate={TRIAL_RATE}"])
    cmd.extend(["-t", f"{duration:g}"])

    upload = profile.upload_chain(pix_fmt or "nv12")
    if upload:
        cmd.extend(["-vf", upload])
    elif pix_fmt:
        cmd.extend(["-pix_fmt", pix_fmt])

    cmd.extend(["-c:v", profile.encoder_for(codec)])
    cmd.extend(TRIAL_RATE_CONTROL)
    cmd.extend(profile.rate_control_args)
    if low_power:
        cmd.extend(profile.low_power_args)

    cmd.extend(["-an", "-f", "null", "-"])
    return cmd


def build_decode_check_command(
    ffmpeg_path: Path,
    profile: AcceleratorProfile,
    sample_path: Path,
    *,
    vaapi_device: str,
) -> list[str]:
    """Build the ffmpeg command decoding the 10-bit sample on the device."""
    cmd = [str(ffmpeg_path), "-hide_banner", "-nostdin"]
    cmd.extend(profile.input_args(vaapi_device))
    cmd.extend(["-t", str(DECODE_CHECK_SECONDS), "-i", str(sample_path)])
    cmd.extend(["-an", "-f", "null", "-"])
    return cmd


def select_best(
    results: Sequence[BenchmarkResult],
    accelerators: Sequence[Accelerator],
) -> tuple[Accelerator, Codec, bool] | None:
    """Pick the fastest candidate.

    Each accelerator/codec pair scores max(normal, low_power). Pairs are
    visited in priority order and only a strictly higher score replaces the
    current best, so ties keep the earlier accelerator.

    Returns:
        (accelerator, codec, uses_low_power), or None if nothing scored
        above zero.
    """
    speeds: dict[tuple[Accelerator, Codec, PowerMode], float] = {
        (r.candidate.accelerator, r.candidate.codec, r.candidate.power_mode): (
            r.speed_multiplier
        )
        for r in results
    }

    best: tuple[Accelerator, Codec, bool] | None = None
    best_score = 0.0
    for accel in accelerators:
        for codec in CODEC_PRIORITY:
            normal = speeds.get((accel, codec, PowerMode.NORMAL), 0.0)
            low = speeds.get((accel, codec, PowerMode.LOW_POWER), 0.0)
            score = max(normal, low)
            if score > best_score:
                best_score = score
                best = (accel, codec, low > normal)
    return best


class EncoderBenchmark:
    """Runs trial encodes and builds a CapabilitySnapshot.

    The subprocess runner is injectable so tests can script trial outcomes.
    """

    def __init__(
        self,
        settings: ProbeSettings | None = None,
        runner: Runner = run_command,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the benchmark.

        Args:
            settings: Trial limits.
            runner: Callable with run_command's signature.
            cancel_event: Optional event checked between trials and passed
                to the runner so a running trial is killed when it is set.
        """
        self._settings = settings or ProbeSettings()
        self._runner = runner
        self._cancel_event = cancel_event

    def probe(
        self,
        context: ProbeContext,
        accelerators: Iterable[Accelerator] | None = None,
    ) -> CapabilitySnapshot:
        """Benchmark candidates and select the best.

        Args:
            context: Resolved probe inputs.
            accelerators: Accelerators to test. Defaults to the shortlist
                derived from the fingerprint. Software is always added.

        Returns:
            CapabilitySnapshot for context.fingerprint. Never raises for
            trial failures; with no usable candidate the snapshot is the
            software/h264 default.

        Raises:
            ProbeCancelledError: If the cancel event is set.
        """
        if accelerators is None:
            order = shortlist_accelerators(context.fingerprint, context.encoders)
        else:
            order = order_by_priority([*accelerators, Accelerator.SOFTWARE])

        fingerprint = context.fingerprint.canonical()
        logger.info(
            "Probing encoders for %s: %s",
            fingerprint,
            ", ".join(a.value for a in order),
        )

        results: list[BenchmarkResult] = []
        any_10bit_decode = False
        for accel in order:
            profile = get_profile(accel)
            decodes_10bit = self._check_10bit_decode(context, profile)
            any_10bit_decode = any_10bit_decode or decodes_10bit
            results.extend(self._benchmark_accelerator(context, profile, decodes_10bit))

        probed_at = datetime.now(timezone.utc)
        best = select_best(results, order)
        if best is None:
            logger.warning(
                "No usable encoder found, falling back to software h264"
            )
            return CapabilitySnapshot.software_default(
                fingerprint,
                results=tuple(results),
                available_encoders=context.encoders,
                ffmpeg_version=context.ffmpeg_version,
                probed_at=probed_at,
            )

        best_accel, best_codec, uses_low_power = best
        snapshot = CapabilitySnapshot(
            hardware_fingerprint=fingerprint,
            best_accelerator=best_accel,
            best_codec=best_codec,
            best_uses_low_power=uses_low_power,
            supports_10bit_decode=any_10bit_decode,
            supports_10bit_encode=any(r.supports_10bit_encode for r in results),
            results=tuple(results),
            available_encoders=context.encoders,
            ffmpeg_version=context.ffmpeg_version,
            probed_at=probed_at,
        )
        logger.info(
            "Best encoder: %s%s (10-bit decode=%s, 10-bit encode=%s)",
            snapshot.best_encoder,
            " low-power" if uses_low_power else "",
            snapshot.supports_10bit_decode,
            snapshot.supports_10bit_encode,
        )
        return snapshot

    def _benchmark_accelerator(
        self,
        context: ProbeContext,
        profile: AcceleratorProfile,
        decodes_10bit: bool,
    ) -> list[BenchmarkResult]:
        results = []
        accel = profile.accelerator
        for codec in CODEC_PRIORITY:
            encoder = profile.encoder_for(codec)
            if encoder not in context.encoders:
                logger.debug("Skipping %s: not compiled into ffmpeg", encoder)
                continue

            normal_speed = self._measure(context, profile, codec, low_power=False)
            encodes_10bit = (
                codec is Codec.HEVC
                and profile.trusts_10bit_encode
                and normal_speed > 0
                and self._check_10bit_encode(context, profile)
            )
            results.append(
                BenchmarkResult(
                    candidate=EncoderCandidate(accel, codec),
                    encoder=encoder,
                    speed_multiplier=normal_speed,
                    supports_10bit_decode=decodes_10bit,
                    supports_10bit_encode=encodes_10bit,
                )
            )

            if profile.supports_low_power:
                low_speed = self._measure(context, profile, codec, low_power=True)
                results.append(
                    BenchmarkResult(
                        candidate=EncoderCandidate(accel, codec, PowerMode.LOW_POWER),
                        encoder=encoder,
                        speed_multiplier=low_speed,
                        supports_10bit_decode=decodes_10bit,
                        supports_10bit_encode=encodes_10bit,
                    )
                )
        return results

    def _measure(
        self,
        context: ProbeContext,
        profile: AcceleratorProfile,
        codec: Codec,
        low_power: bool,
    ) -> float:
        """Average speed over the configured runs; any failed run scores 0."""
        speeds = []
        for _ in range(self._settings.trial_runs):
            speed = self._run_trial(context, profile, codec, low_power=low_power)
            if speed <= 0:
                return 0.0
            speeds.append(speed)
        return sum(speeds) / len(speeds)

    def _run_trial(
        self,
        context: ProbeContext,
        profile: AcceleratorProfile,
        codec: Codec,
        low_power: bool = False,
        pix_fmt: str | None = None,
    ) -> float:
        self._check_cancelled("trial encode")
        encoder = profile.encoder_for(codec)
        cmd = build_trial_command(
            context.ffmpeg_path,
            profile,
            codec,
            duration=self._settings.trial_duration,
            low_power=low_power,
            pix_fmt=pix_fmt,
            vaapi_device=context.vaapi_device,
        )
        with trial_context(profile.accelerator.value, encoder, low_power):
            try:
                _, stderr, rc = self._runner(
                    cmd,
                    timeout=self._settings.trial_timeout,
                    cancel_event=self._cancel_event,
                )
            except CommandCancelledError as e:
                raise ProbeCancelledError("trial encode") from e
            except subprocess.TimeoutExpired:
                logger.info(
                    "Trial exceeded %ss, scoring 0", self._settings.trial_timeout
                )
                return 0.0
            except OSError as e:
                logger.warning("Trial could not start: %s", e)
                return 0.0

            if rc != 0:
                logger.info("Trial failed with exit code %d, scoring 0", rc)
                logger.debug("Trial stderr tail: %s", stderr[-500:])
                return 0.0

            speed = speed_multiplier(stderr, TRIAL_RATE)
            logger.info("Trial speed %.2fx%s", speed, f" ({pix_fmt})" if pix_fmt else "")
            return speed

    def _check_10bit_decode(
        self, context: ProbeContext, profile: AcceleratorProfile
    ) -> bool:
        if not profile.probes_10bit_decode:
            return False
        if context.sample is None:
            logger.debug(
                "No reference sample, skipping 10-bit decode check for %s",
                profile.accelerator.value,
            )
            return False

        self._check_cancelled("10-bit decode check")
        cmd = build_decode_check_command(
            context.ffmpeg_path,
            profile,
            context.sample.path,
            vaapi_device=context.vaapi_device,
        )
        with trial_context(profile.accelerator.value):
            try:
                _, stderr, rc = self._runner(
                    cmd,
                    timeout=self._settings.decode_timeout,
                    cancel_event=self._cancel_event,
                )
            except CommandCancelledError as e:
                raise ProbeCancelledError("10-bit decode check") from e
            except (subprocess.TimeoutExpired, OSError) as e:
                logger.info("10-bit decode check failed: %s", e)
                return False

            supported = rc == 0 and not _HWACCEL_FALLBACK.search(stderr)
            logger.info("10-bit decode %s", "supported" if supported else "unsupported")
            return supported

    def _check_10bit_encode(
        self, context: ProbeContext, profile: AcceleratorProfile
    ) -> bool:
        speed = self._run_trial(
            context, profile, Codec.HEVC, pix_fmt=profile.ten_bit_pix_fmt
        )
        return speed > 0

    def _check_cancelled(self, stage: str) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise ProbeCancelledError(stage)
