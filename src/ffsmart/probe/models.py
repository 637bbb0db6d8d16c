"""Data models for capability probing.

A CapabilitySnapshot is the product of one benchmark run on one set of
hardware. It is immutable once built and is what the cache persists and the
decision engine consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ffsmart.hardware.accelerators import (
    DEFAULT_VAAPI_DEVICE,
    get_profile,
    resolve_encoder,
)
from ffsmart.hardware.models import Accelerator, Codec, HardwareFingerprint, PowerMode
from ffsmart.probe.sample import SampleHandle


@dataclass(frozen=True)
class EncoderCandidate:
    """One accelerator/codec/power-mode combination to benchmark."""

    accelerator: Accelerator
    codec: Codec
    power_mode: PowerMode = PowerMode.NORMAL

    def __post_init__(self) -> None:
        if (
            self.power_mode is PowerMode.LOW_POWER
            and not get_profile(self.accelerator).supports_low_power
        ):
            raise ValueError(
                f"{self.accelerator.value} has no low-power encode path"
            )

    @property
    def encoder(self) -> str:
        """Concrete ffmpeg encoder id."""
        return resolve_encoder(self.accelerator, self.codec)

    @property
    def low_power(self) -> bool:
        return self.power_mode is PowerMode.LOW_POWER


@dataclass(frozen=True)
class BenchmarkResult:
    """Measured outcome for one candidate.

    Attributes:
        candidate: What was measured.
        encoder: Encoder id used for the trial.
        speed_multiplier: Realtime multiple achieved; 0.0 means unusable.
        supports_10bit_decode: Accelerator decoded the 10-bit sample.
        supports_10bit_encode: A 10-bit trial of this encoder succeeded and
            the accelerator's 10-bit output is trusted.
    """

    candidate: EncoderCandidate
    encoder: str
    speed_multiplier: float
    supports_10bit_decode: bool = False
    supports_10bit_encode: bool = False

    @property
    def usable(self) -> bool:
        return self.speed_multiplier > 0


@dataclass(frozen=True)
class CapabilitySnapshot:
    """Probed encoding capabilities of a host.

    Attributes:
        hardware_fingerprint: Canonical fingerprint the probe ran on.
        best_accelerator: Fastest usable accelerator.
        best_codec: Codec of the fastest usable candidate.
        best_uses_low_power: Low power was strictly faster for the best.
        supports_10bit_decode: Any accelerator decoded the 10-bit sample.
        supports_10bit_encode: Any trusted accelerator encoded hevc 10-bit.
        results: Full per-candidate result table.
        available_encoders: Encoders compiled into the probed ffmpeg.
        ffmpeg_version: Version string of the probed ffmpeg.
        probed_at: When the probe finished.
    """

    hardware_fingerprint: str
    best_accelerator: Accelerator = Accelerator.SOFTWARE
    best_codec: Codec = Codec.H264
    best_uses_low_power: bool = False
    supports_10bit_decode: bool = False
    supports_10bit_encode: bool = False
    results: tuple[BenchmarkResult, ...] = ()
    available_encoders: frozenset[str] = field(default_factory=frozenset)
    ffmpeg_version: str | None = None
    probed_at: datetime | None = None

    @classmethod
    def software_default(
        cls,
        hardware_fingerprint: str,
        results: tuple[BenchmarkResult, ...] = (),
        available_encoders: frozenset[str] = frozenset(),
        ffmpeg_version: str | None = None,
        probed_at: datetime | None = None,
    ) -> CapabilitySnapshot:
        """Snapshot used when no candidate was usable.

        Software h264 with every support flag false.
        """
        return cls(
            hardware_fingerprint=hardware_fingerprint,
            results=results,
            available_encoders=available_encoders,
            ffmpeg_version=ffmpeg_version,
            probed_at=probed_at,
        )

    @property
    def best_encoder(self) -> str:
        return resolve_encoder(self.best_accelerator, self.best_codec)

    def result_for(
        self,
        accelerator: Accelerator,
        codec: Codec,
        power_mode: PowerMode = PowerMode.NORMAL,
    ) -> BenchmarkResult | None:
        """Look up the measured result for a candidate, if it was run."""
        for result in self.results:
            candidate = result.candidate
            if (
                candidate.accelerator is accelerator
                and candidate.codec is codec
                and candidate.power_mode is power_mode
            ):
                return result
        return None

    def prefers_low_power(self, accelerator: Accelerator, codec: Codec) -> bool:
        """Whether low power measured strictly faster than normal."""
        if (accelerator, codec) == (self.best_accelerator, self.best_codec):
            return self.best_uses_low_power
        low = self.result_for(accelerator, codec, PowerMode.LOW_POWER)
        if low is None:
            return False
        normal = self.result_for(accelerator, codec, PowerMode.NORMAL)
        normal_speed = normal.speed_multiplier if normal else 0.0
        return low.speed_multiplier > normal_speed


@dataclass(frozen=True)
class ProbeContext:
    """Everything a benchmark run needs, resolved up front.

    Attributes:
        fingerprint: Hardware the probe runs on.
        encoders: Encoder names compiled into ffmpeg.
        ffmpeg_path: ffmpeg executable used for trials.
        sample: Reference 10-bit sample, or None if unavailable.
        ffmpeg_version: Version of the ffmpeg at ffmpeg_path.
        vaapi_device: Render node for VAAPI device initialization.
        force_reprobe: Caller asked to ignore any cached snapshot.
    """

    fingerprint: HardwareFingerprint
    encoders: frozenset[str]
    ffmpeg_path: Path
    sample: SampleHandle | None = None
    ffmpeg_version: str | None = None
    vaapi_device: str = DEFAULT_VAAPI_DEVICE
    force_reprobe: bool = False
