"""End-to-end benchmark of rendered encoding pipelines.

Where the capability probe times bare encoders on a synthetic sample, the
pipeline benchmark runs the exact command line `ffsmart run` would execute
against real sources (live streams and local files) for a bounded duration,
and reads throughput from ffmpeg's final progress line.
"""

from __future__ import annotations

import csv
import logging
import os
import re
import subprocess  # nosec B404 - TimeoutExpired only
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from ffsmart.core.subprocess_utils import run_command
from ffsmart.executor.command import build_ffmpeg_args, is_network_source
from ffsmart.hardware.accelerators import DEFAULT_VAAPI_DEVICE
from ffsmart.hardware.models import Accelerator, Codec
from ffsmart.introspector import StreamProfile
from ffsmart.planner import EncodeOverrides, PlanError, decide, use_hw_decode
from ffsmart.probe.models import CapabilitySnapshot
from ffsmart.tools.progress import last_progress

logger = logging.getLogger(__name__)

PIPELINE_CSV_COLUMNS = ("source", "accel", "codec", "extra", "frames", "fps", "speed")

BENCH_CODECS: tuple[Codec, ...] = (Codec.H264, Codec.HEVC)

DEFAULT_DURATION = 15.0

# Extra seconds past the duration before a run is abandoned
NETWORK_GRACE = 10.0
LOCAL_GRACE = 5.0

TEN_BIT_FLAG = "-10bit"

_NAMED_SOURCE = re.compile(r"([\w.-]+)=(.+)")

Runner = Callable[..., tuple[str, str, int]]


@dataclass(frozen=True)
class PipelineCase:
    """One forced accelerator/codec combination to run."""

    accelerator: Accelerator
    codec: Codec
    allow_10bit: bool = False

    @property
    def extra(self) -> str:
        """Flag column of the CSV export."""
        return TEN_BIT_FLAG if self.allow_10bit else ""

    @property
    def label(self) -> str:
        return f"{self.accelerator.value}/{self.codec.value}"

    def overrides(self) -> EncodeOverrides:
        return EncodeOverrides(
            accelerator=self.accelerator.value,
            codec=self.codec.value,
            allow_10bit=True if self.allow_10bit else None,
        )


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one pipeline run.

    Attributes:
        source: Short source name used in reports.
        case: The combination that was run.
        frames: Frames written before the run stopped.
        fps: Final encode frame rate reported by ffmpeg.
        speed: Final realtime multiple reported by ffmpeg.
        error: Why the run produced nothing, when it failed.
    """

    source: str
    case: PipelineCase
    frames: int = 0
    fps: float = 0.0
    speed: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.frames > 0


def pipeline_cases(accelerators: Iterable[Accelerator]) -> list[PipelineCase]:
    """Expand accelerators into the h264 and hevc runs for each.

    hevc runs allow 10-bit output except on QSV, whose 10-bit encode is not
    trusted.
    """
    cases = []
    for accelerator in accelerators:
        for codec in BENCH_CODECS:
            allow_10bit = codec is Codec.HEVC and accelerator is not Accelerator.QSV
            cases.append(PipelineCase(accelerator, codec, allow_10bit))
    return cases


def parse_source_arg(arg: str) -> tuple[str, str]:
    """Split a `NAME=SOURCE` argument, naming bare sources by their stem.

    Example:
        >>> parse_source_arg("cnn=https://example.com/live/index.m3u8")
        ('cnn', 'https://example.com/live/index.m3u8')
        >>> parse_source_arg("/media/hevc_1080p.mkv")
        ('hevc_1080p', '/media/hevc_1080p.mkv')
    """
    match = _NAMED_SOURCE.fullmatch(arg)
    if match:
        return match.group(1), match.group(2)

    path = urlparse(arg).path if is_network_source(arg) else arg
    return PurePosixPath(path).stem or arg, arg


class PipelineBenchmark:
    """Runs rendered ffsmart command lines and measures their throughput.

    Args:
        caps: Capability snapshot the plans are decided against.
        duration: Seconds of output per run.
        ffmpeg: Executable placed at argv[0].
        vaapi_device: Render node for VAAPI runs.
        user_agent: HTTP User-Agent for network sources.
        runner: Command runner with run_command's signature.
        cancel_event: Set from another thread to abandon the current run.
    """

    def __init__(
        self,
        caps: CapabilitySnapshot,
        *,
        duration: float = DEFAULT_DURATION,
        ffmpeg: str = "ffmpeg",
        vaapi_device: str = DEFAULT_VAAPI_DEVICE,
        user_agent: str | None = None,
        runner: Runner = run_command,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._caps = caps
        self._duration = duration
        self._ffmpeg = ffmpeg
        self._vaapi_device = vaapi_device
        self._user_agent = user_agent
        self._runner = runner
        self._cancel_event = cancel_event

    def render(
        self, case: PipelineCase, source: str, profile: StreamProfile
    ) -> list[str]:
        """Decide and render the command line for one run.

        Raises:
            PlanError: The forced combination cannot encode this source.
        """
        plan = decide(profile, self._caps, case.overrides())
        return build_ffmpeg_args(
            plan,
            source,
            user_agent=self._user_agent,
            vaapi_device=self._vaapi_device,
            hw_decode=use_hw_decode(profile, self._caps),
            ffmpeg=self._ffmpeg,
            output=os.devnull,
            duration=self._duration,
            stats=True,
        )

    def run_case(
        self, name: str, source: str, profile: StreamProfile, case: PipelineCase
    ) -> PipelineResult:
        """Run one combination against one source.

        Raises:
            CommandCancelledError: The cancel event was set.
        """
        try:
            args = self.render(case, source, profile)
        except PlanError as e:
            logger.info("Skipping %s %s: %s", name, case.label, e)
            return PipelineResult(name, case, error=str(e))

        grace = NETWORK_GRACE if is_network_source(source) else LOCAL_GRACE
        try:
            _, stderr, returncode = self._runner(
                args,
                timeout=self._duration + grace,
                cancel_event=self._cancel_event,
            )
        except subprocess.TimeoutExpired:
            return PipelineResult(name, case, error="timed out")
        except OSError as e:
            return PipelineResult(name, case, error=f"could not start ffmpeg: {e}")

        progress = last_progress(stderr)
        if progress is None or not progress.frame:
            logger.warning(
                "%s %s produced no frames (exit %d)", name, case.label, returncode
            )
            return PipelineResult(name, case, error=f"no frames (exit {returncode})")

        if returncode != 0:
            # Live inputs cut off at the duration often exit non-zero
            logger.debug("%s %s exited %d", name, case.label, returncode)
        return PipelineResult(
            name,
            case,
            frames=progress.frame,
            fps=progress.fps or 0.0,
            speed=progress.speed or 0.0,
        )

    def run_source(
        self,
        name: str,
        source: str,
        profile: StreamProfile,
        cases: Sequence[PipelineCase],
        on_result: Callable[[PipelineResult], None] | None = None,
    ) -> list[PipelineResult]:
        """Run every case against one source, reporting each as it finishes."""
        results = []
        for case in cases:
            result = self.run_case(name, source, profile, case)
            if on_result is not None:
                on_result(result)
            results.append(result)
        return results


def write_pipeline_csv(results: Iterable[PipelineResult], path: Path) -> int:
    """Export successful runs as CSV.

    Returns:
        Number of data rows written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(PIPELINE_CSV_COLUMNS)
        for result in results:
            if not result.ok:
                continue
            writer.writerow(
                [
                    result.source,
                    result.case.accelerator.value,
                    result.case.codec.value,
                    result.case.extra,
                    result.frames,
                    f"{result.fps:g}",
                    f"{result.speed:g}",
                ]
            )
            count += 1
    return count
