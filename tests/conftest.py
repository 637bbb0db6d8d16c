"""Shared test fixtures for ffsmart."""

import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from ffsmart.config.models import FFSmartConfig
from ffsmart.hardware.models import Accelerator, Codec, PowerMode
from ffsmart.probe.models import BenchmarkResult, CapabilitySnapshot, EncoderCandidate

ALL_SOFTWARE_ENCODERS = frozenset({"libx264", "libx265"})
INTEL_ENCODERS = frozenset(
    {"libx264", "libx265", "h264_qsv", "hevc_qsv", "h264_vaapi", "hevc_vaapi"}
)


@pytest.fixture
def fake_sysfs(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """Build a fake /sys and /dev tree.

    Returns a function taking render nodes as {"renderD128": ("0x8086",
    "0x46a6")}, /dev entry names, V4L2 device names and PCI devices as
    {"0000:01:00.0": (vendor, device, class)}, and returning
    (sys_root, dev_root).
    """
    sys_root = tmp_path / "sys"
    dev_root = tmp_path / "dev"

    def build(
        render_nodes: dict[str, tuple[str, str]] | None = None,
        dev_nodes: tuple[str, ...] = (),
        v4l2_names: dict[str, str] | None = None,
        pci_devices: dict[str, tuple[str, str, str]] | None = None,
    ) -> tuple[Path, Path]:
        (sys_root / "class" / "drm").mkdir(parents=True, exist_ok=True)
        (sys_root / "class" / "video4linux").mkdir(parents=True, exist_ok=True)
        dev_root.mkdir(parents=True, exist_ok=True)

        for node, (vendor, device) in (render_nodes or {}).items():
            device_dir = sys_root / "class" / "drm" / node / "device"
            device_dir.mkdir(parents=True)
            (device_dir / "vendor").write_text(f"{vendor}\n")
            (device_dir / "device").write_text(f"{device}\n")

        for name in dev_nodes:
            (dev_root / name).touch()

        for node, name in (v4l2_names or {}).items():
            node_dir = sys_root / "class" / "video4linux" / node
            node_dir.mkdir(parents=True)
            (node_dir / "name").write_text(f"{name}\n")

        for address, (vendor, device, pci_class) in (pci_devices or {}).items():
            pci_dir = sys_root / "bus" / "pci" / "devices" / address
            pci_dir.mkdir(parents=True)
            (pci_dir / "vendor").write_text(f"{vendor}\n")
            (pci_dir / "device").write_text(f"{device}\n")
            (pci_dir / "class").write_text(f"{pci_class}\n")

        return sys_root, dev_root

    return build


class FakeRunner:
    """Scripted stand-in for run_command used by benchmark tests.

    Outcomes are looked up by (encoder, low_power, ten_bit). A float is the
    speed reported on stderr, None means a non-zero exit, and an exception
    instance is raised. Unscripted encodes fail. Decode checks return
    decode_result as (stderr, rc).
    """

    def __init__(
        self,
        speeds: dict[tuple[str, bool, bool], float | None | Exception] | None = None,
        decode_result: tuple[str, int] = ("", 0),
    ) -> None:
        self.speeds = speeds or {}
        self.decode_result = decode_result
        self.calls: list[list[str]] = []
        self.timeouts: list[float] = []
        self.cancel_events: list = []

    def __call__(self, args: list[str], timeout: float = 120, **kwargs):
        self.calls.append(list(args))
        self.timeouts.append(timeout)
        self.cancel_events.append(kwargs.get("cancel_event"))

        if "-c:v" not in args:
            stderr, rc = self.decode_result
            return "", stderr, rc

        encoder = args[args.index("-c:v") + 1]
        low_power = "-low_power" in args
        ten_bit = any("10le" in arg for arg in args)
        outcome = self.speeds.get((encoder, low_power, ten_bit))

        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return "", "Error initializing output stream", 1
        return "", f"frame=  150 fps={outcome * 30:.0f} q=-0.0 speed={outcome}x\r", 0

    def encode_calls(self) -> list[list[str]]:
        return [call for call in self.calls if "-c:v" in call]


@pytest.fixture
def fake_runner() -> type[FakeRunner]:
    """The FakeRunner class, for scripting trial outcomes."""
    return FakeRunner


@pytest.fixture
def timeout_error() -> subprocess.TimeoutExpired:
    return subprocess.TimeoutExpired(cmd="ffmpeg", timeout=30)


def make_result(
    accelerator: Accelerator,
    codec: Codec,
    speed: float,
    power_mode: PowerMode = PowerMode.NORMAL,
    **flags: bool,
) -> BenchmarkResult:
    """Build a BenchmarkResult for a candidate."""
    candidate = EncoderCandidate(accelerator, codec, power_mode)
    return BenchmarkResult(
        candidate=candidate,
        encoder=candidate.encoder,
        speed_multiplier=speed,
        **flags,
    )


@pytest.fixture
def software_caps() -> CapabilitySnapshot:
    """Capabilities of a host with software encoders only."""
    return CapabilitySnapshot(
        hardware_fingerprint="software",
        results=(
            make_result(Accelerator.SOFTWARE, Codec.H264, 4.0),
            make_result(Accelerator.SOFTWARE, Codec.HEVC, 1.5),
        ),
        available_encoders=ALL_SOFTWARE_ENCODERS,
        ffmpeg_version="7.1",
    )


@pytest.fixture
def qsv_caps() -> CapabilitySnapshot:
    """Capabilities of an Intel host where low-power qsv h264 won."""
    return CapabilitySnapshot(
        hardware_fingerprint="intel:0x8086:0x46a6",
        best_accelerator=Accelerator.QSV,
        best_codec=Codec.H264,
        best_uses_low_power=True,
        supports_10bit_decode=True,
        supports_10bit_encode=True,
        results=(
            make_result(Accelerator.QSV, Codec.H264, 9.0),
            make_result(Accelerator.QSV, Codec.H264, 12.0, PowerMode.LOW_POWER),
            make_result(Accelerator.VAAPI, Codec.HEVC, 6.0),
            make_result(Accelerator.VAAPI, Codec.HEVC, 5.0, PowerMode.LOW_POWER),
            make_result(
                Accelerator.VAAPI, Codec.H264, 7.0, supports_10bit_encode=False
            ),
            make_result(
                Accelerator.VAAPI,
                Codec.H264,
                8.0,
                PowerMode.LOW_POWER,
            ),
            make_result(Accelerator.SOFTWARE, Codec.H264, 4.0),
        ),
        available_encoders=INTEL_ENCODERS,
        ffmpeg_version="7.1",
    )


def ffprobe_json(
    video: dict | None = None,
    audio: dict | None = None,
    extra_streams: list[dict] | None = None,
) -> dict:
    """Build an ffprobe -show_streams document."""
    streams = list(extra_streams or [])
    if video is not None:
        streams.append({"index": len(streams), "codec_type": "video", **video})
    if audio is not None:
        streams.append({"index": len(streams), "codec_type": "audio", **audio})
    return {"streams": streams}


@pytest.fixture
def hd_h264_probe() -> dict:
    """ffprobe output of a 1080p30 h264 stream with stereo AAC."""
    return ffprobe_json(
        video={
            "codec_name": "h264",
            "width": 1920,
            "height": 1080,
            "pix_fmt": "yuv420p",
            "color_transfer": "bt709",
            "r_frame_rate": "30/1",
            "avg_frame_rate": "30/1",
        },
        audio={"codec_name": "aac", "bit_rate": "128000", "channels": 2},
    )


@pytest.fixture
def ffsmart_config(tmp_path: Path) -> FFSmartConfig:
    """Default configuration rooted in a temporary data directory."""
    return FFSmartConfig(data_dir=tmp_path / "data")


@pytest.fixture
def result_factory() -> Callable[..., BenchmarkResult]:
    """Factory for BenchmarkResult instances."""
    return make_result


@pytest.fixture
def probe_doc() -> Callable[..., dict]:
    """Factory for ffprobe -show_streams documents."""
    return ffprobe_json
