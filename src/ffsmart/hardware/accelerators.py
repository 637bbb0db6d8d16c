"""Accelerator capability table.

Everything that differs between encoding backends lives in one
AcceleratorProfile per accelerator: encoder names, hwaccel decode arguments,
rate-control options, low-power support and the filters used to move frames
between pixel formats. Callers look profiles up instead of branching on the
accelerator name.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ffsmart.hardware.models import (
    VENDOR_AMD,
    VENDOR_APPLE,
    VENDOR_INTEL,
    VENDOR_NVIDIA,
    VENDOR_V4L2,
    Accelerator,
    Codec,
    HardwareFingerprint,
)

logger = logging.getLogger(__name__)

DEFAULT_VAAPI_DEVICE = "/dev/dri/renderD128"

# Probe and selection order. Ties in benchmark score keep the earlier entry,
# so dedicated encoder blocks rank ahead of general purpose ones and software
# always comes last.
ACCELERATOR_PRIORITY: tuple[Accelerator, ...] = (
    Accelerator.NVENC,
    Accelerator.QSV,
    Accelerator.VAAPI,
    Accelerator.VIDEOTOOLBOX,
    Accelerator.V4L2M2M,
    Accelerator.SOFTWARE,
)

CODEC_PRIORITY: tuple[Codec, ...] = (Codec.H264, Codec.HEVC)

SOFTWARE_DOWNCONVERT_FILTER = "format=yuv420p"


@dataclass(frozen=True)
class AcceleratorProfile:
    """Static capabilities of one encoding backend.

    Attributes:
        accelerator: Backend this profile describes.
        vendors: Vendor IDs whose presence makes the backend a candidate.
        h264_encoder: ffmpeg encoder name for h264 output.
        hevc_encoder: ffmpeg encoder name for hevc output.
        hwaccel_args: Input options enabling hardware decode. "{vaapi_device}"
            is substituted with the configured render node.
        device_args: Options initializing the device when encoding frames
            that were not decoded on it (trial input, software decode).
        upload_filter: Filter template moving software frames onto the
            device; "{pix_fmt}" is substituted. None if the encoder accepts
            software frames directly.
        rate_control_args: Encoder options used in production and trials.
        low_power_args: Options selecting the fixed-function low-power
            path; empty if the backend has none.
        bframes_in_low_power: Whether B-frames may be used in low-power mode.
        trusts_10bit_encode: Whether a passing 10-bit trial is believed.
        probes_10bit_decode: Whether hardware 10-bit decode is probed.
        downconvert_filter: Filter turning 10-bit frames into 8-bit for
            h264 output, run on the device where frames live there.
        ten_bit_pix_fmt: Pixel format of 10-bit frames handed to the
            encoder from software.
    """

    accelerator: Accelerator
    vendors: frozenset[str]
    h264_encoder: str
    hevc_encoder: str
    hwaccel_args: tuple[str, ...] = ()
    device_args: tuple[str, ...] = ()
    upload_filter: str | None = None
    rate_control_args: tuple[str, ...] = ()
    low_power_args: tuple[str, ...] = ()
    bframes_in_low_power: bool = True
    trusts_10bit_encode: bool = True
    probes_10bit_decode: bool = True
    downconvert_filter: str = SOFTWARE_DOWNCONVERT_FILTER
    ten_bit_pix_fmt: str = "p010le"

    @property
    def supports_low_power(self) -> bool:
        """Whether a low-power encode path exists."""
        return bool(self.low_power_args)

    def encoder_for(self, codec: Codec) -> str:
        """Return the ffmpeg encoder name for a codec."""
        if codec is Codec.HEVC:
            return self.hevc_encoder
        return self.h264_encoder

    def input_args(self, vaapi_device: str = DEFAULT_VAAPI_DEVICE) -> list[str]:
        """Hardware decode options for the input side of a command."""
        return [arg.format(vaapi_device=vaapi_device) for arg in self.hwaccel_args]

    def device_init_args(self, vaapi_device: str = DEFAULT_VAAPI_DEVICE) -> list[str]:
        """Device initialization options for encoding software frames."""
        return [arg.format(vaapi_device=vaapi_device) for arg in self.device_args]

    def upload_chain(self, pix_fmt: str) -> str | None:
        """Filter chain feeding software frames of pix_fmt to the encoder."""
        if self.upload_filter is None:
            return None
        return self.upload_filter.format(pix_fmt=pix_fmt)


ACCELERATOR_PROFILES: dict[Accelerator, AcceleratorProfile] = {
    Accelerator.NVENC: AcceleratorProfile(
        accelerator=Accelerator.NVENC,
        vendors=frozenset({VENDOR_NVIDIA}),
        h264_encoder="h264_nvenc",
        hevc_encoder="hevc_nvenc",
        hwaccel_args=("-hwaccel", "cuda", "-hwaccel_output_format", "cuda"),
        rate_control_args=("-preset", "p4", "-rc", "vbr"),
        downconvert_filter="scale_cuda=format=yuv420p",
    ),
    Accelerator.QSV: AcceleratorProfile(
        accelerator=Accelerator.QSV,
        vendors=frozenset({VENDOR_INTEL}),
        h264_encoder="h264_qsv",
        hevc_encoder="hevc_qsv",
        hwaccel_args=("-hwaccel", "qsv", "-hwaccel_output_format", "qsv"),
        device_args=("-init_hw_device", "qsv=hw", "-filter_hw_device", "hw"),
        upload_filter="format={pix_fmt},hwupload=extra_hw_frames=64",
        rate_control_args=("-preset", "fast", "-look_ahead", "0"),
        low_power_args=("-low_power", "1"),
        bframes_in_low_power=False,
        # QSV 10-bit trials pass on hardware that then emits broken streams
        trusts_10bit_encode=False,
        downconvert_filter="scale_qsv=format=nv12",
    ),
    Accelerator.VAAPI: AcceleratorProfile(
        accelerator=Accelerator.VAAPI,
        vendors=frozenset({VENDOR_INTEL, VENDOR_AMD}),
        h264_encoder="h264_vaapi",
        hevc_encoder="hevc_vaapi",
        hwaccel_args=(
            "-hwaccel",
            "vaapi",
            "-hwaccel_output_format",
            "vaapi",
            "-vaapi_device",
            "{vaapi_device}",
        ),
        device_args=("-vaapi_device", "{vaapi_device}"),
        upload_filter="format={pix_fmt},hwupload",
        rate_control_args=("-rc_mode", "VBR"),
        low_power_args=("-low_power", "1"),
        bframes_in_low_power=False,
        downconvert_filter="scale_vaapi=format=nv12",
    ),
    Accelerator.VIDEOTOOLBOX: AcceleratorProfile(
        accelerator=Accelerator.VIDEOTOOLBOX,
        vendors=frozenset({VENDOR_APPLE}),
        h264_encoder="h264_videotoolbox",
        hevc_encoder="hevc_videotoolbox",
        hwaccel_args=("-hwaccel", "videotoolbox"),
        rate_control_args=("-realtime", "1"),
    ),
    Accelerator.V4L2M2M: AcceleratorProfile(
        accelerator=Accelerator.V4L2M2M,
        vendors=frozenset({VENDOR_V4L2}),
        h264_encoder="h264_v4l2m2m",
        hevc_encoder="hevc_v4l2m2m",
    ),
    Accelerator.SOFTWARE: AcceleratorProfile(
        accelerator=Accelerator.SOFTWARE,
        vendors=frozenset(),
        h264_encoder="libx264",
        hevc_encoder="libx265",
        rate_control_args=("-preset", "veryfast"),
        probes_10bit_decode=False,
        ten_bit_pix_fmt="yuv420p10le",
    ),
}


def get_profile(accelerator: Accelerator) -> AcceleratorProfile:
    """Look up the capability profile for an accelerator."""
    return ACCELERATOR_PROFILES[accelerator]


def resolve_encoder(accelerator: Accelerator, codec: Codec) -> str:
    """Resolve the concrete ffmpeg encoder id for an accelerator and codec.

    Example:
        >>> resolve_encoder(Accelerator.QSV, Codec.HEVC)
        'hevc_qsv'
        >>> resolve_encoder(Accelerator.SOFTWARE, Codec.H264)
        'libx264'
    """
    return get_profile(accelerator).encoder_for(codec)


def order_by_priority(accelerators: Iterable[Accelerator]) -> list[Accelerator]:
    """Sort accelerators by ACCELERATOR_PRIORITY, dropping duplicates."""
    wanted = set(accelerators)
    return [accel for accel in ACCELERATOR_PRIORITY if accel in wanted]


def shortlist_accelerators(
    fingerprint: HardwareFingerprint,
    encoders: Iterable[str],
) -> list[Accelerator]:
    """Choose the accelerators worth benchmarking on this host.

    A hardware backend qualifies when one of its vendors is present in the
    fingerprint and ffmpeg was compiled with at least one of its encoders.
    Software is always included, last.

    Args:
        fingerprint: Hardware fingerprint of the host.
        encoders: Encoder names compiled into ffmpeg.

    Returns:
        Accelerators in priority order.
    """
    available = {name.casefold() for name in encoders}
    vendors = fingerprint.vendors
    shortlist = []

    for accel in ACCELERATOR_PRIORITY:
        profile = get_profile(accel)
        if accel is Accelerator.SOFTWARE:
            shortlist.append(accel)
            continue
        if not profile.vendors & vendors:
            continue
        if not any(profile.encoder_for(codec) in available for codec in CODEC_PRIORITY):
            logger.debug(
                "Skipping %s: device present but ffmpeg has no %s encoders",
                accel.value,
                accel.value,
            )
            continue
        shortlist.append(accel)

    logger.debug("Accelerator shortlist: %s", [a.value for a in shortlist])
    return shortlist
