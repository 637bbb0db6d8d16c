"""Hardware data models.

Accelerator and codec identifiers, and the hardware fingerprint that keys the
capability cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SOFTWARE_FINGERPRINT = "software"
"""Canonical form of a fingerprint with no visible accelerator."""

# PCI vendor IDs as exposed by sysfs, plus pseudo vendors for non-PCI devices
VENDOR_INTEL = "0x8086"
VENDOR_AMD = "0x1002"
VENDOR_NVIDIA = "0x10de"
VENDOR_APPLE = "apple"
VENDOR_V4L2 = "v4l2"

VENDOR_NAMES: dict[str, str] = {
    VENDOR_INTEL: "intel",
    VENDOR_AMD: "amd",
    VENDOR_NVIDIA: "nvidia",
    VENDOR_APPLE: "apple",
    VENDOR_V4L2: "v4l2",
}


class Accelerator(Enum):
    """Encoding backend family."""

    NVENC = "nvenc"
    QSV = "qsv"
    VAAPI = "vaapi"
    VIDEOTOOLBOX = "videotoolbox"
    V4L2M2M = "v4l2m2m"
    SOFTWARE = "software"

    @classmethod
    def parse(cls, value: str) -> Accelerator:
        """Parse an accelerator name case-insensitively.

        Raises:
            ValueError: If the name is not a known accelerator.
        """
        return cls(value.strip().casefold())


class Codec(Enum):
    """Output video codec."""

    H264 = "h264"
    HEVC = "hevc"

    @classmethod
    def parse(cls, value: str) -> Codec:
        """Parse a codec name case-insensitively.

        "h265" and "x265" are accepted as aliases for hevc.

        Raises:
            ValueError: If the name is not a known codec.
        """
        normalized = value.strip().casefold()
        if normalized in ("h265", "x265"):
            normalized = "hevc"
        elif normalized == "x264":
            normalized = "h264"
        return cls(normalized)


class PowerMode(Enum):
    """Encoder power mode. LOW_POWER only exists for qsv and vaapi."""

    NORMAL = "normal"
    LOW_POWER = "low_power"


@dataclass(frozen=True, order=True)
class DeviceId:
    """A single visible accelerator device.

    Attributes:
        vendor: Vendor identifier, e.g. "0x8086", "apple" or "v4l2".
        device: Device identifier within the vendor namespace.
    """

    vendor: str
    device: str

    def __str__(self) -> str:
        return f"{self.vendor}:{self.device}"


@dataclass(frozen=True)
class HardwareFingerprint:
    """Canonical identity of the accelerator hardware on this host.

    Devices are kept sorted and deduplicated so that the same hardware set
    always yields the same canonical string regardless of discovery order.
    """

    devices: tuple[DeviceId, ...] = ()
    platform: str = SOFTWARE_FINGERPRINT

    def __post_init__(self) -> None:
        normalized = tuple(sorted(set(self.devices)))
        object.__setattr__(self, "devices", normalized)

    @property
    def is_software(self) -> bool:
        """True when no accelerator device is visible."""
        return not self.devices

    @property
    def vendors(self) -> frozenset[str]:
        """Set of vendor identifiers present."""
        return frozenset(device.vendor for device in self.devices)

    def canonical(self) -> str:
        """Serialize to the string stored alongside cached capabilities."""
        if self.is_software:
            return SOFTWARE_FINGERPRINT
        return f"{self.platform}:" + ",".join(str(d) for d in self.devices)

    def __str__(self) -> str:
        return self.canonical()
