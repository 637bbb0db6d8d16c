"""Hardware fingerprinting from visible device nodes.

The fingerprint is a pure function of the devices the kernel exposes: DRM
render nodes and their PCI vendor/device IDs, NVIDIA GPUs identified on the
PCI bus when only /dev/nvidiaN nodes exist, and V4L2 memory-to-memory codec
nodes. On macOS the machine architecture stands in for the device list
since VideoToolbox is always present.
"""

from __future__ import annotations

import logging
import platform
import re
from pathlib import Path

from ffsmart.hardware.models import (
    VENDOR_APPLE,
    VENDOR_NAMES,
    VENDOR_NVIDIA,
    VENDOR_V4L2,
    DeviceId,
    HardwareFingerprint,
)

logger = logging.getLogger(__name__)

_NVIDIA_NODE = re.compile(r"^nvidia\d+$")
_PCI_DISPLAY_CLASS = "0x03"
_V4L2_CODEC_NAME = re.compile(r"m2m|codec", re.IGNORECASE)


def _read_sysfs(path: Path) -> str | None:
    """Read a sysfs attribute, returning None if missing or empty."""
    try:
        value = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    return value or None


class HardwareFingerprinter:
    """Builds a HardwareFingerprint from the host's visible devices.

    The roots and platform are injectable so tests can point the
    fingerprinter at a fake sysfs tree.
    """

    def __init__(
        self,
        sys_root: Path = Path("/sys"),
        dev_root: Path = Path("/dev"),
        system: str | None = None,
        machine: str | None = None,
    ) -> None:
        """Initialize the fingerprinter.

        Args:
            sys_root: Root of the sysfs tree.
            dev_root: Root of the device node tree.
            system: Operating system name (defaults to platform.system()).
            machine: Machine architecture (defaults to platform.machine()).
        """
        self._sys_root = sys_root
        self._dev_root = dev_root
        self._system = system
        self._machine = machine

    def fingerprint(self) -> HardwareFingerprint:
        """Compute the fingerprint of the current host.

        Returns:
            HardwareFingerprint, or the software sentinel when no
            accelerator is visible.
        """
        system = (self._system or platform.system()).casefold()

        if system == "darwin":
            machine = (self._machine or platform.machine() or "unknown").casefold()
            return HardwareFingerprint(
                devices=(DeviceId(VENDOR_APPLE, machine),), platform="darwin"
            )

        if system != "linux":
            logger.debug("No accelerator discovery for platform %s", system)
            return HardwareFingerprint()

        drm = self._drm_devices()
        devices = [*drm, *self._nvidia_devices(drm), *self._v4l2_m2m_devices()]
        if not devices:
            logger.debug("No accelerator devices visible, using software sentinel")
            return HardwareFingerprint()

        tag = "+".join(sorted({VENDOR_NAMES.get(d.vendor, d.vendor) for d in devices}))
        fingerprint = HardwareFingerprint(devices=tuple(devices), platform=tag)
        logger.debug("Hardware fingerprint: %s", fingerprint.canonical())
        return fingerprint

    def _drm_devices(self) -> list[DeviceId]:
        devices = []
        for node in sorted((self._sys_root / "class" / "drm").glob("renderD*")):
            vendor = _read_sysfs(node / "device" / "vendor")
            if vendor is None:
                continue
            device = _read_sysfs(node / "device" / "device") or "unknown"
            devices.append(DeviceId(vendor.casefold(), device.casefold()))
        return devices

    def _nvidia_devices(self, drm: list[DeviceId]) -> list[DeviceId]:
        """Identify NVIDIA GPUs driven without nvidia-drm.

        The proprietary driver only creates render nodes with nvidia-drm
        loaded. Otherwise the /dev/nvidiaN nodes show a GPU is usable and
        the PCI bus supplies its device ID, so swapping one model for
        another changes the fingerprint.
        """
        if any(d.vendor == VENDOR_NVIDIA for d in drm):
            return []
        try:
            nodes = sorted(
                entry.name
                for entry in self._dev_root.iterdir()
                if _NVIDIA_NODE.match(entry.name)
            )
        except OSError:
            return []
        if not nodes:
            return []

        devices = self._pci_display_devices(VENDOR_NVIDIA)
        if devices:
            return devices
        logger.debug("No NVIDIA display device on the PCI bus, using %s", nodes)
        return [DeviceId(VENDOR_NVIDIA, name) for name in nodes]

    def _pci_display_devices(self, vendor: str) -> list[DeviceId]:
        devices = []
        for entry in sorted((self._sys_root / "bus" / "pci" / "devices").glob("*")):
            if (_read_sysfs(entry / "vendor") or "").casefold() != vendor:
                continue
            pci_class = (_read_sysfs(entry / "class") or "").casefold()
            if not pci_class.startswith(_PCI_DISPLAY_CLASS):
                continue
            device = _read_sysfs(entry / "device") or "unknown"
            devices.append(DeviceId(vendor, device.casefold()))
        return devices

    def _v4l2_m2m_devices(self) -> list[DeviceId]:
        devices = []
        for node in sorted((self._sys_root / "class" / "video4linux").glob("video*")):
            name = _read_sysfs(node / "name")
            if name and _V4L2_CODEC_NAME.search(name):
                devices.append(DeviceId(VENDOR_V4L2, re.sub(r"\s+", "-", name.casefold())))
        return devices
