"""Hardware discovery and the accelerator capability table."""

from ffsmart.hardware.accelerators import (
    ACCELERATOR_PRIORITY,
    DEFAULT_VAAPI_DEVICE,
    AcceleratorProfile,
    get_profile,
    order_by_priority,
    resolve_encoder,
    shortlist_accelerators,
)
from ffsmart.hardware.fingerprint import HardwareFingerprinter
from ffsmart.hardware.models import (
    Accelerator,
    Codec,
    DeviceId,
    HardwareFingerprint,
    PowerMode,
)

__all__ = [
    "ACCELERATOR_PRIORITY",
    "DEFAULT_VAAPI_DEVICE",
    "Accelerator",
    "AcceleratorProfile",
    "Codec",
    "DeviceId",
    "HardwareFingerprint",
    "HardwareFingerprinter",
    "PowerMode",
    "get_profile",
    "order_by_priority",
    "resolve_encoder",
    "shortlist_accelerators",
]
