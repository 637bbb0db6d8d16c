"""Exceptions raised while building an encoding plan.

All of these are fatal for the request: they abort before any plan is
produced, and the caller is expected to report them rather than retry.
"""

from collections.abc import Iterable


class PlanError(Exception):
    """Base class for encoding plan errors."""

    pass


class UnknownAcceleratorError(PlanError):
    """Raised when an accelerator override names no known accelerator."""

    def __init__(self, name: str, known: Iterable[str]) -> None:
        """Initialize the error.

        Args:
            name: The requested accelerator name.
            known: Valid accelerator names.
        """
        self.name = name
        self.known = tuple(known)
        super().__init__(
            f"Unknown accelerator {name!r}; expected one of: {', '.join(self.known)}"
        )


class UnknownCodecError(PlanError):
    """Raised when a codec override is neither h264 nor hevc."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown codec {name!r}; expected h264 or hevc")


class EncoderUnavailableError(PlanError):
    """Raised when the resolved encoder is not compiled into ffmpeg.

    This happens when an override selects an accelerator whose encoder the
    installed ffmpeg build lacks, e.g. forcing qsv on a build without
    libmfx/libvpl support.
    """

    def __init__(self, encoder: str, accelerator: str, codec: str) -> None:
        """Initialize the error.

        Args:
            encoder: The resolved ffmpeg encoder id.
            accelerator: The effective accelerator name.
            codec: The effective codec name.
        """
        self.encoder = encoder
        self.accelerator = accelerator
        self.codec = codec
        super().__init__(
            f"Encoder {encoder} ({accelerator}/{codec}) is not available "
            "in the installed ffmpeg"
        )
