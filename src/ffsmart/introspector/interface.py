"""StreamProber interface for input stream metadata extraction."""

from collections.abc import Mapping
from typing import Protocol


class StreamProbeError(Exception):
    """Raised when stream metadata cannot be obtained."""

    pass


class NoVideoStreamError(StreamProbeError):
    """Raised when the input has no usable video stream.

    Fatal for the request: there is nothing to encode or pass through.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"No usable video stream: {reason}")


class StreamProber(Protocol):
    """Protocol for stream metadata probing implementations."""

    def probe(
        self,
        url: str,
        user_agent: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict:
        """Return raw probe output for a stream.

        Args:
            url: Input URL or path.
            user_agent: HTTP User-Agent for network inputs.
            headers: Extra HTTP headers for network inputs.

        Returns:
            Parsed ffprobe-style JSON with a "streams" list.

        Raises:
            StreamProbeError: If the stream cannot be probed.
        """
        ...
