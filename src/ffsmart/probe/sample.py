"""Reference sample download for the 10-bit decode check.

Hardware 10-bit decode can only be verified against real encoded 10-bit
content, so the probe keeps a short 10-bit HEVC clip in the data directory.
The download is idempotent and never fatal: any failure yields
SampleUnavailable and the decode check is skipped.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from urllib.parse import urlparse

import httpx

from ffsmart.probe.exceptions import ProbeCancelledError

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_URL = (
    "https://repo.jellyfin.org/archive/jellyfish/media/"
    "jellyfish-20-mbps-hd-hevc-10bit.mkv"
)

# Anything smaller is an error page or a truncated transfer
MIN_SAMPLE_BYTES = 1_000_000

_CHUNK_SIZE = 64 * 1024
_CONNECT_TIMEOUT = 15.0


@dataclass(frozen=True)
class SampleHandle:
    """A verified local copy of the reference sample."""

    path: Path
    size: int


@dataclass(frozen=True)
class SampleUnavailable:
    """The reference sample could not be obtained."""

    reason: str


class _DownloadAborted(Exception):
    """Download stopped before completion (deadline or size)."""


class CapabilitySampleProvider:
    """Ensures the reference sample is present locally.

    Example:
        provider = CapabilitySampleProvider(data_dir / "samples")
        sample = provider.ensure_sample()
        if isinstance(sample, SampleHandle):
            ...
    """

    def __init__(
        self,
        samples_dir: Path,
        url: str = DEFAULT_SAMPLE_URL,
        timeout: float = 120.0,
        client: httpx.Client | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            samples_dir: Directory holding the sample.
            url: Download location of the sample.
            timeout: Wall-clock budget for the whole download in seconds.
            client: Optional httpx client (tests inject a mock transport).
            cancel_event: Optional event; when set the download stops.
        """
        self._samples_dir = samples_dir
        self._url = url
        self._timeout = timeout
        self._client = client
        self._cancel_event = cancel_event

    @property
    def sample_path(self) -> Path:
        """Local path of the sample, named after the URL's last segment."""
        name = Path(urlparse(self._url).path).name or "reference-sample.mkv"
        return self._samples_dir / name

    def existing_sample(self) -> SampleHandle | None:
        """Return the local sample if present and large enough."""
        try:
            size = self.sample_path.stat().st_size
        except OSError:
            return None
        if size < MIN_SAMPLE_BYTES:
            logger.debug(
                "Ignoring undersized sample %s (%d bytes)", self.sample_path, size
            )
            return None
        return SampleHandle(path=self.sample_path, size=size)

    def ensure_sample(self) -> SampleHandle | SampleUnavailable:
        """Return the sample, downloading it first if needed.

        Returns:
            SampleHandle when a verified sample exists, otherwise
            SampleUnavailable with the reason.

        Raises:
            ProbeCancelledError: If the cancel event is set mid-download.
        """
        existing = self.existing_sample()
        if existing is not None:
            logger.debug("Using cached sample %s", existing.path)
            return existing

        try:
            self._samples_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_path_str = tempfile.mkstemp(
                suffix=".part", dir=self._samples_dir
            )
        except OSError as e:
            logger.warning("Cannot prepare sample directory %s: %s", self._samples_dir, e)
            return SampleUnavailable(f"cannot write sample: {e}")

        temp_path = Path(temp_path_str)
        logger.info("Downloading reference sample from %s", self._url)
        try:
            with os.fdopen(fd, "wb") as f:
                written = self._download(f, time.monotonic() + self._timeout)
            if written < MIN_SAMPLE_BYTES:
                raise _DownloadAborted(
                    f"downloaded {written} bytes, expected at least {MIN_SAMPLE_BYTES}"
                )
            temp_path.replace(self.sample_path)
        except (httpx.HTTPError, OSError, _DownloadAborted) as e:
            temp_path.unlink(missing_ok=True)
            logger.warning("Reference sample unavailable: %s", e)
            return SampleUnavailable(str(e))
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        logger.info("Saved reference sample to %s (%d bytes)", self.sample_path, written)
        return SampleHandle(path=self.sample_path, size=written)

    def _download(self, out: BinaryIO, deadline: float) -> int:
        """Stream the sample into out, returning the byte count."""
        timeout = httpx.Timeout(self._timeout, connect=min(_CONNECT_TIMEOUT, self._timeout))
        if self._client is not None:
            return self._stream(self._client, out, deadline)
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            return self._stream(client, out, deadline)

    def _stream(self, client: httpx.Client, out: BinaryIO, deadline: float) -> int:
        written = 0
        with client.stream("GET", self._url) as response:
            response.raise_for_status()
            for chunk in response.iter_bytes(_CHUNK_SIZE):
                if self._cancel_event is not None and self._cancel_event.is_set():
                    raise ProbeCancelledError("sample download")
                if time.monotonic() > deadline:
                    raise _DownloadAborted(
                        f"download exceeded {self._timeout:g}s deadline"
                    )
                out.write(chunk)
                written += len(chunk)
        return written
