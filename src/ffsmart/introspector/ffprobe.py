"""ffprobe-based implementation of the StreamProber protocol."""

import json
import subprocess  # nosec B404 - needed for TimeoutExpired
from collections.abc import Mapping
from pathlib import Path

from ffsmart.core import run_command
from ffsmart.introspector.interface import StreamProbeError
from ffsmart.introspector.models import StreamProfile
from ffsmart.introspector.parsers import normalize
from ffsmart.tools.detection import find_tool

DEFAULT_PROBE_TIMEOUT = 30.0


class FFprobeStreamProber:
    """ffprobe-based implementation of StreamProber.

    Reads stream-level metadata from local files and network inputs.
    """

    def __init__(
        self,
        ffprobe_path: Path | None = None,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ) -> None:
        """Initialize the prober.

        Args:
            ffprobe_path: Optional explicit path to ffprobe. Falls back to
                a PATH lookup.
            timeout: Hard limit for one ffprobe run in seconds.

        Raises:
            StreamProbeError: If ffprobe is not available.
        """
        path = find_tool("ffprobe", ffprobe_path)
        if path is None:
            raise StreamProbeError(
                "ffprobe is not installed or not in PATH. "
                "Install ffmpeg or set FFSMART_FFPROBE_PATH."
            )
        self._ffprobe_path = path
        self._timeout = timeout

    def probe(
        self,
        url: str,
        user_agent: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict:
        """Run ffprobe and return parsed JSON output.

        Args:
            url: Input URL or path.
            user_agent: HTTP User-Agent for network inputs.
            headers: Extra HTTP headers for network inputs.

        Returns:
            Parsed JSON output from ffprobe.

        Raises:
            StreamProbeError: If ffprobe fails, times out or returns
                unusable output.
        """
        args: list[str | Path] = [
            self._ffprobe_path,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
        ]
        if user_agent:
            args.extend(["-user_agent", user_agent])
        if headers:
            args.extend(["-headers", "".join(f"{k}: {v}\r\n" for k, v in headers.items())])
        args.append(url)

        try:
            stdout, stderr, rc = run_command(args, timeout=self._timeout)
        except subprocess.TimeoutExpired as e:
            raise StreamProbeError(
                f"ffprobe timed out for {url} after {e.timeout}s"
            ) from e
        except OSError as e:
            raise StreamProbeError(f"Could not run ffprobe: {e}") from e

        if rc != 0:
            raise StreamProbeError(
                f"ffprobe failed for {url}: {stderr.strip() or f'exit code {rc}'}"
            )

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise StreamProbeError(f"Invalid ffprobe output for {url}: {e}") from e

        if not isinstance(data, dict) or "streams" not in data:
            raise StreamProbeError(f"Missing 'streams' in ffprobe output for {url}")

        return data

    def profile(
        self,
        url: str,
        user_agent: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> StreamProfile:
        """Probe a stream and normalize the result.

        Raises:
            StreamProbeError: If probing fails.
            NoVideoStreamError: If the input has no usable video stream.
        """
        return normalize(self.probe(url, user_agent=user_agent, headers=headers))
