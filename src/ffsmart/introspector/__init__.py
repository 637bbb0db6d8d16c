"""Input stream introspection."""

from ffsmart.introspector.ffprobe import FFprobeStreamProber
from ffsmart.introspector.interface import (
    NoVideoStreamError,
    StreamProbeError,
    StreamProber,
)
from ffsmart.introspector.models import StreamProfile
from ffsmart.introspector.parsers import normalize, parse_rational

__all__ = [
    "FFprobeStreamProber",
    "NoVideoStreamError",
    "StreamProbeError",
    "StreamProber",
    "StreamProfile",
    "normalize",
    "parse_rational",
]
