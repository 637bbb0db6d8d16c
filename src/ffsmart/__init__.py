"""ffsmart - hardware-aware encoder selection for ffmpeg stream transcoding."""

__version__ = "0.1.0"
