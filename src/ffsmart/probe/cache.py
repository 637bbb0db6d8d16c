"""Capability snapshot caching.

The snapshot of the last benchmark is stored as JSON in the data directory
(~/.ffsmart/capabilities.json by default) together with the hardware
fingerprint it was measured on. A record is only served back for the same
fingerprint; anything unreadable, invalid or mismatched is a cache miss and
triggers a new probe.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ffsmart.hardware.models import Accelerator, Codec, PowerMode
from ffsmart.probe.models import BenchmarkResult, CapabilitySnapshot, EncoderCandidate

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1
LOCK_SUFFIX = ".lock"


# =============================================================================
# Record Schema
# =============================================================================


class BenchmarkResultRecord(BaseModel):
    """Persisted form of one BenchmarkResult."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    accelerator: Accelerator
    codec: Codec
    power_mode: PowerMode = PowerMode.NORMAL
    encoder: str = Field(min_length=1)
    speed_multiplier: float = Field(ge=0)
    supports_10bit_decode: bool = False
    supports_10bit_encode: bool = False


class CapabilityRecord(BaseModel):
    """Persisted form of a CapabilitySnapshot (schema version 1)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: Literal[1]
    hardware_fingerprint: str = Field(min_length=1)
    best_accelerator: Accelerator
    best_codec: Codec
    best_uses_low_power: bool
    supports_10bit_decode: bool
    supports_10bit_encode: bool
    results: list[BenchmarkResultRecord] = Field(default_factory=list)
    available_encoders: list[str] = Field(default_factory=list)
    ffmpeg_version: str | None = None
    probed_at: datetime | None = None


def snapshot_to_record(snapshot: CapabilitySnapshot) -> CapabilityRecord:
    """Convert a snapshot into its persisted record."""
    return CapabilityRecord(
        version=CACHE_SCHEMA_VERSION,
        hardware_fingerprint=snapshot.hardware_fingerprint,
        best_accelerator=snapshot.best_accelerator,
        best_codec=snapshot.best_codec,
        best_uses_low_power=snapshot.best_uses_low_power,
        supports_10bit_decode=snapshot.supports_10bit_decode,
        supports_10bit_encode=snapshot.supports_10bit_encode,
        results=[
            BenchmarkResultRecord(
                accelerator=r.candidate.accelerator,
                codec=r.candidate.codec,
                power_mode=r.candidate.power_mode,
                encoder=r.encoder,
                speed_multiplier=r.speed_multiplier,
                supports_10bit_decode=r.supports_10bit_decode,
                supports_10bit_encode=r.supports_10bit_encode,
            )
            for r in snapshot.results
        ],
        available_encoders=sorted(snapshot.available_encoders),
        ffmpeg_version=snapshot.ffmpeg_version,
        probed_at=snapshot.probed_at,
    )


def record_to_snapshot(record: CapabilityRecord) -> CapabilitySnapshot:
    """Convert a validated record back into a snapshot.

    Raises:
        ValueError: If a result names an impossible candidate.
    """
    return CapabilitySnapshot(
        hardware_fingerprint=record.hardware_fingerprint,
        best_accelerator=record.best_accelerator,
        best_codec=record.best_codec,
        best_uses_low_power=record.best_uses_low_power,
        supports_10bit_decode=record.supports_10bit_decode,
        supports_10bit_encode=record.supports_10bit_encode,
        results=tuple(
            BenchmarkResult(
                candidate=EncoderCandidate(r.accelerator, r.codec, r.power_mode),
                encoder=r.encoder,
                speed_multiplier=r.speed_multiplier,
                supports_10bit_decode=r.supports_10bit_decode,
                supports_10bit_encode=r.supports_10bit_encode,
            )
            for r in record.results
        ),
        available_encoders=frozenset(record.available_encoders),
        ffmpeg_version=record.ffmpeg_version,
        probed_at=record.probed_at,
    )


def serialize_snapshot(snapshot: CapabilitySnapshot) -> dict:
    """Serialize a snapshot to a JSON-compatible dict."""
    return snapshot_to_record(snapshot).model_dump(mode="json")


def deserialize_snapshot(data: dict) -> CapabilitySnapshot:
    """Deserialize a snapshot from a dict.

    Raises:
        ValueError: If data is invalid or has the wrong schema version
            (pydantic.ValidationError is a ValueError).
    """
    version = data.get("version", 0) if isinstance(data, dict) else 0
    if version != CACHE_SCHEMA_VERSION:
        raise ValueError(f"Unsupported cache schema version: {version}")
    return record_to_snapshot(CapabilityRecord.model_validate(data))


# =============================================================================
# Cache
# =============================================================================


@contextmanager
def _cache_lock(cache_path: Path, exclusive: bool) -> Iterator[None]:
    """Hold an advisory lock on the cache's lock file.

    Writers take it exclusively and readers shared, so a reader never
    interleaves with the rename of a writer on the same host. The lock file
    is left in place; removing it would race with waiting processes.
    """
    lock_path = cache_path.with_suffix(cache_path.suffix + LOCK_SUFFIX)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a", encoding="utf-8") as lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


class CapabilityCache:
    """Persists the capability snapshot keyed by hardware fingerprint."""

    def __init__(self, cache_path: Path) -> None:
        """Initialize the cache.

        Args:
            cache_path: Path to the JSON cache file.
        """
        self.cache_path = cache_path

    def load(
        self,
        fingerprint: str,
        ffmpeg_version: str | None = None,
    ) -> CapabilitySnapshot | None:
        """Load the cached snapshot if it matches the current host.

        Args:
            fingerprint: Canonical fingerprint of the current hardware.
            ffmpeg_version: Currently installed ffmpeg version. When given,
                a snapshot probed with a different version is stale.

        Returns:
            CapabilitySnapshot on a hit, None on any miss.
        """
        if not self.cache_path.exists():
            logger.debug("Capability cache does not exist: %s", self.cache_path)
            return None

        try:
            with _cache_lock(self.cache_path, exclusive=False):
                with open(self.cache_path, encoding="utf-8") as f:
                    data = json.load(f)
            snapshot = deserialize_snapshot(data)
        except (OSError, json.JSONDecodeError, ValueError, KeyError) as e:
            logger.warning("Ignoring invalid capability cache: %s", e)
            return None

        if snapshot.hardware_fingerprint != fingerprint:
            logger.info(
                "Hardware changed (cached %s, now %s), re-probing",
                snapshot.hardware_fingerprint,
                fingerprint,
            )
            return None

        if ffmpeg_version is not None and snapshot.ffmpeg_version != ffmpeg_version:
            logger.info(
                "ffmpeg changed (cached %s, now %s), re-probing",
                snapshot.ffmpeg_version,
                ffmpeg_version,
            )
            return None

        logger.debug("Loaded capability cache from %s", self.cache_path)
        return snapshot

    def save(self, snapshot: CapabilitySnapshot) -> None:
        """Save a snapshot, replacing any previous one.

        Uses atomic write (temp file + rename) so readers see either the old
        or the new record, never a partial one. Write failures are logged;
        the snapshot is still usable for the current run.

        Args:
            snapshot: Snapshot to persist.
        """
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            json_content = json.dumps(serialize_snapshot(snapshot), indent=2)

            with _cache_lock(self.cache_path, exclusive=True):
                fd, temp_path_str = tempfile.mkstemp(
                    suffix=self.cache_path.suffix,
                    dir=self.cache_path.parent,
                    text=True,
                )
                temp_path = Path(temp_path_str)
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        f.write(json_content)
                    temp_path.replace(self.cache_path)  # Atomic on POSIX
                except Exception:
                    temp_path.unlink(missing_ok=True)
                    raise
            logger.debug("Saved capability cache to %s", self.cache_path)
        except OSError as e:
            logger.warning("Failed to save capability cache: %s", e)

    def invalidate(self) -> None:
        """Invalidate (delete) the cache."""
        try:
            with _cache_lock(self.cache_path, exclusive=True):
                self.cache_path.unlink(missing_ok=True)
            logger.debug("Invalidated capability cache at %s", self.cache_path)
        except OSError as e:
            logger.warning("Failed to invalidate capability cache: %s", e)
