"""
Release catalog cache management.

The cache file holds the last merged catalog plus, per stream, the release
count the API reported when it was written. A later run compares those counts
against fresh stream metadata to decide whether the expensive batched fetch
can be skipped.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Sequence

from .common import user_cache_dir, utc_timestamp
from .models import ReleaseRecord, Stream

logger = logging.getLogger(__name__)

DEFAULT_CACHE_FILE = "releases-cache.json"


class CacheCorruptError(ValueError):
    """Raised when the cache file exists but cannot be parsed."""
    pass


@dataclass
class StreamCacheEntry:
    """Cached metadata for one stream."""

    total_count: int = 0
    latest_version: str = ""
    lts: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "totalCount": self.total_count,
            "latestVersion": self.latest_version,
            "lts": self.lts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StreamCacheEntry":
        """Create from dictionary."""
        return cls(
            total_count=int(data.get("totalCount", 0) or 0),
            latest_version=data.get("latestVersion", ""),
            lts=bool(data.get("lts", False)),
        )


@dataclass
class CacheSnapshot:
    """Container for the persisted catalog."""

    streams: dict[str, StreamCacheEntry] = field(default_factory=dict)
    releases: list[ReleaseRecord] = field(default_factory=list)
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "streams": {mm: s.to_dict() for mm, s in self.streams.items()},
            "releases": [r.to_cache_dict() for r in self.releases],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheSnapshot":
        """Create from dictionary. Unknown keys are ignored."""
        streams_raw = data.get("streams") or {}
        releases_raw = data.get("releases") or []

        return cls(
            streams={
                mm: StreamCacheEntry.from_dict(entry)
                for mm, entry in streams_raw.items()
            },
            releases=[ReleaseRecord.from_dict(r) for r in releases_raw],
            updated_at=data.get("updatedAt", ""),
        )


def get_cache_path() -> Path:
    """Get cache file path from env or default.

    Returns:
        Path to the release cache file
    """
    cache_file = os.environ.get("EDITOR_CATALOG_CACHE_FILE")
    if cache_file:
        return Path(cache_file)
    return user_cache_dir() / "editor-catalog" / DEFAULT_CACHE_FILE


class ReleaseCache:
    """Loads, saves and validates the release catalog cache file."""

    def __init__(self, path: str | Path | None = None):
        """
        Args:
            path: Cache file path (defaults to get_cache_path())
        """
        self.path = Path(path) if path is not None else get_cache_path()

    def load(self) -> tuple[CacheSnapshot | None, bool]:
        """Load the cache snapshot.

        Returns:
            Tuple of (snapshot, found). A missing file is (None, False).

        Raises:
            CacheCorruptError: If the file exists but cannot be parsed
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None, False
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CacheCorruptError(f"Failed to read release cache {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise CacheCorruptError(f"Release cache {self.path} is not a JSON object")

        try:
            return CacheSnapshot.from_dict(data), True
        except (AttributeError, TypeError, ValueError) as e:
            raise CacheCorruptError(f"Malformed release cache {self.path}: {e}") from e

    def save(self, streams: Sequence[Stream], releases: Sequence[ReleaseRecord]) -> CacheSnapshot:
        """Write streams and releases to the cache file.

        Args:
            streams: Current stream metadata
            releases: Releases to persist (install state is stripped)

        Returns:
            The snapshot that was written
        """
        snapshot = CacheSnapshot(
            streams={
                s.major_minor: StreamCacheEntry(
                    total_count=s.total_count,
                    latest_version=s.latest_version,
                    lts=s.lts,
                )
                for s in streams
            },
            releases=list(releases),
            updated_at=utc_timestamp(),
        )

        # Atomic write: write to temp file then rename
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.path.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, indent=2, ensure_ascii=False)
            temp_path.replace(self.path)
        except Exception as e:
            raise IOError(f"Failed to write release cache: {e}")

        logger.debug(f"Saved {len(snapshot.releases)} releases to {self.path}")
        return snapshot

    def clear(self) -> None:
        """Delete the cache file. A missing file is not an error."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    @staticmethod
    def is_valid(snapshot: CacheSnapshot | None, current_streams: Sequence[Stream]) -> bool:
        """Check the snapshot against fresh stream metadata.

        All-or-nothing: any current stream missing from the snapshot, or with
        a different release count, invalidates the whole snapshot.

        Args:
            snapshot: Loaded snapshot, or None
            current_streams: Freshly fetched stream metadata

        Returns:
            True if the cached releases can be reused
        """
        if snapshot is None or not snapshot.streams:
            return False

        for stream in current_streams:
            cached = snapshot.streams.get(stream.major_minor)
            if cached is None:
                logger.debug(f"Cache invalid: stream {stream.major_minor} not cached")
                return False
            if cached.total_count != stream.total_count:
                logger.debug(
                    f"Cache invalid: totalCount changed for {stream.major_minor} "
                    f"(cached {cached.total_count}, current {stream.total_count})"
                )
                return False

        return True

    @staticmethod
    def to_releases(snapshot: CacheSnapshot) -> list[ReleaseRecord]:
        """Get cached releases with install state reset."""
        return [
            replace(r, installed=False, installed_path="",
                    modules=tuple(replace(m, installed=False) for m in r.modules))
            for r in snapshot.releases
        ]
