"""
Merging, deduplication, ordering and filtering of release records.
"""

from __future__ import annotations

from dataclasses import replace
from functools import cmp_to_key
from typing import Iterable, Sequence

from .models import ReleaseRecord
from .versions import compare_versions, major_minor


def merge_releases(
    remote: Sequence[ReleaseRecord],
    local: Sequence[ReleaseRecord],
) -> list[ReleaseRecord]:
    """
    Merge API releases with local manifest releases.

    API releases carry the metadata (date, recommendation, notes) and win.
    When a version exists in both and the API record has no modules, the
    local modules are copied over. Local-only versions are appended.

    Args:
        remote: Releases from the API
        local: Releases from the local manifest

    Returns:
        Merged releases (remote order, then local-only in local order)
    """
    local_by_version: dict[str, ReleaseRecord] = {}
    for r in local:
        local_by_version.setdefault(r.version, r)

    matched: set[str] = set()
    result: list[ReleaseRecord] = []

    for r in remote:
        local_release = local_by_version.get(r.version)
        if local_release is not None:
            matched.add(r.version)
            if not r.modules and local_release.modules:
                r = replace(r, modules=local_release.modules)
        result.append(r)

    result.extend(r for r in local if r.version not in matched)
    return result


def richness_key(release: ReleaseRecord) -> tuple[int, int]:
    """(module count, has changeset), compared in that order."""
    return len(release.modules), 1 if release.changeset else 0


def is_richer(candidate: ReleaseRecord, kept: ReleaseRecord) -> bool:
    """
    Decide whether a duplicate should replace the record already kept.

    Tie-break order:
    1. strictly more modules wins
    2. otherwise, having a changeset wins over having none
    Anything else keeps the earlier record.
    """
    if len(candidate.modules) > len(kept.modules):
        return True
    return bool(candidate.changeset) and not kept.changeset


def deduplicate_releases(releases: Iterable[ReleaseRecord]) -> list[ReleaseRecord]:
    """
    Remove duplicate versions, keeping the richest record at the position of
    the first occurrence.
    """
    index: dict[str, int] = {}
    result: list[ReleaseRecord] = []

    for r in releases:
        idx = index.get(r.version)
        if idx is None:
            index[r.version] = len(result)
            result.append(r)
        elif is_richer(r, result[idx]):
            result[idx] = r

    return result


def _compare_releases(a: ReleaseRecord, b: ReleaseRecord) -> int:
    """Newest first: by release date when both are known, else by version."""
    if a.release_date is not None and b.release_date is not None:
        if a.release_date != b.release_date:
            return -1 if a.release_date > b.release_date else 1
        return 0
    return -compare_versions(a.version, b.version)


def sort_releases(releases: Iterable[ReleaseRecord]) -> list[ReleaseRecord]:
    """Sort releases newest first."""
    return sorted(releases, key=cmp_to_key(_compare_releases))


def filter_releases(
    releases: Iterable[ReleaseRecord],
    lts: bool = False,
    stream: str = "",
    installed: bool | None = None,
    major: str = "",
    prefix: str = "",
) -> list[ReleaseRecord]:
    """
    Filter releases.

    Args:
        releases: Releases to filter
        lts: Keep only LTS releases
        stream: Keep only this stream (case-insensitive)
        installed: True keeps installed, False keeps not installed, None keeps all
        major: Keep only this major version (e.g., "6000", "2022")
        prefix: Keep versions containing this text (case-insensitive)

    Returns:
        Matching releases in input order
    """
    prefix = prefix.lower()
    result = []
    for r in releases:
        if lts and not r.lts:
            continue
        if stream and r.stream.lower() != stream.lower():
            continue
        if installed is not None and r.installed != installed:
            continue
        if major and r.version.split(".")[0] != major:
            continue
        if prefix and prefix not in r.version.lower():
            continue
        result.append(r)
    return result


def latest_per_stream(releases: Iterable[ReleaseRecord]) -> list[ReleaseRecord]:
    """
    Get the newest release of every major.minor line.

    Returns:
        One release per stream, newest stream first
    """
    latest: dict[str, ReleaseRecord] = {}
    for r in releases:
        key = major_minor(r.version)
        if key == r.version:
            continue
        current = latest.get(key)
        if current is None or compare_versions(r.version, current.version) > 0:
            latest[key] = r

    return sorted(latest.values(), key=cmp_to_key(lambda a, b: compare_versions(b.version, a.version)))
