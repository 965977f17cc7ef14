"""
Stream (major.minor release line) discovery.

Every source is a provider tried in order; each one is best-effort and a
failing provider contributes nothing. The union of all providers is the set
of streams a catalog must cover.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from .collectors import NEWEST_GENERATION, ReleaseApi
from .models import ReleaseRecord
from .release_cache import CacheSnapshot
from .versions import major_minor, version_sort_key

logger = logging.getLogger(__name__)

# Baseline list of streams (fallback when the API enumeration is empty)
BASELINE_STREAMS = (
    "6000.0", "6000.1", "6000.2", "6000.3",
    "2023.1", "2023.2", "2023.3",
    "2022.1", "2022.2", "2022.3",
    "2021.1", "2021.2", "2021.3",
    "2020.1", "2020.2", "2020.3",
    "2019.4",
)


def sort_streams(major_minors: Iterable[str]) -> list[str]:
    """Sort stream keys newest first."""
    return sorted(set(major_minors), key=lambda mm: version_sort_key(mm + ".0"), reverse=True)


class StreamProvider:
    """
    A source of stream keys.

    Subclasses implement ``collect``; ``attempt`` wraps it so that any
    failure yields an empty set.
    """

    name = "provider"

    def collect(self, found: frozenset[str]) -> set[str]:
        raise NotImplementedError

    def attempt(self, found: frozenset[str]) -> set[str]:
        """
        Collect stream keys, never raising.

        Args:
            found: Stream keys contributed by earlier providers

        Returns:
            Stream keys from this provider
        """
        try:
            result = {mm for mm in self.collect(found) if mm}
        except Exception as e:
            logger.debug(f"Stream provider {self.name} failed: {e}")
            return set()
        logger.debug(f"Stream provider {self.name} contributed {len(result)} streams")
        return result


class RemoteStreamProvider(StreamProvider):
    """Streams enumerated by the release API across all channels."""

    name = "remote"

    def __init__(self, api: ReleaseApi):
        self.api = api

    def collect(self, found: frozenset[str]) -> set[str]:
        return set(self.api.fetch_major_versions())


class BaselineStreamProvider(StreamProvider):
    """
    Fixed baseline list.

    Contributes the whole list only when nothing was found before it. The
    newest generation's lines are always contributed because the SUPPORTED
    channel enumeration omits them.
    """

    name = "baseline"

    def __init__(self, baseline: Sequence[str] = BASELINE_STREAMS):
        self.baseline = tuple(baseline)

    def collect(self, found: frozenset[str]) -> set[str]:
        if not found:
            return set(self.baseline)
        return {mm for mm in self.baseline if mm.startswith(NEWEST_GENERATION + ".")}


class CacheStreamProvider(StreamProvider):
    """Streams named by a cache snapshot (stream keys and cached releases)."""

    name = "cache"

    def __init__(self, snapshot: CacheSnapshot | None):
        self.snapshot = snapshot

    def collect(self, found: frozenset[str]) -> set[str]:
        if self.snapshot is None:
            return set()
        result = {major_minor(r.version) for r in self.snapshot.releases}
        result.update(self.snapshot.streams.keys())
        return result


class ManifestStreamProvider(StreamProvider):
    """Streams named by the Hub's local release manifest."""

    name = "manifest"

    def __init__(self, load_releases: Callable[[], Sequence[ReleaseRecord]]):
        self.load_releases = load_releases

    def collect(self, found: frozenset[str]) -> set[str]:
        return {major_minor(r.version) for r in self.load_releases()}


class StreamDiscovery:
    """Unions the stream keys of an ordered list of providers."""

    def __init__(self, providers: Sequence[StreamProvider]):
        self.providers = list(providers)

    def discover(self) -> list[str]:
        """
        Run every provider in order.

        Returns:
            Stream keys sorted newest first
        """
        found: set[str] = set()
        for provider in self.providers:
            found |= provider.attempt(frozenset(found))
        return sort_streams(found)


def default_providers(
    api: ReleaseApi,
    snapshot: CacheSnapshot | None,
    load_manifest: Callable[[], Sequence[ReleaseRecord]],
    use_cache: bool = True,
) -> list[StreamProvider]:
    """
    Build the standard provider chain: remote, baseline, cache, manifest.

    Args:
        api: Release API client
        snapshot: Loaded cache snapshot (ignored when use_cache is False)
        load_manifest: Callable returning the local manifest releases
        use_cache: Whether cached data may be consulted

    Returns:
        Ordered providers
    """
    providers: list[StreamProvider] = [
        RemoteStreamProvider(api),
        BaselineStreamProvider(),
    ]
    if use_cache:
        providers.append(CacheStreamProvider(snapshot))
    providers.append(ManifestStreamProvider(load_manifest))
    return providers
