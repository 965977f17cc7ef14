"""
Catalog resolution: one pass from sources to an enriched, ordered catalog.

A pass loads the cache (at most once), discovers streams, fetches their
metadata and either reuses the cached releases or rebuilds the catalog from
the local manifest plus one batched remote fetch. Source failures degrade;
only a corrupt cache file reaches the caller.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from .collectors import ChangesetLookup, CollectionError, ReleaseApi
from .common import cache_reads_disabled, detect_architecture
from .config import Config
from .discovery import StreamDiscovery, default_providers
from .installation import InstallationInspector
from .manifest import ManifestError, load_local_manifest
from .merge import deduplicate_releases, latest_per_stream, merge_releases, sort_releases
from .models import InstallRequest, ReleaseRecord, Stream
from .release_cache import CacheSnapshot, ReleaseCache
from .versions import major_minor

logger = logging.getLogger(__name__)


class CatalogResolver:
    """Builds the release catalog and answers queries against it."""

    def __init__(
        self,
        config: Config | None = None,
        cache: ReleaseCache | None = None,
        inspector: InstallationInspector | None = None,
        changesets: ChangesetLookup | None = None,
        no_cache: bool | None = None,
        api: ReleaseApi | None = None,
        load_manifest: Callable[[], Sequence[ReleaseRecord]] | None = None,
    ):
        """
        Args:
            config: Configuration (defaults to built-in defaults)
            cache: Release cache (defaults to the user cache file)
            inspector: Installation inspector
            changesets: Shared changeset lookup
            no_cache: Skip cache reads (None honours EDITOR_CATALOG_NO_CACHE)
            api: Release API client
            load_manifest: Callable returning local manifest releases
        """
        self.config = config or Config()
        self.api = api or ReleaseApi(self.config)
        self.cache = cache or ReleaseCache()
        self.inspector = inspector or InstallationInspector(self.config)
        self.changesets = changesets or ChangesetLookup(self.api)
        self.no_cache = cache_reads_disabled() if no_cache is None else no_cache
        self.load_manifest = load_manifest or load_local_manifest
        self._releases: list[ReleaseRecord] | None = None
        self._streams: list[Stream] | None = None

    def _local_releases(self) -> list[ReleaseRecord]:
        try:
            return list(self.load_manifest())
        except ManifestError as e:
            logger.debug(f"Local manifest unavailable: {e}")
            return []

    def _finish(self, releases: Sequence[ReleaseRecord]) -> list[ReleaseRecord]:
        self._releases = sort_releases(self.inspector.enrich(releases))
        return self._releases

    def resolve(self) -> list[ReleaseRecord]:
        """
        Run one resolution pass.

        Returns:
            Enriched releases, newest first

        Raises:
            CacheCorruptError: If the cache file exists but cannot be parsed
        """
        snapshot: CacheSnapshot | None = None
        if not self.no_cache:
            snapshot, found = self.cache.load()
            logger.debug(f"Release cache {'loaded' if found else 'not found'}: {self.cache.path}")

        local = self._local_releases()

        providers = default_providers(self.api, snapshot, lambda: local, use_cache=not self.no_cache)
        major_minors = StreamDiscovery(providers).discover()
        streams, errors = self.api.fetch_streams(major_minors)
        self._streams = streams
        if errors:
            logger.debug(f"{len(errors)} stream metadata requests failed")

        if streams and ReleaseCache.is_valid(snapshot, streams):
            logger.debug("Using cached releases")
            return self._finish(ReleaseCache.to_releases(snapshot))

        remote: list[ReleaseRecord] = []
        try:
            remote = self.api.fetch_releases_batched([s.major_minor for s in streams])
        except CollectionError as e:
            logger.debug(f"Batched release fetch failed: {e}")

        fetched = bool(remote)
        cached = ReleaseCache.to_releases(snapshot) if snapshot is not None else []
        if not fetched and cached:
            logger.debug("Remote releases unavailable, using stale cache")
            remote = cached
        elif cached:
            # Streams whose probe failed were not fetched; keep their cached releases
            covered = {s.major_minor for s in streams}
            remote = remote + [r for r in cached if major_minor(r.version) not in covered]

        releases = deduplicate_releases(merge_releases(remote, local))

        if streams and fetched:
            try:
                self.cache.save(streams, releases)
            except IOError as e:
                logger.debug(f"Failed to save release cache: {e}")

        return self._finish(releases)

    def releases(self) -> list[ReleaseRecord]:
        """Get the catalog, resolving on first use."""
        if self._releases is None:
            return self.resolve()
        return self._releases

    def streams(self) -> list[Stream]:
        """
        Get discovered streams with metadata, newest first.

        Reuses the streams of the last pass; otherwise discovers and fetches
        them without building the catalog.
        """
        if self._streams is not None:
            return self._streams

        snapshot = None
        if not self.no_cache:
            snapshot, _ = self.cache.load()
        providers = default_providers(self.api, snapshot, self._local_releases, use_cache=not self.no_cache)
        self._streams, _ = self.api.fetch_streams(StreamDiscovery(providers).discover())
        return self._streams

    def find(self, version: str) -> ReleaseRecord | None:
        for r in self.releases():
            if r.version == version:
                return r
        return None

    def latest_per_stream(self) -> list[ReleaseRecord]:
        return latest_per_stream(self.releases())

    def changeset_for(self, version: str) -> str:
        """
        Get the changeset for a version.

        The catalog is consulted first (without resolving one just for this);
        the changeset lookup queries the API on a miss.

        Raises:
            CollectionError: If the version is unknown or the lookup fails
        """
        if self._releases is not None:
            release = self.find(version)
            if release is not None and release.changeset:
                self.changesets.put(version, release.changeset)
                return release.changeset
        return self.changesets.get(version)

    def is_installed(self, version: str) -> tuple[bool, str]:
        return self.inspector.is_installed(version)

    def missing_modules(self, version: str, modules: Sequence[str]) -> list[str]:
        """
        Get the requested modules that an installed version lacks.

        A version that is not installed lacks every requested module.
        """
        installed, path = self.inspector.is_installed(version)
        if not installed:
            return list(modules)
        return self.inspector.missing_modules(path, modules)

    def build_install_request(self, version: str, modules: Sequence[str] = ()) -> InstallRequest:
        """
        Build the request a launcher needs to install a version.

        Friendly module names are mapped to Hub ids; unknown names are dropped
        with a warning. The changeset is looked up best-effort.
        """
        try:
            changeset = self.changeset_for(version)
        except CollectionError as e:
            logger.debug(f"No changeset for {version}: {e}")
            changeset = ""

        return InstallRequest(
            version=version,
            changeset=changeset,
            modules=tuple(self.inspector.map_modules(modules)),
            architecture=detect_architecture(),
        )
