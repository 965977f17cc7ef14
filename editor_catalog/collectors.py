"""
Release metadata collection from the release GraphQL API.

Stream probes (one small query per major.minor line) run in parallel; the
full release listing is one batched query that aliases every stream, so a
complete refresh costs a single large round trip. Nothing here retries: a
failed call raises NetworkError/ParseError and the caller decides how to
degrade.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.request
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Iterable, Sequence

from .common import detect_platform_arch, parse_timestamp
from .config import Config
from .models import ModuleRecord, ReleaseRecord, Stream
from .versions import major_minor, version_sort_key

logger = logging.getLogger(__name__)

USER_AGENT = "editor-catalog/1.0"

# Engine generation whose lines are labelled specially and always probed
NEWEST_GENERATION = "6000"

CHANNEL_ALIASES = ("lts", "tech", "beta", "supported")

MAJOR_VERSIONS_QUERY = """query GetMajorVersions {
  lts: getUnityReleaseMajorVersions(stream: LTS) { version }
  tech: getUnityReleaseMajorVersions(stream: TECH) { version }
  beta: getUnityReleaseMajorVersions(stream: BETA) { version }
  supported: getUnityReleaseMajorVersions(stream: SUPPORTED) { version }
}"""

STREAM_METADATA_QUERY = """query GetRelease($limit: Int, $version: String!) {
  getUnityReleases(
    limit: $limit
    version: $version
    entitlements: [XLTS]
  ) {
    totalCount
    edges {
      node {
        version
        stream
      }
    }
  }
}"""

CHANGESET_QUERY = """query GetRelease($limit: Int, $version: String!) {
  getUnityReleases(
    limit: $limit
    version: $version
    entitlements: [XLTS]
  ) {
    edges {
      node {
        version
        unityHubDeepLink
        stream
      }
    }
  }
}"""

_RELEASE_FIELDS = """
    edges {
      node {
        version
        shortRevision
        stream
        releaseDate
        recommended
        releaseNotes { url }
        label { labelText }
        downloads {
          ... on UnityReleaseHubDownload {
            platform
            architecture
            downloadSize { value unit }
            installedSize { value unit }
            modules {
              id
              name
              description
              category
              hidden
              downloadSize { value unit }
              installedSize { value unit }
            }
          }
        }
      }
    }"""


class CollectionError(Exception):
    """Raised when release metadata collection fails."""
    pass


class NetworkError(CollectionError):
    """Raised when network requests fail."""
    pass


class ParseError(CollectionError):
    """Raised when response parsing fails."""
    pass


def http_post_json(url: str, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
    """POST a JSON document and decode the JSON response.

    Args:
        url: Endpoint URL
        payload: Request body
        timeout: Timeout in seconds

    Returns:
        Decoded response object

    Raises:
        NetworkError: If the request fails or times out
        ParseError: If the response is not a JSON object
    """
    body = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=body,
        headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
        method="POST",
    )

    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            raw = response.read()
    except Exception as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e

    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"Failed to parse response from {url}: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Unexpected response from {url}: not a JSON object")
    return data


def graphql_request(operation: str, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build a GraphQL request body."""
    return {
        "operationName": operation,
        "variables": variables or {},
        "query": query,
    }


def _size(value: Any) -> int:
    """Convert a {value, unit} size object to whole bytes."""
    if isinstance(value, dict):
        value = value.get("value", 0)
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def stream_display_name(mm: str, lts: bool) -> str:
    """Build a stream display name, e.g. "Unity 6 (6000.0) LTS" or "2022.3 LTS"."""
    name = mm
    if mm.startswith(NEWEST_GENERATION):
        name = f"Unity 6 ({mm})"
    if lts:
        name += " LTS"
    return name


def stream_alias(mm: str) -> str:
    """Convert a stream key into a GraphQL alias ("2022.3" -> "v2022_3")."""
    return "v" + mm.replace(".", "_")


def build_batch_releases_query(major_minors: Sequence[str], limit: int = 200) -> str:
    """Build one GraphQL query with an aliased field per stream.

    Args:
        major_minors: Stream keys to fetch
        limit: Maximum releases per stream

    Returns:
        Query text for operation "GetAllReleases"
    """
    lines = ["query GetAllReleases {"]
    for mm in major_minors:
        lines.append(
            f'  {stream_alias(mm)}: getUnityReleases(version: "{mm}", limit: {limit}, '
            f"entitlements: [XLTS]) {{{_RELEASE_FIELDS}}}"
        )
    lines.append("}")
    return "\n".join(lines)


def decode_batch_response(payload: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
    """Decode the dynamically aliased batch response into alias -> node list.

    Args:
        payload: Decoded JSON response

    Returns:
        Mapping of alias (e.g., "v2022_3") to release node dictionaries

    Raises:
        ParseError: If the response has no usable "data" object
    """
    data = payload.get("data")
    if not isinstance(data, dict):
        errors = payload.get("errors")
        raise ParseError(f"Batch response has no data (errors: {errors})")

    result: dict[str, list[dict[str, Any]]] = {}
    for alias, section in data.items():
        if not isinstance(section, dict):
            continue
        nodes = []
        for edge in section.get("edges") or []:
            node = edge.get("node") if isinstance(edge, dict) else None
            if isinstance(node, dict):
                nodes.append(node)
        result[alias] = nodes
    return result


def node_to_release(node: dict[str, Any], platform: str, arch: str) -> ReleaseRecord:
    """Convert a release node into a ReleaseRecord for one platform/architecture.

    Only the download variant matching ``platform`` and ``arch`` contributes
    sizes and modules; without a match the release has neither.
    """
    stream = node.get("stream") or ""
    label = node.get("label") or {}
    notes = node.get("releaseNotes") or {}

    download_size = installed_size = 0
    modules: list[ModuleRecord] = []

    for dl in node.get("downloads") or []:
        if dl.get("platform") == platform and dl.get("architecture") == arch:
            download_size = _size(dl.get("downloadSize"))
            installed_size = _size(dl.get("installedSize"))
            for mod in dl.get("modules") or []:
                modules.append(ModuleRecord(
                    id=mod.get("id", ""),
                    name=mod.get("name", ""),
                    description=mod.get("description") or "",
                    category=mod.get("category", ""),
                    hidden=bool(mod.get("hidden", False)),
                    download_size=_size(mod.get("downloadSize")),
                    installed_size=_size(mod.get("installedSize")),
                ))
            break

    return ReleaseRecord(
        version=node.get("version", ""),
        changeset=node.get("shortRevision") or "",
        stream=stream,
        lts=stream == "LTS",
        release_date=parse_timestamp(node.get("releaseDate")),
        recommended=bool(node.get("recommended", False)),
        release_notes_url=notes.get("url") or "",
        download_size=download_size,
        installed_size=installed_size,
        security_alert=label.get("labelText") or "",
        modules=tuple(modules),
    )


class ReleaseApi:
    """Client for the release GraphQL API."""

    def __init__(self, config: Config | None = None):
        self.config = config or Config()
        self.url = self.config.api_url
        self.prefs = self.config.preferences

    def fetch_major_versions(self) -> list[str]:
        """Enumerate major.minor lines across the LTS, TECH, BETA and SUPPORTED channels.

        Raises:
            CollectionError: If the request fails
        """
        payload = http_post_json(
            self.url,
            graphql_request("GetMajorVersions", MAJOR_VERSIONS_QUERY),
            timeout=self.prefs.timeout_seconds,
        )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ParseError("Major versions response has no data")

        seen: set[str] = set()
        for alias in CHANNEL_ALIASES:
            for entry in data.get(alias) or []:
                version = entry.get("version") if isinstance(entry, dict) else None
                if version:
                    seen.add(version)

        logger.debug(f"API reported {len(seen)} major versions")
        return sorted(seen, key=lambda mm: version_sort_key(mm + ".0"), reverse=True)

    def fetch_stream_metadata(self, mm: str) -> Stream:
        """Fetch release count and newest release for one stream.

        Raises:
            CollectionError: If the request fails
        """
        payload = http_post_json(
            self.url,
            graphql_request("GetRelease", STREAM_METADATA_QUERY, {"version": mm, "limit": 1}),
            timeout=self.prefs.timeout_seconds,
        )
        try:
            releases = payload["data"]["getUnityReleases"]
        except (KeyError, TypeError) as e:
            raise ParseError(f"Stream metadata response for {mm} is malformed: {e}") from e

        edges = releases.get("edges") or []
        latest_version = ""
        lts = False
        if edges:
            node = edges[0].get("node") or {}
            latest_version = node.get("version", "")
            lts = node.get("stream") == "LTS"

        return Stream(
            major_minor=mm,
            display_name=stream_display_name(mm, lts),
            total_count=int(releases.get("totalCount") or 0),
            latest_version=latest_version,
            lts=lts,
            newest_generation=mm.startswith(NEWEST_GENERATION),
        )

    def fetch_streams(self, major_minors: Iterable[str]) -> tuple[list[Stream], list[CollectionError]]:
        """Fetch metadata for many streams in parallel.

        Each worker appends its stream, or its error, to the shared result
        lists under a lock; a failing stream does not abort the others.
        Streams reporting no releases are dropped.

        Returns:
            Tuple of (streams sorted newest first, errors)
        """
        targets = list(major_minors)
        streams: list[Stream] = []
        errors: list[CollectionError] = []
        lock = threading.Lock()

        if not targets:
            return streams, errors

        def probe(mm: str) -> None:
            try:
                stream = self.fetch_stream_metadata(mm)
            except CollectionError as e:
                logger.debug(f"Failed to fetch stream metadata for {mm}: {e}")
                with lock:
                    errors.append(e)
                return

            if stream.total_count > 0:
                with lock:
                    streams.append(stream)

        with ThreadPoolExecutor(max_workers=min(self.prefs.max_workers, len(targets))) as executor:
            futures = [executor.submit(probe, mm) for mm in targets]
            for future in as_completed(futures):
                future.result()

        streams.sort(key=lambda s: version_sort_key(s.major_minor + ".0"), reverse=True)
        return streams, errors

    def fetch_releases_batched(self, major_minors: Sequence[str]) -> list[ReleaseRecord]:
        """Fetch all releases of the given streams in one request.

        Raises:
            CollectionError: If the request fails
        """
        if not major_minors:
            return []

        query = build_batch_releases_query(major_minors, limit=self.prefs.release_limit)
        payload = http_post_json(
            self.url,
            graphql_request("GetAllReleases", query),
            timeout=self.prefs.batch_timeout_seconds,
        )

        platform, arch = detect_platform_arch()
        releases = [
            node_to_release(node, platform, arch)
            for nodes in decode_batch_response(payload).values()
            for node in nodes
        ]
        logger.debug(f"Fetched {len(releases)} releases for {len(major_minors)} streams")
        return releases

    def fetch_changeset(self, version: str) -> str:
        """Look up the changeset of one version via its Hub deep link.

        Returns:
            Changeset, or "" if the version is not listed

        Raises:
            CollectionError: If the request fails
        """
        mm = major_minor(version)
        payload = http_post_json(
            self.url,
            graphql_request("GetRelease", CHANGESET_QUERY, {"version": mm, "limit": self.prefs.release_limit}),
            timeout=self.prefs.timeout_seconds,
        )
        try:
            edges = payload["data"]["getUnityReleases"]["edges"] or []
        except (KeyError, TypeError) as e:
            raise ParseError(f"Changeset response for {version} is malformed: {e}") from e

        for edge in edges:
            node = edge.get("node") or {}
            if node.get("version") == version:
                # unityhub://2022.3.59f1/630718f645a5
                deep_link = node.get("unityHubDeepLink") or ""
                if "/" in deep_link:
                    return deep_link.rsplit("/", 1)[-1]
        return ""


class ChangesetLookup:
    """
    Changeset cache keyed by version, with expiry.

    Instances are independent; pass one to every consumer that should share
    lookups.
    """

    def __init__(self, api: ReleaseApi, ttl_seconds: float | None = None):
        self.api = api
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else api.prefs.changeset_ttl_seconds
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.RLock()

    def get_cached(self, version: str) -> str:
        """Return the cached changeset if present and unexpired, else "".

        Expired entries are evicted.
        """
        with self._lock:
            entry = self._entries.get(version)
            if entry is None:
                return ""
            if time.monotonic() - entry[1] < self.ttl_seconds:
                return entry[0]
            del self._entries[version]
        return ""

    def put(self, version: str, changeset: str) -> None:
        if not changeset:
            return
        with self._lock:
            self._entries[version] = (changeset, time.monotonic())

    def get(self, version: str) -> str:
        """Get the changeset for a version, querying the API on a miss.

        Raises:
            CollectionError: If the version is malformed or the lookup fails
        """
        cached = self.get_cached(version)
        if cached:
            logger.debug(f"Using cached changeset for {version}: {cached}")
            return cached

        if major_minor(version) == version:
            raise CollectionError(f"Invalid version format: {version}")

        changeset = self.api.fetch_changeset(version)
        if not changeset:
            raise CollectionError(f"Changeset not found for version {version}")

        self.put(version, changeset)
        logger.debug(f"Found changeset for {version}: {changeset}")
        return changeset

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

