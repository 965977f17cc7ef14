"""
Editor Catalog - Release discovery, caching and install-state reconciliation.

Core Modules:
- Versions: ordering and parsing of editor version strings
- Sources: release API, Hub-local manifest, stream discovery
- Catalog: merge, deduplication, ordering, persisted cache
- Installation: installed editors and modules on this machine
- Resolution: one pass from sources to an enriched catalog
"""

__version__ = "1.0.0"
__author__ = "Editor Catalog Contributors"

# Version info for backward compatibility
VERSION = __version__

# Versions
from .versions import (
    Channel,
    VersionIdentifier,
    parse_version,
    compare_versions,
    version_sort_key,
    major_minor,
    is_editor_version,
)

# Data model
from .models import ModuleRecord, ReleaseRecord, Stream, InstalledEditor, InstallRequest

# Sources
from .collectors import (
    CollectionError,
    NetworkError,
    ParseError,
    ReleaseApi,
    ChangesetLookup,
)
from .manifest import ManifestError, load_local_manifest
from .discovery import (
    StreamProvider,
    RemoteStreamProvider,
    BaselineStreamProvider,
    CacheStreamProvider,
    ManifestStreamProvider,
    StreamDiscovery,
    default_providers,
)

# Catalog
from .merge import (
    merge_releases,
    richness_key,
    is_richer,
    deduplicate_releases,
    sort_releases,
    filter_releases,
    latest_per_stream,
)
from .release_cache import CacheCorruptError, CacheSnapshot, ReleaseCache, get_cache_path

# Installation
from .installation import InstallationInspector, RegistryError

# Resolution
from .resolver import CatalogResolver

# Foundation
from .config import Config, Preferences, load_config, load_config_file
from .logging_config import setup_logging, get_logger

__all__ = [
    # Version
    "__version__",
    "VERSION",
    # Versions
    "Channel",
    "VersionIdentifier",
    "parse_version",
    "compare_versions",
    "version_sort_key",
    "major_minor",
    "is_editor_version",
    # Data model
    "ModuleRecord",
    "ReleaseRecord",
    "Stream",
    "InstalledEditor",
    "InstallRequest",
    # Sources
    "CollectionError",
    "NetworkError",
    "ParseError",
    "ReleaseApi",
    "ChangesetLookup",
    "ManifestError",
    "load_local_manifest",
    "StreamProvider",
    "RemoteStreamProvider",
    "BaselineStreamProvider",
    "CacheStreamProvider",
    "ManifestStreamProvider",
    "StreamDiscovery",
    "default_providers",
    # Catalog
    "merge_releases",
    "richness_key",
    "is_richer",
    "deduplicate_releases",
    "sort_releases",
    "filter_releases",
    "latest_per_stream",
    "CacheCorruptError",
    "CacheSnapshot",
    "ReleaseCache",
    "get_cache_path",
    # Installation
    "InstallationInspector",
    "RegistryError",
    # Resolution
    "CatalogResolver",
    # Foundation
    "Config",
    "Preferences",
    "load_config",
    "load_config_file",
    "setup_logging",
    "get_logger",
]
