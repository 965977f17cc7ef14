"""
Hub-local release manifest (releases.json).

The Hub keeps its own list of official and beta releases, with module
listings but without dates. Entries carry a download URL of the form
``https://download.unity3d.com/download_unity/<changeset>/...`` from which the
changeset is recovered.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .common import hub_config_dir
from .models import ModuleRecord, ReleaseRecord

logger = logging.getLogger(__name__)

MANIFEST_FILE = "releases.json"


class ManifestError(ValueError):
    """Raised when the manifest exists but cannot be parsed."""
    pass


def get_manifest_path() -> Path | None:
    """Get the path to the Hub's releases.json, None on unsupported platforms."""
    base = hub_config_dir()
    return base / MANIFEST_FILE if base is not None else None


def changeset_from_download_url(url: str) -> str:
    """Extract the path segment following "download_unity" ("" if absent)."""
    parts = url.split("/")
    for i, part in enumerate(parts):
        if part == "download_unity" and i + 1 < len(parts):
            return parts[i + 1]
    return ""


def _entry_to_release(entry: dict[str, Any], stream: str) -> ReleaseRecord:
    modules = tuple(
        ModuleRecord(
            id=mod.get("id", ""),
            name=mod.get("name", ""),
            description=mod.get("description") or "",
            category=mod.get("category", ""),
            hidden=not mod.get("visible", False),
            download_size=int(mod.get("downloadSize", 0) or 0),
            installed_size=int(mod.get("installedSize", 0) or 0),
        )
        for mod in entry.get("modules") or []
        if isinstance(mod, dict)
    )

    return ReleaseRecord(
        version=entry.get("version", ""),
        changeset=changeset_from_download_url(entry.get("downloadUrl") or ""),
        stream=stream,
        lts=bool(entry.get("lts", False)),
        download_size=int(entry.get("downloadSize", 0) or 0),
        architecture=entry.get("arch") or "",
        modules=modules,
    )


def load_local_manifest(path: Path | None = None) -> list[ReleaseRecord]:
    """Load releases from the Hub's releases.json.

    Official entries are LTS or TECH depending on their ``lts`` flag; beta
    entries are BETA.

    Args:
        path: Manifest path (defaults to get_manifest_path())

    Returns:
        Releases in file order; empty if the file does not exist

    Raises:
        ManifestError: If the file exists but cannot be parsed
    """
    if path is None:
        path = get_manifest_path()
    if path is None:
        logger.debug("No Hub config directory on this platform")
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug(f"Release manifest not found: {path}")
        return []
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestError(f"Failed to parse release manifest {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Release manifest {path} is not a JSON object")

    releases: list[ReleaseRecord] = []
    for entry in data.get("official") or []:
        if isinstance(entry, dict):
            releases.append(_entry_to_release(entry, "LTS" if entry.get("lts") else "TECH"))
    for entry in data.get("beta") or []:
        if isinstance(entry, dict):
            releases.append(_entry_to_release(entry, "BETA"))

    logger.debug(f"Loaded {len(releases)} releases from {path}")
    return releases
