"""
Release catalog data model.

Release records are rebuilt on every resolution pass and replaced wholesale
(``dataclasses.replace``) rather than mutated. Install state
(``installed``/``installed_path``) is machine-specific and never persisted.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any

from .common import parse_timestamp, utc_timestamp

MODULE_CATEGORIES = ("PLATFORM", "DEV_TOOL", "LANGUAGE_PACK", "DOCUMENTATION")
RELEASE_STREAMS = ("LTS", "TECH", "BETA", "SUPPORTED")


@dataclass(frozen=True)
class ModuleRecord:
    """
    Optional installable component of a release (e.g., a platform target).

    Attributes:
        id: Module id, unique within a release (e.g., "android")
        name: Display name
        description: Longer description
        category: PLATFORM, DEV_TOOL, LANGUAGE_PACK or DOCUMENTATION
        hidden: Whether the module is hidden from selection
        download_size: Download size in bytes
        installed_size: Size on disk in bytes
        installed: Whether the module is present locally
    """
    id: str
    name: str = ""
    description: str = ""
    category: str = ""
    hidden: bool = False
    download_size: int = 0
    installed_size: int = 0
    installed: bool = False

    @property
    def is_visible(self) -> bool:
        """True if the module is user-selectable."""
        return self.category == "PLATFORM" and not self.hidden

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (without install state)."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "hidden": self.hidden,
            "downloadSize": self.download_size,
            "installedSize": self.installed_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleRecord":
        """Create from dictionary."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            category=data.get("category", ""),
            hidden=bool(data.get("hidden", False)),
            download_size=int(data.get("downloadSize", 0) or 0),
            installed_size=int(data.get("installedSize", 0) or 0),
        )


@dataclass(frozen=True)
class ReleaseRecord:
    """
    One installable editor version. ``version`` is the identity key.

    Attributes:
        version: Canonical version string (e.g., "2022.3.60f1")
        changeset: Short revision identifier (e.g., "5f63fdee6d95")
        stream: LTS, TECH, BETA or SUPPORTED
        lts: Whether this is a long-term-support release
        release_date: Release timestamp, None if unknown
        recommended: Whether the release is the recommended one
        release_notes_url: Link to release notes
        download_size: Editor download size in bytes for this platform
        installed_size: Editor size on disk in bytes for this platform
        security_alert: Security alert label text, if any
        architecture: Architecture hint from the local manifest
        modules: Modules available for this platform
        installed: Whether the editor is installed locally
        installed_path: Path to the installed editor executable
    """
    version: str
    changeset: str = ""
    stream: str = ""
    lts: bool = False
    release_date: datetime.datetime | None = None
    recommended: bool = False
    release_notes_url: str = ""
    download_size: int = 0
    installed_size: int = 0
    security_alert: str = ""
    architecture: str = ""
    modules: tuple[ModuleRecord, ...] = ()
    installed: bool = False
    installed_path: str = ""

    @property
    def visible_modules(self) -> tuple[ModuleRecord, ...]:
        return tuple(m for m in self.modules if m.is_visible)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output, including install state."""
        d = self.to_cache_dict()
        d["installed"] = self.installed
        d["installedPath"] = self.installed_path
        d["modules"] = [
            {**m.to_dict(), "installed": m.installed} for m in self.modules
        ]
        return d

    def to_cache_dict(self) -> dict[str, Any]:
        """Convert to the persisted cache shape. Install state is never cached."""
        return {
            "version": self.version,
            "changeset": self.changeset,
            "lts": self.lts,
            "stream": self.stream,
            "releaseDate": utc_timestamp(self.release_date) if self.release_date else "",
            "recommended": self.recommended,
            "releaseNotesUrl": self.release_notes_url,
            "downloadSize": self.download_size,
            "installedSize": self.installed_size,
            "securityAlert": self.security_alert,
            "modules": [m.to_dict() for m in self.modules],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReleaseRecord":
        """Create from a cache dictionary. Install state is always reset."""
        return cls(
            version=data.get("version", ""),
            changeset=data.get("changeset", ""),
            stream=data.get("stream", ""),
            lts=bool(data.get("lts", False)),
            release_date=parse_timestamp(data.get("releaseDate")),
            recommended=bool(data.get("recommended", False)),
            release_notes_url=data.get("releaseNotesUrl", ""),
            download_size=int(data.get("downloadSize", 0) or 0),
            installed_size=int(data.get("installedSize", 0) or 0),
            security_alert=data.get("securityAlert", ""),
            modules=tuple(
                ModuleRecord.from_dict(m) for m in data.get("modules") or ()
            ),
        )


@dataclass(frozen=True)
class Stream:
    """
    A major.minor release line summary.

    Attributes:
        major_minor: Stream key (e.g., "2022.3")
        display_name: Human-readable name (e.g., "2022.3 LTS")
        total_count: Number of releases the API reports for this line
        latest_version: Newest version in the line
        lts: Whether the newest release is LTS
        newest_generation: Whether the line belongs to the newest engine generation
    """
    major_minor: str
    display_name: str = ""
    total_count: int = 0
    latest_version: str = ""
    lts: bool = False
    newest_generation: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "majorMinor": self.major_minor,
            "displayName": self.display_name,
            "totalCount": self.total_count,
            "latestVersion": self.latest_version,
            "lts": self.lts,
        }


@dataclass(frozen=True)
class InstalledEditor:
    """One entry of the local install registry."""
    version: str
    path: str
    architecture: str = ""
    manual: bool = False


@dataclass(frozen=True)
class InstallRequest:
    """
    Fully resolved install request handed to the external launcher.

    Attributes:
        version: Editor version to install
        changeset: Changeset required by the Hub for unlisted versions
        modules: Hub module ids to install alongside the editor
        architecture: Target architecture ("x86_64" or "arm64")
    """
    version: str
    changeset: str = ""
    modules: tuple[str, ...] = field(default_factory=tuple)
    architecture: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "changeset": self.changeset,
            "modules": list(self.modules),
            "architecture": self.architecture,
        }
