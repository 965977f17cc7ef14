"""
Local installation state: which editors and modules are present on disk.

Sources, cheapest first:
- the Hub's editors-v2.json registry
- a scan of install base directories for version-named editor folders
- the Hub CLI, only when both of the above found nothing
"""

from __future__ import annotations

import datetime
import json
import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Sequence

from .common import current_os, hub_config_dir, parse_timestamp, utc_timestamp
from .config import Config
from .models import InstalledEditor, ReleaseRecord
from .versions import is_editor_version

logger = logging.getLogger(__name__)

EDITORS_FILE = "editors-v2.json"
SECONDARY_INSTALL_PATH_FILE = "secondaryInstallPath.json"
INSTALL_PATH_CACHE_FILE = "editor-catalog-install-path.json"
MODULES_FILE = "modules.json"

HUB_COMMAND_TIMEOUT = 30

# Friendly module names -> Hub CLI module ids
MODULE_MAP = {
    "android": "android",
    "ios": "ios",
    "webgl": "webgl",
    "windows": "windows-il2cpp",
    "linux": "linux-il2cpp",
    "mac": "mac-il2cpp",
    "documentation": "documentation",
    "standardassets": "standardassets",
    "example": "example",
}

# Hub module ids -> directory under PlaybackEngines
MODULE_PATH_MAP = {
    "android": "AndroidPlayer",
    "ios": "iOSSupport",
    "webgl": "WebGLSupport",
    "windows-il2cpp": "WindowsStandaloneSupport",
    "linux-il2cpp": "LinuxStandaloneSupport",
    "mac-il2cpp": "MacStandaloneSupport",
}


class RegistryError(Exception):
    """Raised when the Hub CLI fails while listing installed editors."""
    pass


def editor_executable(version_dir: Path, os_name: str | None = None) -> Path:
    """Get the editor executable (or app bundle) inside a version directory."""
    os_name = os_name or current_os()
    if os_name == "darwin":
        return version_dir / "Unity.app"
    if os_name == "windows":
        return version_dir / "Editor" / "Unity.exe"
    return version_dir / "Editor" / "Unity"


def version_dir_of(editor_path: str | Path, os_name: str | None = None) -> Path:
    """
    Get the version directory for an editor path.

    Accepts either the version directory itself or the executable inside it
    (``<dir>/Unity.app``, ``<dir>/Editor/Unity.exe``, ``<dir>/Editor/Unity``).
    """
    os_name = os_name or current_os()
    path = Path(editor_path)
    if os_name == "darwin":
        return path.parent if path.suffix == ".app" else path
    if path.name in ("Unity.exe", "Unity") and path.parent.name == "Editor":
        return path.parent.parent
    return path


def playback_engines_dir(editor_path: str | Path, os_name: str | None = None) -> Path:
    """Get the PlaybackEngines directory holding platform modules."""
    os_name = os_name or current_os()
    base = version_dir_of(editor_path, os_name)
    if os_name == "darwin":
        return base / "PlaybackEngines"
    return base / "Editor" / "Data" / "PlaybackEngines"


def version_file_path(editor_path: str | Path, os_name: str | None = None) -> Path:
    """Get the version.txt path of an installed editor."""
    os_name = os_name or current_os()
    base = version_dir_of(editor_path, os_name)
    if os_name == "darwin":
        return base / "Unity.app" / "Contents" / "Resources" / "version.txt"
    return base / "Editor" / "Data" / "Resources" / "version.txt"


def hub_candidates() -> list[str]:
    """Default Hub executable locations for this platform."""
    os_name = current_os()
    home = os.path.expanduser("~")
    if os_name == "darwin":
        return [
            "/Applications/Unity Hub.app/Contents/MacOS/Unity Hub",
            os.path.join(home, "Applications", "Unity Hub.app", "Contents", "MacOS", "Unity Hub"),
        ]
    if os_name == "windows":
        program_files = os.environ.get("PROGRAMFILES", r"C:\Program Files")
        local = os.environ.get("LOCALAPPDATA", os.path.join(home, "AppData", "Local"))
        return [
            os.path.join(program_files, "Unity Hub", "Unity Hub.exe"),
            os.path.join(local, "Programs", "Unity Hub", "Unity Hub.exe"),
        ]
    if os_name == "linux":
        return [
            "/opt/Unity Hub/Unity Hub",
            os.path.join(home, "Unity Hub", "Unity Hub"),
            "/usr/bin/unity-hub",
        ]
    return []


def find_hub() -> str:
    """
    Locate the Hub executable.

    EDITOR_CATALOG_HUB_PATH wins when it points to an existing file.

    Returns:
        Path to the Hub executable, or "" if not found
    """
    env_path = os.environ.get("EDITOR_CATALOG_HUB_PATH", "")
    if env_path and os.path.exists(env_path):
        return env_path

    for path in hub_candidates():
        if os.path.exists(path):
            logger.debug(f"Found Hub at {path}")
            return path

    for name in ("unityhub", "Unity Hub"):
        found = shutil.which(name)
        if found:
            return found

    logger.debug("Hub not found; set EDITOR_CATALOG_HUB_PATH to its executable")
    return ""


def parse_hub_editors_output(output: str) -> list[InstalledEditor]:
    """
    Parse ``editors -i`` output.

    Lines look like ``2022.3.60f1 (Apple silicon) , installed at /path/Unity.app``;
    lines without "installed at" fall back to first and last whitespace tokens.
    """
    editors = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        if "installed at" in line:
            head, sep, tail = line.partition("installed at")
            version = head.split(",")[0].strip()
            if "(" in version:
                version = version[:version.index("(")].strip()
            path = tail.strip()
            if version and path:
                editors.append(InstalledEditor(version=version, path=path))
        else:
            parts = line.split()
            if len(parts) >= 2:
                editors.append(InstalledEditor(version=parts[0], path=parts[-1]))
    return editors


def read_changeset_file(path: str | Path) -> str:
    """
    Read the changeset from a version.txt file.

    The first line looks like ``2022.3.20f1 (f3a49e6e3c6e)``.

    Returns:
        Changeset, or "" if the file is missing or unparsable
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            first_line = f.readline().strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Failed to read {path}: {e}")
        return ""

    start = first_line.find("(")
    end = first_line.find(")", start + 1)
    if start > 0 and end > start:
        return first_line[start + 1:end].strip()
    return ""


class InstallationInspector:
    """Answers install-state questions about the local machine."""

    def __init__(
        self,
        config: Config | None = None,
        hub_path: str | None = None,
        install_path_cache: str | Path | None = None,
    ):
        """
        Args:
            config: Configuration (module aliases, install path cache expiry)
            hub_path: Hub executable ("" disables the Hub CLI, None locates it)
            install_path_cache: Install path cache file (defaults to the temp dir)
        """
        self.config = config or Config()
        self.hub_path = find_hub() if hub_path is None else hub_path
        self.install_path_cache = (
            Path(install_path_cache) if install_path_cache is not None
            else Path(tempfile.gettempdir()) / INSTALL_PATH_CACHE_FILE
        )
        self.module_map = dict(MODULE_MAP)
        self.module_map.update(self.config.modules)
        self._install_path: str | None = None
        self._install_path_resolved = False

    # Hub CLI

    def _run_hub(self, *args: str) -> str:
        """Run a headless Hub CLI command and return its stdout.

        Raises:
            RegistryError: If the Hub is missing, times out or fails
        """
        if not self.hub_path:
            raise RegistryError("Hub not found")

        cmd = [self.hub_path, "--", "--headless", *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                stdin=subprocess.DEVNULL,
                text=True,
                timeout=HUB_COMMAND_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise RegistryError(f"Hub command {' '.join(args)} failed: {e}") from e

        if result.returncode != 0:
            raise RegistryError(
                f"Hub command {' '.join(args)} exited with {result.returncode}: {result.stderr.strip()}"
            )
        return result.stdout

    # Registry

    def _editors_from_file(self) -> list[InstalledEditor]:
        base = hub_config_dir()
        if base is None:
            return []

        path = base / EDITORS_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Failed to read {path}: {e}")
            return []

        editors = []
        entries = data.get("data") if isinstance(data, dict) else None
        for entry in entries or []:
            if not isinstance(entry, dict) or not entry.get("version"):
                continue
            location = entry.get("location") or []
            editors.append(InstalledEditor(
                version=entry["version"],
                path=location[0] if location else "",
                architecture=entry.get("architecture") or "",
                manual=bool(entry.get("manual", False)),
            ))

        logger.debug(f"Loaded {len(editors)} editors from {path}")
        return editors

    def _secondary_install_path(self) -> str:
        """Read the Hub's secondary install path (a JSON string), "" if unset."""
        base = hub_config_dir()
        if base is None:
            return ""
        try:
            with open(base / SECONDARY_INSTALL_PATH_FILE, "r", encoding="utf-8") as f:
                value = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return ""
        return value if isinstance(value, str) else ""

    def scan_directories(self) -> list[str]:
        """Install base directories to scan for version folders."""
        dirs = []
        secondary = self._secondary_install_path()
        if secondary:
            dirs.append(secondary)

        os_name = current_os()
        home = os.path.expanduser("~")
        if os_name == "darwin":
            dirs.append("/Applications/Unity/Hub/Editor")
        elif os_name == "windows":
            dirs.append(os.path.join(os.environ.get("PROGRAMFILES", r"C:\Program Files"), "Unity", "Hub", "Editor"))
            drive = os.environ.get("SystemDrive")
            if drive:
                dirs.append(os.path.join(drive + os.sep, "Unity", "Hub", "Editor"))
        elif os_name == "linux":
            dirs.append(os.path.join(home, "Unity", "Hub", "Editor"))
        return dirs

    def scan_install_dir(self, install_dir: str | Path) -> list[InstalledEditor]:
        """Find version-named directories containing an editor executable."""
        root = Path(install_dir)
        try:
            entries = sorted(root.iterdir())
        except OSError:
            return []

        editors = []
        for entry in entries:
            if not entry.is_dir() or not is_editor_version(entry.name):
                continue
            executable = editor_executable(entry)
            if executable.exists():
                editors.append(InstalledEditor(version=entry.name, path=str(executable)))
        return editors

    def list_installed_editors(self) -> list[InstalledEditor]:
        """
        List installed editors.

        editors-v2.json entries come first; scanned directories add versions
        it does not know. The Hub CLI is queried only if both found nothing.

        Returns:
            Installed editors; empty when nothing is installed or no Hub exists

        Raises:
            RegistryError: If the Hub CLI fallback fails
        """
        found: dict[str, InstalledEditor] = {}
        for editor in self._editors_from_file():
            found[editor.version] = editor

        for install_dir in self.scan_directories():
            scanned = self.scan_install_dir(install_dir)
            for editor in scanned:
                found.setdefault(editor.version, editor)
            if scanned:
                logger.debug(f"Scanned {install_dir}: {len(scanned)} editors")

        if found:
            return list(found.values())

        if not self.hub_path:
            logger.debug("No editors found and no Hub available")
            return []

        logger.debug("Falling back to Hub CLI for editor list")
        return parse_hub_editors_output(self._run_hub("editors", "-i"))

    # Install path

    def _load_install_path_cache(self) -> str:
        try:
            with open(self.install_path_cache, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Failed to read install path cache: {e}")
            return ""

        if not isinstance(data, dict):
            return ""

        timestamp = parse_timestamp(data.get("timestamp"))
        max_age = datetime.timedelta(hours=self.config.preferences.install_path_ttl_hours)
        if timestamp is None or datetime.datetime.now(datetime.timezone.utc) - timestamp > max_age:
            logger.debug("Install path cache expired")
            return ""
        return data.get("path") or ""

    def _save_install_path_cache(self, path: str) -> None:
        try:
            with open(self.install_path_cache, "w", encoding="utf-8") as f:
                json.dump({"path": path, "timestamp": utc_timestamp()}, f, indent=2)
        except OSError as e:
            logger.debug(f"Failed to write install path cache: {e}")

    def default_install_paths(self) -> list[str]:
        """Candidate install base paths, EDITOR_CATALOG_EDITOR_BASE_PATH first."""
        paths = []
        custom = os.environ.get("EDITOR_CATALOG_EDITOR_BASE_PATH")
        if custom:
            paths.append(custom)

        os_name = current_os()
        home = os.path.expanduser("~")
        if os_name == "darwin":
            paths += [
                "/Applications/Unity/Hub/Editor",
                os.path.join(home, "Applications", "Unity", "Hub", "Editor"),
            ]
        elif os_name == "windows":
            paths += [
                os.path.join(os.environ.get("PROGRAMFILES", r"C:\Program Files"), "Unity", "Hub", "Editor"),
                os.path.join(os.environ.get("LOCALAPPDATA", home), "Programs", "Unity", "Hub", "Editor"),
            ]
        elif os_name == "linux":
            paths += [
                "/opt/Unity/Hub/Editor",
                os.path.join(home, "Unity", "Hub", "Editor"),
            ]
        return paths

    def get_install_path(self) -> str | None:
        """
        Get the editor install base directory. Resolved once per instance.

        Order: install path cache file, default locations, Hub CLI.

        Returns:
            Base directory, or None if it cannot be determined
        """
        if self._install_path_resolved:
            return self._install_path
        self._install_path_resolved = True

        cached = self._load_install_path_cache()
        if cached and os.path.exists(cached):
            logger.debug(f"Install path from cache: {cached}")
            self._install_path = cached
            return cached

        for path in self.default_install_paths():
            if os.path.exists(path):
                logger.debug(f"Install path from default location: {path}")
                self._install_path = path
                self._save_install_path_cache(path)
                return path

        try:
            path = self._run_hub("install-path", "--get").strip()
        except RegistryError as e:
            logger.debug(f"Install path unavailable: {e}")
            return None

        if path:
            self._install_path = path
            self._save_install_path_cache(path)
        return self._install_path

    # Queries

    def is_installed(self, version: str) -> tuple[bool, str]:
        """
        Check whether a version is installed.

        Probes ``<install path>/<version>`` first, then the registry.

        Returns:
            Tuple of (installed, editor path)

        Raises:
            RegistryError: If the fast path misses and the Hub CLI fails
        """
        base = self.get_install_path()
        if base:
            executable = editor_executable(Path(base) / version)
            if executable.exists():
                logger.debug(f"Found {version} at {executable}")
                return True, str(executable)

        for editor in self.list_installed_editors():
            if editor.version == version:
                return True, editor.path
        return False, ""

    def map_module(self, name: str) -> str:
        """Map a friendly module name to its Hub id (unknown names unchanged)."""
        return self.module_map.get(name.lower(), name)

    def map_modules(self, names: Iterable[str]) -> list[str]:
        """Map friendly module names to Hub ids, dropping unknown names."""
        mapped = []
        for name in names:
            module_id = self.module_map.get(name.lower())
            if module_id:
                mapped.append(module_id)
            else:
                logger.warning(f"Unknown module: {name}")
        return mapped

    def _read_modules_file(self, editor_path: str | Path) -> list[dict[str, Any]]:
        path = version_dir_of(editor_path) / MODULES_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return []
        return [m for m in data if isinstance(m, dict)] if isinstance(data, list) else []

    def is_module_installed(self, editor_path: str | Path, module: str) -> bool:
        """
        Check whether a module is installed for an editor.

        modules.json wins when it states ``isInstalled``; otherwise the
        module's PlaybackEngines directory must exist. Ids without a known
        directory count as not installed.
        """
        module_id = self.map_module(module)

        for entry in self._read_modules_file(editor_path):
            if entry.get("id") == module_id:
                state = entry.get("isInstalled")
                if state is not None:
                    return bool(state)
                break

        dir_name = MODULE_PATH_MAP.get(module_id)
        if dir_name is None:
            logger.debug(f"No directory known for module {module}")
            return False

        return (playback_engines_dir(editor_path) / dir_name).exists()

    def missing_modules(self, editor_path: str | Path, requested: Sequence[str]) -> list[str]:
        """
        Get the requested modules that are not installed.

        Returns:
            Requested names (as given) that are missing, in request order
        """
        return [m for m in requested if not self.is_module_installed(editor_path, m)]

    def editor_changeset(self, editor_path: str | Path) -> str:
        """Get the changeset of an installed editor from its version.txt."""
        return read_changeset_file(version_file_path(editor_path))

    def enrich(self, releases: Sequence[ReleaseRecord]) -> list[ReleaseRecord]:
        """
        Set install state on releases and their modules.

        The registry is queried once. On failure the releases are returned
        unchanged.
        """
        try:
            installed = {e.version: e.path for e in self.list_installed_editors()}
        except RegistryError as e:
            logger.debug(f"Install registry unavailable: {e}")
            return list(releases)

        result = []
        for r in releases:
            path = installed.get(r.version)
            if path is None:
                result.append(r)
                continue
            modules = tuple(
                replace(m, installed=self.is_module_installed(path, m.id))
                for m in r.modules
            )
            result.append(replace(r, installed=True, installed_path=path, modules=modules))
        return result
