"""
Common utilities shared across editor_catalog modules.
"""

from __future__ import annotations

import datetime
import os
import platform
import sys
from pathlib import Path


def current_os() -> str:
    """
    Get the normalized name of the running operating system.

    Returns:
        One of "darwin", "windows", "linux", or the raw sys.platform value.
    """
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def is_arm64() -> bool:
    """Check if the interpreter runs on a 64-bit ARM machine."""
    return platform.machine().lower() in ("arm64", "aarch64")


def detect_platform_arch() -> tuple[str, str]:
    """
    Get the platform and architecture names used by the release API.

    Returns:
        Tuple of (platform, architecture), e.g. ("LINUX", "X86_64")
    """
    os_name = current_os()
    if os_name == "darwin":
        api_platform = "MAC_OS"
    elif os_name == "linux":
        api_platform = "LINUX"
    else:
        api_platform = "WINDOWS"

    return api_platform, "ARM64" if is_arm64() else "X86_64"


def detect_architecture() -> str:
    """Get the architecture name the Hub CLI expects ("arm64" or "x86_64")."""
    return "arm64" if is_arm64() else "x86_64"


def hub_config_dir() -> Path | None:
    """
    Get the directory holding the Hub's configuration files.

    EDITOR_CATALOG_HUB_CONFIG_DIR overrides the platform default.

    Returns:
        Path to the config directory, or None on unsupported platforms
    """
    override = os.environ.get("EDITOR_CATALOG_HUB_CONFIG_DIR")
    if override:
        return Path(override)

    os_name = current_os()
    home = Path(os.path.expanduser("~"))
    if os_name == "darwin":
        return home / "Library" / "Application Support" / "UnityHub"
    if os_name == "windows":
        return Path(os.environ.get("APPDATA", str(home))) / "UnityHub"
    if os_name == "linux":
        return home / ".config" / "UnityHub"
    return None


def user_cache_dir() -> Path:
    """Get the per-user cache directory for this platform."""
    os_name = current_os()
    home = Path(os.path.expanduser("~"))
    if os_name == "darwin":
        return home / "Library" / "Caches"
    if os_name == "windows":
        local = os.environ.get("LOCALAPPDATA")
        return Path(local) if local else home / "AppData" / "Local"
    xdg = os.environ.get("XDG_CACHE_HOME")
    return Path(xdg) if xdg else home / ".cache"


def cache_reads_disabled() -> bool:
    """Check whether EDITOR_CATALOG_NO_CACHE disables cache reads."""
    return os.environ.get("EDITOR_CATALOG_NO_CACHE", "0").lower() in ("1", "true", "yes")


def utc_timestamp(value: datetime.datetime | None = None) -> str:
    """
    Format a timestamp as ISO-8601 UTC with a "Z" suffix.

    Args:
        value: Timestamp to format (defaults to now)

    Returns:
        Timestamp string like "2025-01-15T00:00:00Z"
    """
    if value is None:
        value = datetime.datetime.now(datetime.timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return (
        value.astimezone(datetime.timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def parse_timestamp(value: str | None) -> datetime.datetime | None:
    """
    Parse an ISO-8601 timestamp, tolerating a trailing "Z".

    Returns:
        Timezone-aware datetime, or None if empty or unparsable
    """
    if not value:
        return None
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or os.environ.get("EDITOR_CATALOG_DEBUG", "0") == "1":
        from .logging_config import get_logger
        get_logger().info(msg)
