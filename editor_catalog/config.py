"""
Configuration file parsing and management.

Supports YAML configuration files with JSON fallback.
Merges configurations from multiple sources (project → user → system → defaults).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .common import vlog


DEFAULT_API_URL = "https://services.unity.com/graphql"

# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".editor-catalog.yml",                                      # Project root (highest priority)
    ".editor-catalog.yaml",                                     # Alternative extension
    os.path.expanduser("~/.config/editor-catalog/config.yml"),  # User global
    os.path.expanduser("~/.config/editor-catalog/config.yaml"),
    "/etc/editor-catalog/config.yml",                           # System global
    "/etc/editor-catalog/config.yaml",
]


@dataclass(frozen=True)
class Preferences:
    """
    Network and cache behavior.

    Attributes:
        timeout_seconds: Timeout for metadata probes (stream counts, channel lists)
        batch_timeout_seconds: Timeout for the batched release fetch
        max_workers: Maximum number of parallel stream probes
        release_limit: Maximum releases requested per stream
        changeset_ttl_seconds: Expiry of in-memory changeset lookups
        install_path_ttl_hours: Expiry of the cached editor install path
    """
    timeout_seconds: int = 10
    batch_timeout_seconds: int = 30
    max_workers: int = 16
    release_limit: int = 200
    changeset_ttl_seconds: int = 86400
    install_path_ttl_hours: int = 24

    def __post_init__(self):
        """Validate preferences after initialization."""
        if self.timeout_seconds < 1 or self.timeout_seconds > 120:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 1 and 120"
            )

        if self.batch_timeout_seconds < self.timeout_seconds or self.batch_timeout_seconds > 600:
            raise ValueError(
                f"Invalid batch_timeout_seconds: {self.batch_timeout_seconds}. "
                f"Must be between timeout_seconds ({self.timeout_seconds}) and 600"
            )

        if self.max_workers < 1 or self.max_workers > 32:
            raise ValueError(
                f"Invalid max_workers: {self.max_workers}. "
                "Must be between 1 and 32"
            )

        if self.release_limit < 1 or self.release_limit > 1000:
            raise ValueError(
                f"Invalid release_limit: {self.release_limit}. "
                "Must be between 1 and 1000"
            )

        if self.changeset_ttl_seconds < 60 or self.changeset_ttl_seconds > 7 * 86400:
            raise ValueError(
                f"Invalid changeset_ttl_seconds: {self.changeset_ttl_seconds}. "
                "Must be between 60 and 604800 (1 minute to 1 week)"
            )

        if self.install_path_ttl_hours < 1 or self.install_path_ttl_hours > 24 * 30:
            raise ValueError(
                f"Invalid install_path_ttl_hours: {self.install_path_ttl_hours}. "
                "Must be between 1 and 720"
            )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Preferences:
        """Create Preferences from dictionary."""
        return Preferences(
            timeout_seconds=data.get("timeout_seconds", 10),
            batch_timeout_seconds=data.get("batch_timeout_seconds", 30),
            max_workers=data.get("max_workers", 16),
            release_limit=data.get("release_limit", 200),
            changeset_ttl_seconds=data.get("changeset_ttl_seconds", 86400),
            install_path_ttl_hours=data.get("install_path_ttl_hours", 24),
        )


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for editor-catalog.

    Attributes:
        version: Config schema version
        api_url: Release API endpoint
        preferences: Network and cache behavior
        modules: Extra friendly-name → Hub module id aliases
        source: Path to the configuration file that was loaded
    """
    version: int = 1
    api_url: str = DEFAULT_API_URL
    preferences: Preferences = field(default_factory=Preferences)
    modules: dict[str, str] = field(default_factory=dict)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

        if not self.api_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid api_url: {self.api_url}. Must be an http(s) URL")

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        preferences = Preferences.from_dict(data.get("preferences", {}))

        modules = {
            str(name).lower(): str(module_id)
            for name, module_id in (data.get("modules") or {}).items()
        }

        return Config(
            version=data.get("version", 1),
            api_url=data.get("api_url", DEFAULT_API_URL),
            preferences=preferences,
            modules=modules,
            source=source,
        )

    def merge_with(self, other: Config) -> Config:
        """
        Merge this config with another, preferring values from this config.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged Config object
        """
        defaults = Preferences()
        mine = self.preferences
        theirs = other.preferences

        def pick(name: str) -> Any:
            value = getattr(mine, name)
            return value if value != getattr(defaults, name) else getattr(theirs, name)

        merged_preferences = Preferences(
            timeout_seconds=pick("timeout_seconds"),
            batch_timeout_seconds=pick("batch_timeout_seconds"),
            max_workers=pick("max_workers"),
            release_limit=pick("release_limit"),
            changeset_ttl_seconds=pick("changeset_ttl_seconds"),
            install_path_ttl_hours=pick("install_path_ttl_hours"),
        )

        merged_modules = dict(other.modules)
        merged_modules.update(self.modules)

        return Config(
            version=self.version,
            api_url=self.api_url if self.api_url != DEFAULT_API_URL else other.api_url,
            preferences=merged_preferences,
            modules=merged_modules,
            source=self.source or other.source,
        )


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    import yaml

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def _load_json(file_path: str) -> dict[str, Any] | None:
    """
    Load JSON configuration file.

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError):
        return None


def load_config_file(file_path: str, verbose: bool = False) -> Config | None:
    """
    Load configuration from a single file.

    ``.json`` files are read as JSON; everything else as YAML.

    Args:
        file_path: Path to configuration file
        verbose: Enable verbose logging

    Returns:
        Config object, or None if file cannot be loaded
    """
    if not os.path.exists(file_path):
        return None

    vlog(f"Loading config from: {file_path}", verbose)

    if Path(file_path).suffix == ".json":
        data = _load_json(file_path)
    else:
        data = _load_yaml(file_path)

    if data is None:
        vlog(f"Invalid config file: {file_path}", verbose)
        return None

    try:
        config = Config.from_dict(data, source=file_path)
        vlog(f"Loaded config successfully: {file_path}", verbose)
        return config
    except (ValueError, TypeError) as e:
        vlog(f"Config validation failed for {file_path}: {e}", verbose)
        return None


def load_config(
    custom_path: str | None = None,
    verbose: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Custom path (if provided)
    2. Project .editor-catalog.yml
    3. User ~/.config/editor-catalog/config.yml
    4. System /etc/editor-catalog/config.yml
    5. Default configuration

    Args:
        custom_path: Optional path to custom configuration file
        verbose: Enable verbose logging

    Returns:
        Merged Config object (never None, returns defaults if no config found)

    Raises:
        ValueError: If custom_path is provided but file cannot be loaded
    """
    configs: list[Config] = []

    if custom_path:
        config = load_config_file(custom_path, verbose)
        if config is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        configs.append(config)
        vlog(f"Using custom config: {custom_path}", verbose)

    for location in CONFIG_LOCATIONS:
        config = load_config_file(location, verbose)
        if config is not None:
            configs.append(config)
            vlog(f"Found config at: {location}", verbose)

    if not configs:
        vlog("No config files found, using defaults", verbose)
        return Config()

    merged = configs[0]
    for config in configs[1:]:
        merged = merged.merge_with(config)

    vlog(f"Merged {len(configs)} config files", verbose)
    return merged
