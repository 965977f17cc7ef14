"""
Output rendering and formatting.
"""

import json
import os
import sys
from typing import Sequence

from .models import ReleaseRecord, Stream


# Environment options
USE_EMOJI = os.environ.get("EDITOR_CATALOG_EMOJI", "1") == "1"
ENABLE_LINKS = os.environ.get("EDITOR_CATALOG_LINKS", "1") == "1"
USE_COLOR = os.environ.get("EDITOR_CATALOG_COLOR", "1") == "1"

# ANSI color codes
GREEN = "\033[32m"
BOLD_GREEN = "\033[1;32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RED = "\033[31m"
RESET = "\033[0m"


def status_icon(installed: bool) -> str:
    """Get the install state icon for a release."""
    if not USE_EMOJI:
        return "✓" if installed else "-"
    return "✅" if installed else "⬇"


def colorize(text: str, color: str) -> str:
    """Apply color to text.

    Args:
        text: Text to colorize
        color: ANSI color code

    Returns:
        Colored text or plain text if colors disabled
    """
    if not USE_COLOR or not text:
        return text
    return f"{color}{text}{RESET}"


def osc8(url: str, text: str) -> str:
    """Create OSC8 hyperlink.

    Args:
        url: Link URL
        text: Display text

    Returns:
        Hyperlinked text or plain text if links disabled
    """
    if not ENABLE_LINKS or not url:
        return text

    # OSC 8 hyperlink format
    return f"\033]8;;{url}\033\\{text}\033]8;;\033\\"


def format_size(size: int) -> str:
    """Format a byte count as "1.2 GB", "" for zero."""
    if size <= 0:
        return ""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit in ("B", "KB") else f"{value:.1f} {unit}"
        value /= 1024
    return ""


def _release_date(release: ReleaseRecord) -> str:
    return release.release_date.strftime("%Y-%m-%d") if release.release_date else ""


def render_releases_table(releases: Sequence[ReleaseRecord]) -> None:
    """Render releases as a pipe-delimited table.

    Args:
        releases: Releases to render, in display order
    """
    headers = ("state", "version", "stream", "released", "changeset", "modules")
    print("|".join(headers))

    for r in releases:
        version = osc8(r.release_notes_url, r.version)
        if r.installed:
            version = colorize(version, BOLD_GREEN)
        elif r.recommended:
            version = colorize(version, GREEN)

        stream = colorize(r.stream, BLUE) if r.lts else r.stream
        if r.security_alert:
            stream = f"{stream}  [{colorize(r.security_alert, RED)}]"

        modules = r.visible_modules
        if r.installed and modules:
            installed_count = sum(1 for m in modules if m.installed)
            module_display = f"{installed_count}/{len(modules)}"
        else:
            module_display = str(len(modules)) if modules else ""

        print("|".join((
            status_icon(r.installed),
            version,
            stream,
            _release_date(r),
            r.changeset,
            module_display,
        )))


def render_releases_tsv(releases: Sequence[ReleaseRecord]) -> None:
    """Render releases as tab-separated values without colors."""
    for r in releases:
        print("\t".join((
            r.version,
            r.stream,
            _release_date(r),
            r.changeset,
            "installed" if r.installed else "",
            r.installed_path,
        )))


def render_releases_json(releases: Sequence[ReleaseRecord]) -> None:
    print(json.dumps([r.to_dict() for r in releases], indent=2, ensure_ascii=False))


def render_streams_table(streams: Sequence[Stream]) -> None:
    """Render streams as a pipe-delimited table."""
    print("|".join(("stream", "name", "releases", "latest")))
    for s in streams:
        name = colorize(s.display_name, BLUE) if s.lts else s.display_name
        print("|".join((s.major_minor, name, str(s.total_count), s.latest_version)))


def render_streams_json(streams: Sequence[Stream]) -> None:
    print(json.dumps([s.to_dict() for s in streams], indent=2, ensure_ascii=False))


def print_summary(releases: Sequence[ReleaseRecord], total: int) -> None:
    """Print summary line.

    Args:
        releases: Releases shown
        total: Size of the whole catalog
    """
    installed = sum(1 for r in releases if r.installed)
    lts = sum(1 for r in releases if r.lts)
    print(
        f"\nReleases: {len(releases)} shown of {total}, {lts} LTS, {installed} installed",
        file=sys.stderr,
    )
