"""
Editor version parsing and ordering.

Versions look like "2022.3.60f1", "6000.4.0b3" or "6000.4.0a5": dot-separated
numbers where the last token carries a release channel letter (a=alpha,
b=beta, f=final) followed by a build number. Parsing is total: garbled
numeric fields become 0 so that any two strings can be ordered.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from functools import cmp_to_key

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")
_CHANNEL_LETTERS = "abf"


class Channel(enum.IntEnum):
    """Release channel, ranked alpha < beta < final."""

    ALPHA = 1
    BETA = 2
    FINAL = 3


_CHANNEL_BY_LETTER = {"a": Channel.ALPHA, "b": Channel.BETA, "f": Channel.FINAL}


def _leading_int(token: str) -> int:
    """Parse the leading integer of a token, 0 if there is none."""
    m = _LEADING_INT_RE.match(token)
    return int(m.group(1)) if m else 0


def _parse_last_token(token: str) -> tuple[int, Channel, int]:
    """Split "60f1" into (60, FINAL, 1); no channel letter means final build 0."""
    for idx, ch in enumerate(token):
        if ch in _CHANNEL_LETTERS:
            return (
                _leading_int(token[:idx]),
                _CHANNEL_BY_LETTER[ch],
                _leading_int(token[idx + 1:]),
            )
    return _leading_int(token), Channel.FINAL, 0


@dataclass(frozen=True)
class VersionIdentifier:
    """
    Parsed editor version.

    Attributes:
        major: First number (e.g., 2022, 6000)
        minor: Second number, 0 when absent
        patch: Third number, 0 when absent
        channel: Release channel of the last token
        build_number: Number following the channel letter
        parts: Comparable integer components. One per dot token, except the
            last token which contributes (number, channel rank, build number).
    """
    major: int
    minor: int
    patch: int
    channel: Channel
    build_number: int
    parts: tuple[int, ...]

    def __str__(self) -> str:
        letter = "abf"[self.channel - 1]
        return f"{self.major}.{self.minor}.{self.patch}{letter}{self.build_number}"


def parse_version(version: str) -> VersionIdentifier:
    """
    Parse a version string. Never raises.

    Args:
        version: Version string (e.g., "2022.3.60f1")

    Returns:
        VersionIdentifier with comparable parts
    """
    tokens = version.split(".")
    numbers = [_leading_int(t) for t in tokens[:-1]]
    last_number, channel, build = _parse_last_token(tokens[-1])
    numbers.append(last_number)
    numbers.extend([0] * (3 - len(numbers)))

    return VersionIdentifier(
        major=numbers[0],
        minor=numbers[1],
        patch=numbers[2],
        channel=channel,
        build_number=build,
        parts=tuple(numbers[:len(tokens)]) + (int(channel), build),
    )


def compare_versions(a: str, b: str) -> int:
    """
    Compare two version strings.

    Components are compared left to right; when the shared prefix ties the
    version with more components is greater.

    Returns:
        1 if a > b, -1 if a < b, 0 if equal
    """
    pa = parse_version(a).parts
    pb = parse_version(b).parts

    for x, y in zip(pa, pb):
        if x != y:
            return 1 if x > y else -1

    if len(pa) == len(pb):
        return 0
    return 1 if len(pa) > len(pb) else -1


version_sort_key = cmp_to_key(compare_versions)


def major_minor(version: str) -> str:
    """
    Extract the major.minor stream key from a version.

    Args:
        version: Version string (e.g., "2022.3.60f1")

    Returns:
        "2022.3", or the input unchanged if it has fewer than two segments
    """
    parts = version.split(".")
    if len(parts) >= 2:
        return f"{parts[0]}.{parts[1]}"
    return version


def is_editor_version(name: str) -> bool:
    """
    Check if a directory name looks like an editor version.

    Format: YEAR.MINOR.PATCH[a|b|f|p|x]REVISION, e.g. "2022.3.60f1".
    """
    if len(name) < 8:
        return False
    if name.count(".") < 2:
        return False
    return name[0].isdigit()
