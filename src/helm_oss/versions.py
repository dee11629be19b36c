"""Semantic version helpers for chart versions.

Chart versions are compared by semantic version, not by string. Parsing is
lenient in the way Helm's own tooling is: a leading "v" is accepted and missing
minor or patch components default to zero, so "1.0" and "1.0.0" are equal.
"""

from __future__ import annotations

from typing import Optional

import semver

from .exceptions import InvalidVersionError


def parse_version(version: str) -> semver.Version:
    """Parse a chart version string.

    Raises:
        InvalidVersionError: When the string is not a semantic version
    """
    if not isinstance(version, str) or not version.strip():
        raise InvalidVersionError(str(version))

    candidate = version.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]

    try:
        return semver.Version.parse(candidate, optional_minor_and_patch=True)
    except (ValueError, TypeError) as e:
        raise InvalidVersionError(version) from e


def try_parse_version(version: str) -> Optional[semver.Version]:
    """Parse a chart version string, returning None when it is not valid."""
    try:
        return parse_version(version)
    except InvalidVersionError:
        return None


def is_valid_version(version: str) -> bool:
    return try_parse_version(version) is not None
