"""
Semantic version canonicalization and ordering.

Declared versions are free-form text. Only strings that are semantic versions
after an optional ``v`` prefix is added take part in upgrade detection; the
shorthand forms ``1`` and ``1.2`` are accepted and padded with zeros. Build
metadata never affects precedence and is dropped from the canonical value.
"""

from __future__ import annotations

import re
from typing import Optional

import semantic_version


_NUMBER = r"(?:0|[1-9][0-9]*)"
_PRERELEASE_ID = r"(?:0|[1-9][0-9]*|[0-9]*[A-Za-z-][0-9A-Za-z-]*)"
_BUILD_ID = r"[0-9A-Za-z-]+"

_SEMVER_RE = re.compile(
    rf"^v(?P<major>{_NUMBER})"
    rf"(?:\.(?P<minor>{_NUMBER})"
    rf"(?:\.(?P<patch>{_NUMBER})"
    rf"(?:-(?P<prerelease>{_PRERELEASE_ID}(?:\.{_PRERELEASE_ID})*))?"
    rf"(?:\+(?P<build>{_BUILD_ID}(?:\.{_BUILD_ID})*))?"
    r")?)?$"
)


def canonicalize(raw: Optional[str]) -> Optional[semantic_version.Version]:
    """Return the canonical semantic version for ``raw`` or None if invalid."""
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    if not text.startswith("v"):
        text = "v" + text

    match = _SEMVER_RE.match(text)
    if match is None:
        return None

    core = "{}.{}.{}".format(
        match.group("major"),
        match.group("minor") or "0",
        match.group("patch") or "0",
    )
    if match.group("prerelease"):
        core = f"{core}-{match.group('prerelease')}"
    try:
        return semantic_version.Version(core)
    except ValueError:
        return None


def compare(a: semantic_version.Version, b: semantic_version.Version) -> int:
    """Three-way comparison under semantic version precedence."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def is_upgrade(old: Optional[str], new: Optional[str]) -> bool:
    """True when both versions are valid and ``new`` is strictly greater."""
    old_version = canonicalize(old)
    new_version = canonicalize(new)
    if old_version is None or new_version is None:
        return False
    return compare(old_version, new_version) < 0
