"""
Best-effort dependency extraction from manifest files.

The parsers here are lenient line scanners. Anything they do not recognise
is skipped and none of them raise on malformed input.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Dict, Optional

from .models import DependencySnapshot


logger = logging.getLogger(__name__)

NPM_RANGE_PREFIX = "^~>=< "

_GO_REQUIRE_LINE = re.compile(r"^[\t ]*([\w./\-]+)[\t ]+v[^\s]+")
_PINNED_REQUIREMENT = re.compile(r"^([A-Za-z0-9_.\-]+)==([0-9A-Za-z.+\-]+)$")
_INSTALL_REQUIRES_KEY = re.compile(r"^install_requires\s*=\s*(.*)$")
_CFG_DEPENDENCY = re.compile(r"^([^#;\s][^><=!~\s]*)\s*([><=!~].+)?$")


def extract_npm_dependencies(text: Optional[str]) -> DependencySnapshot:
    """Read the ``dependencies`` map of a package.json document."""
    if not text:
        return {}
    try:
        root = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.debug("Unparseable package.json skipped: %s", e)
        return {}
    if not isinstance(root, dict):
        return {}

    dependencies = root.get("dependencies")
    if not isinstance(dependencies, dict):
        return {}

    snapshot = {}
    for name, declared in dependencies.items():
        if isinstance(declared, str):
            snapshot[name] = declared.lstrip(NPM_RANGE_PREFIX)
    return snapshot


def extract_go_requirements(text: Optional[str]) -> DependencySnapshot:
    """Read ``require`` directives (single line and block form) of a go.mod."""
    snapshot: Dict[str, str] = {}
    if not text:
        return snapshot

    in_block = False
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("require ("):
            in_block = True
            continue
        if in_block and line == ")":
            in_block = False
            continue
        if not in_block and not line.startswith("require "):
            continue

        if not in_block:
            line = line[len("require"):]
        if _GO_REQUIRE_LINE.match(line):
            parts = line.split()
            if len(parts) >= 2:
                snapshot[parts[0]] = parts[1]
    return snapshot


def extract_pinned_requirements(text: Optional[str]) -> DependencySnapshot:
    """Read exact ``name==version`` pins from a requirements file."""
    snapshot: Dict[str, str] = {}
    if not text:
        return snapshot

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if " #" in line:
            line = line.split(" #", 1)[0].rstrip()
        match = _PINNED_REQUIREMENT.match(line)
        if match:
            snapshot[match.group(1).lower()] = match.group(2)
    return snapshot


def extract_setup_cfg_requirements(text: Optional[str]) -> DependencySnapshot:
    """Read ``install_requires`` of a setup.cfg, inline and indented forms."""
    snapshot: Dict[str, str] = {}
    if not text:
        return snapshot

    in_block = False
    for raw in text.splitlines():
        line = raw.rstrip("\r\t ")

        if line.startswith("["):
            in_block = False

        key = _INSTALL_REQUIRES_KEY.match(line)
        if key:
            in_block = True
            tail = key.group(1).strip()
            if tail:
                for part in tail.split(","):
                    _add_cfg_dependency(snapshot, part)
            continue

        if not in_block:
            continue
        if not line.strip():
            in_block = False
            continue
        if raw[:1] in (" ", "\t"):
            _add_cfg_dependency(snapshot, line.strip())
        else:
            in_block = False
    return snapshot


def _add_cfg_dependency(snapshot: DependencySnapshot, entry: str) -> None:
    entry = entry.split(";", 1)[0].strip()
    if not entry or entry[0] in "#<>=!~":
        return
    match = _CFG_DEPENDENCY.match(entry)
    if match is None:
        return
    name = match.group(1).lower()
    constraint = match.group(2) or ""
    snapshot[name] = constraint.lstrip("=<>!~ ").strip()


def extract_python_dependencies(
    requirements_txt: Optional[str], setup_cfg: Optional[str] = None
) -> DependencySnapshot:
    """Merge requirements.txt pins with setup.cfg entries (setup.cfg wins)."""
    snapshot = extract_pinned_requirements(requirements_txt)
    snapshot.update(extract_setup_cfg_requirements(setup_cfg))
    return snapshot
