"""
Ecosystem adapters: which manifests to read, how to parse them, where to resolve releases.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from .config import normalize_ecosystem
from .interfaces import Ecosystem, ReleaseResolver
from .manifests import (
    extract_go_requirements,
    extract_npm_dependencies,
    extract_python_dependencies,
)
from .models import DependencySnapshot
from .resolvers import RESOLVER_CLASSES, ReleaseTimeCache


class NpmEcosystem:
    name = "npm"
    manifest_paths: Sequence[str] = ("package.json",)

    def __init__(self, resolver: ReleaseResolver) -> None:
        self.resolver = resolver

    def extract_snapshot(self, contents: Dict[str, Optional[str]]) -> DependencySnapshot:
        return extract_npm_dependencies(contents.get("package.json"))


class GoEcosystem:
    name = "go"
    manifest_paths: Sequence[str] = ("go.mod",)

    def __init__(self, resolver: ReleaseResolver) -> None:
        self.resolver = resolver

    def extract_snapshot(self, contents: Dict[str, Optional[str]]) -> DependencySnapshot:
        return extract_go_requirements(contents.get("go.mod"))


class PythonEcosystem:
    name = "py"
    manifest_paths: Sequence[str] = ("requirements.txt", "setup.cfg")

    def __init__(self, resolver: ReleaseResolver) -> None:
        self.resolver = resolver

    def extract_snapshot(self, contents: Dict[str, Optional[str]]) -> DependencySnapshot:
        return extract_python_dependencies(
            contents.get("requirements.txt"), contents.get("setup.cfg")
        )


ECOSYSTEM_CLASSES = {
    "npm": NpmEcosystem,
    "go": GoEcosystem,
    "py": PythonEcosystem,
}


def build_ecosystem(
    name: str,
    cache: Optional[ReleaseTimeCache] = None,
    registry_urls: Optional[Dict[str, str]] = None,
) -> Ecosystem:
    """Create the adapter for ``name`` with a resolver bound to ``cache``.

    Raises:
        ConfigurationError: if ``name`` is not a supported ecosystem.
    """
    key = normalize_ecosystem(name)
    cache = cache if cache is not None else ReleaseTimeCache()
    base_url = (registry_urls or {}).get(key)
    resolver = RESOLVER_CLASSES[key](cache, base_url=base_url)
    return ECOSYSTEM_CLASSES[key](resolver)
