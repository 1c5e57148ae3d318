"""
Interfaces for repositories, release resolvers and ecosystems.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence

from .models import CommitInfo, DependencySnapshot, ReleaseRecord


class CommitSource(Protocol):
    """Read-only view of a repository's history."""

    def commits_touching(
        self,
        paths: Sequence[str],
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[CommitInfo]:
        ...

    def read_file(self, commit_hash: str, path: str) -> Optional[str]:
        ...


class ReleaseResolver(Protocol):
    """Resolve publication times of dependency versions."""

    ecosystem: str

    def resolve(self, name: str, version: str) -> Optional[datetime]:
        ...

    def latest(self, name: str) -> Optional[ReleaseRecord]:
        ...


class Ecosystem(Protocol):
    """Manifest layout, snapshot extraction and release resolution for one ecosystem."""

    name: str
    manifest_paths: Sequence[str]
    resolver: ReleaseResolver

    def extract_snapshot(self, contents: Dict[str, Optional[str]]) -> DependencySnapshot:
        ...
