"""Shared fakes for analyzer tests: an in-memory history and registry."""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import pytest

from dependency_lag.ecosystems import PythonEcosystem
from dependency_lag.models import CommitInfo, ReleaseRecord


def utc(year, month, day, hour=0):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


class FakeHistory:
    """Commits as (hash, authored_at, {path: contents}) tuples, oldest first."""

    def __init__(self, commits):
        self.commits = list(commits)
        self.contents = {sha: files for sha, _, files in self.commits}

    def commits_touching(self, paths: Sequence[str], since=None, until=None) -> List[CommitInfo]:
        out = []
        for sha, authored_at, _ in self.commits:
            if since is not None and authored_at < since:
                continue
            if until is not None and authored_at > until:
                continue
            out.append(CommitInfo(hash=sha, authored_at=authored_at))
        return out

    def read_file(self, commit_hash: str, path: str) -> Optional[str]:
        return self.contents.get(commit_hash, {}).get(path)


class FakeResolver:
    """Release times from a dict; records every lookup."""

    ecosystem = "py"

    def __init__(self, release_times: Dict[tuple, datetime] = None, latest: Dict[str, tuple] = None):
        self.release_times = dict(release_times or {})
        self.latest_versions = dict(latest or {})
        self.calls = []

    def resolve(self, name: str, version: str) -> Optional[datetime]:
        self.calls.append((name, version))
        return self.release_times.get((name, version))

    def latest(self, name: str) -> Optional[ReleaseRecord]:
        if name not in self.latest_versions:
            return None
        version, released_at = self.latest_versions[name]
        return ReleaseRecord(name=name, version=version, released_at=released_at)


def requirements(**pins) -> Dict[str, str]:
    """Build a {path: contents} mapping holding a requirements.txt."""
    lines = [f"{name}=={version}" for name, version in pins.items()]
    return {"requirements.txt": "\n".join(lines) + "\n"}


def commit(sha: str, authored_at: datetime, files: Dict[str, str]):
    return (sha.ljust(40, "0"), authored_at, files)


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def ecosystem(resolver):
    return PythonEcosystem(resolver)
