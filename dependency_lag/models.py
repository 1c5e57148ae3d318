"""
Core data models for dependency update lag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List


DependencySnapshot = Dict[str, str]


@dataclass(frozen=True)
class CommitInfo:
    """A commit that touched at least one manifest path."""

    hash: str
    authored_at: datetime

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


@dataclass(frozen=True)
class ReleaseRecord:
    """A published version of a dependency."""

    name: str
    version: str
    released_at: datetime


@dataclass(frozen=True)
class UpdateEvent:
    """A detected upgrade of one dependency in one commit."""

    dependency: str
    old_version: str
    new_version: str
    commit_hash: str
    committed_at: datetime

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:7]


@dataclass(frozen=True)
class LagSample:
    """An upgrade together with its adoption lag in days."""

    event: UpdateEvent
    lag_days: float

    @property
    def dependency(self) -> str:
        return self.event.dependency


class EngineState(str, Enum):
    """Lifecycle of the update lag engine."""

    UNINITIALIZED = "uninitialized"
    TRACKING = "tracking"
    HALTED = "halted"
    DONE = "done"


@dataclass
class AnalysisResult:
    """Output of one analyzer invocation."""

    ecosystem: str
    samples: List[LagSample] = field(default_factory=list)
    discarded: List[LagSample] = field(default_factory=list)
    state: EngineState = EngineState.UNINITIALIZED
    commits_walked: int = 0
    commits_skipped: int = 0

    @property
    def processed_count(self) -> int:
        """Accepted plus discarded upgrades (the accepted-change budget)."""
        return len(self.samples) + len(self.discarded)


@dataclass(frozen=True)
class LagSummary:
    """Aggregate statistics over lag samples."""

    count: int
    mean_days: float
    median_days: float
    slowest: List[LagSample]


@dataclass(frozen=True)
class LibyearRecord:
    """Distance between a pinned version and the latest release."""

    dependency: str
    current_version: str
    latest_version: str
    current_released_at: datetime
    latest_released_at: datetime
    libyears: float
