"""
Libyears: how far the pinned versions at one commit trail the latest releases.
"""

from __future__ import annotations

import logging
from typing import List

from .interfaces import CommitSource, Ecosystem
from .models import DependencySnapshot, LibyearRecord
from .time_utils import DAYS_PER_YEAR, days_between


logger = logging.getLogger(__name__)


def compute_libyears(snapshot: DependencySnapshot, ecosystem: Ecosystem) -> List[LibyearRecord]:
    """Libyears for every dependency whose current and latest release times are known."""
    records = []
    resolver = ecosystem.resolver
    for dependency in sorted(snapshot):
        current = snapshot[dependency]
        current_released_at = resolver.resolve(dependency, current)
        if current_released_at is None:
            logger.warning("[SKIP] %s: no release info for %s", dependency, current)
            continue
        latest = resolver.latest(dependency)
        if latest is None:
            logger.warning("[SKIP] %s: no latest release known", dependency)
            continue

        lag_years = days_between(current_released_at, latest.released_at) / DAYS_PER_YEAR
        records.append(
            LibyearRecord(
                dependency=dependency,
                current_version=current,
                latest_version=latest.version,
                current_released_at=current_released_at,
                latest_released_at=latest.released_at,
                libyears=max(lag_years, 0.0),
            )
        )
    return records


def head_snapshot(history: CommitSource, ecosystem: Ecosystem, ref: str = "HEAD") -> DependencySnapshot:
    """Dependency snapshot of the manifests at ``ref``."""
    contents = {path: history.read_file(ref, path) for path in ecosystem.manifest_paths}
    return ecosystem.extract_snapshot(contents)
