"""
Core update lag analyzer: walks manifest history and measures adoption lag.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from .config import MAX_PLAUSIBLE_LAG_DAYS, RunConfiguration, StoppingRule
from .history import select_commits
from .interfaces import CommitSource, Ecosystem
from .models import (
    AnalysisResult,
    CommitInfo,
    DependencySnapshot,
    EngineState,
    LagSample,
    UpdateEvent,
)
from .time_utils import days_between, lookback_start
from .versions import is_upgrade


logger = logging.getLogger(__name__)

Candidate = Tuple[str, str, str]


class UpdateLagAnalyzer:
    """Measure how long a project takes to adopt new dependency releases."""

    def __init__(
        self,
        history: CommitSource,
        ecosystem: Ecosystem,
        config: RunConfiguration,
        show_progress: bool = False,
        now: Optional[datetime] = None,
    ):
        """Initialize the analyzer.

        Args:
            history: Repository history to walk
            ecosystem: Ecosystem adapter (manifests, parser, resolver)
            config: Run configuration with exactly one stopping rule
            show_progress: Show a progress bar over the visited commits
            now: Reference time for the lookback window (default: current time)
        """
        self.history = history
        self.ecosystem = ecosystem
        self.config = config.validate()
        self.show_progress = show_progress
        self.now = now

        self.state = EngineState.UNINITIALIZED
        self.baseline: Dict[str, str] = {}

    def walk(self) -> List[CommitInfo]:
        """List the commits to visit, oldest first, with the configured bounds applied."""
        since = None
        if self.config.stopping_rule is StoppingRule.DAYS:
            since = lookback_start(self.config.lookback_days, self.now)

        commits = self.history.commits_touching(self.ecosystem.manifest_paths, since=since)
        if self.config.stopping_rule is StoppingRule.COMMITS:
            commits = select_commits(
                commits, self.config.max_commits, self.config.commit_selection
            )
        return commits

    def read_snapshot(self, commit: CommitInfo) -> Optional[DependencySnapshot]:
        """Dependency snapshot at ``commit``, or None when no manifest content exists."""
        contents = {
            path: self.history.read_file(commit.hash, path)
            for path in self.ecosystem.manifest_paths
        }
        if not any(contents.values()):
            return None
        return self.ecosystem.extract_snapshot(contents)

    def candidate_changes(self, snapshot: DependencySnapshot) -> List[Candidate]:
        """Changed dependencies whose new value is a strict semver upgrade over the baseline.

        Returns:
            (dependency, old version, new version) tuples sorted by dependency name
        """
        candidates = []
        for dependency in sorted(snapshot):
            new = snapshot[dependency]
            old = self.baseline.get(dependency)
            if old == new:
                continue

            if not is_upgrade(old, new):
                logger.debug("Skipping %s: %r -> %r is not a semver upgrade", dependency, old, new)
                continue
            candidates.append((dependency, old, new))
        return candidates

    def analyze(self) -> AnalysisResult:
        """Run the analysis over the walked history.

        Returns:
            AnalysisResult with accepted and discarded lag samples
        """
        result = AnalysisResult(ecosystem=self.ecosystem.name)
        self.state = EngineState.UNINITIALIZED
        self.baseline = {}

        commits = self.walk()
        result.commits_walked = len(commits)
        logger.info(
            "Walking %d commits touching %s",
            len(commits),
            ", ".join(self.ecosystem.manifest_paths),
        )

        for commit in tqdm(commits, desc="Commits", unit="commit", disable=not self.show_progress):
            snapshot = self.read_snapshot(commit)
            if snapshot is None:
                result.commits_skipped += 1
                continue

            if self.state is EngineState.UNINITIALIZED:
                self.baseline = dict(snapshot)
                self.state = EngineState.TRACKING
                continue

            if self._process_commit(commit, snapshot, result):
                self.state = EngineState.HALTED
                break

        if self.state is not EngineState.HALTED:
            self.state = EngineState.DONE
        result.state = self.state
        return result

    def _process_commit(
        self, commit: CommitInfo, snapshot: DependencySnapshot, result: AnalysisResult
    ) -> bool:
        """Apply one commit's changes to the baseline. Returns True once the change budget is spent."""
        candidates = self.candidate_changes(snapshot)
        if not candidates:
            return False

        prefetched = self._prefetch(candidates, result)
        for dependency, old, new in candidates:
            key = (dependency, new)
            if key in prefetched:
                released_at = prefetched[key]
            else:
                released_at = self.ecosystem.resolver.resolve(dependency, new)
            if released_at is None:
                logger.debug("No release time for %s@%s, baseline stays %s", dependency, new, old)
                continue

            event = UpdateEvent(
                dependency=dependency,
                old_version=old,
                new_version=new,
                commit_hash=commit.hash,
                committed_at=commit.authored_at,
            )
            sample = LagSample(event=event, lag_days=days_between(released_at, commit.authored_at))
            self.baseline[dependency] = new

            if 0 <= sample.lag_days <= MAX_PLAUSIBLE_LAG_DAYS:
                result.samples.append(sample)
                if self.config.verbose:
                    self._log_event(sample)
            else:
                result.discarded.append(sample)
                logger.debug(
                    "Discarding implausible lag %.1f days for %s %s -> %s",
                    sample.lag_days, dependency, old, new,
                )

            if self._budget_reached(result):
                logger.info("Reached %d changes, stopping", self.config.max_changes)
                return True
        return False

    def _prefetch(
        self, candidates: List[Candidate], result: AnalysisResult
    ) -> Dict[Tuple[str, str], Optional[datetime]]:
        """Resolve a commit's candidates in parallel; results are applied in candidate order.

        Under a change budget only as many candidates as there are slots left
        are prefetched. Any beyond that are resolved lazily if still needed.
        """
        keys = [(dependency, new) for dependency, _, new in candidates]
        if self.config.stopping_rule is StoppingRule.CHANGES:
            keys = keys[:max(self.config.max_changes - result.processed_count, 0)]
        workers = min(self.config.prefetch_workers, len(keys))
        if workers <= 1:
            return {}

        resolver = self.ecosystem.resolver
        with ThreadPoolExecutor(max_workers=workers) as executor:
            resolved = list(executor.map(lambda key: resolver.resolve(*key), keys))
        return dict(zip(keys, resolved))

    def _budget_reached(self, result: AnalysisResult) -> bool:
        return (
            self.config.stopping_rule is StoppingRule.CHANGES
            and result.processed_count >= self.config.max_changes
        )

    def _log_event(self, sample: LagSample) -> None:
        event = sample.event
        logger.info(
            "%s  %s  %-38s  %s → %s",
            event.committed_at.strftime("%Y-%m-%d"),
            event.short_hash,
            event.dependency,
            event.old_version,
            event.new_version,
        )
