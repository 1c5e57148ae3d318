"""
Run configuration, registry endpoints and credentials.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from .exceptions import ConfigurationError


REGISTRY_URLS: Dict[str, str] = {
    "npm": "https://registry.npmjs.org",
    "go": "https://proxy.golang.org",
    "py": "https://pypi.org/pypi",
}

ECOSYSTEM_ALIASES: Dict[str, str] = {
    "npm": "npm",
    "go": "go",
    "golang": "go",
    "py": "py",
    "python": "py",
    "pypi": "py",
}

# Lags outside [0, MAX_PLAUSIBLE_LAG_DAYS] are treated as noise.
MAX_PLAUSIBLE_LAG_DAYS = 365.0

REQUEST_TIMEOUT = 30

GH_TOKEN_ENV = "GH_TOKEN"
NPM_TOKEN_ENV = "NPM_TOKEN"


def normalize_ecosystem(name: str) -> str:
    """Map an ecosystem name or alias to its canonical key."""
    key = ECOSYSTEM_ALIASES.get((name or "").strip().lower())
    if key is None:
        allowed = ", ".join(sorted(set(ECOSYSTEM_ALIASES.values())))
        raise ConfigurationError(f"Unsupported ecosystem {name!r} (allowed: {allowed})")
    return key


def env_token(variable: str) -> Optional[str]:
    """Read an optional credential; blank values count as absent."""
    value = os.environ.get(variable, "").strip()
    return value or None


class StoppingRule(str, Enum):
    """The three mutually exclusive run-termination conditions."""

    COMMITS = "commits"
    CHANGES = "changes"
    DAYS = "days"


class CommitSelection(str, Enum):
    """Which end of the walked history a commit-count cap keeps."""

    NEWEST = "newest"
    OLDEST = "oldest"


@dataclass(frozen=True)
class RunConfiguration:
    """Settings for one analyzer invocation."""

    ecosystem: str
    max_commits: Optional[int] = None
    max_changes: Optional[int] = None
    lookback_days: Optional[int] = None
    verbose: bool = False
    commit_selection: CommitSelection = CommitSelection.NEWEST
    top_n: int = 10
    prefetch_workers: int = 1
    output_dir: Optional[Path] = None

    def validate(self) -> "RunConfiguration":
        """Check the configuration and return a normalized copy.

        Raises:
            ConfigurationError: unknown ecosystem, a non-positive limit, or
                anything other than exactly one stopping rule.
        """
        ecosystem = normalize_ecosystem(self.ecosystem)

        limits = {
            StoppingRule.COMMITS: self.max_commits,
            StoppingRule.CHANGES: self.max_changes,
            StoppingRule.DAYS: self.lookback_days,
        }
        for rule, value in limits.items():
            if value is not None and value <= 0:
                raise ConfigurationError(f"--{rule.value} must be a positive integer")

        active = [rule for rule, value in limits.items() if value is not None]
        if len(active) != 1:
            raise ConfigurationError(
                "Set exactly one of --commits, --changes or --days (positive value)"
            )

        if self.top_n <= 0:
            raise ConfigurationError("--top must be a positive integer")
        if self.prefetch_workers <= 0:
            raise ConfigurationError("--workers must be a positive integer")

        return RunConfiguration(
            ecosystem=ecosystem,
            max_commits=self.max_commits,
            max_changes=self.max_changes,
            lookback_days=self.lookback_days,
            verbose=self.verbose,
            commit_selection=CommitSelection(self.commit_selection),
            top_n=self.top_n,
            prefetch_workers=self.prefetch_workers,
            output_dir=Path(self.output_dir) if self.output_dir is not None else None,
        )

    @property
    def stopping_rule(self) -> StoppingRule:
        if self.max_commits is not None:
            return StoppingRule.COMMITS
        if self.max_changes is not None:
            return StoppingRule.CHANGES
        if self.lookback_days is not None:
            return StoppingRule.DAYS
        raise ConfigurationError("No stopping rule configured")

    def describe_scope(self) -> str:
        rule = self.stopping_rule
        if rule is StoppingRule.COMMITS:
            return f"{self.commit_selection.value} {self.max_commits} commits"
        if rule is StoppingRule.CHANGES:
            return f"stop after {self.max_changes} changes"
        return f"last {self.lookback_days} days"
