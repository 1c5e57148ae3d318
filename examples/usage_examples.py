#!/usr/bin/env python3
"""
Example script showing how to use the dependency-lag library API.
"""

from pathlib import Path

from dependency_lag.analyzer import UpdateLagAnalyzer
from dependency_lag.config import CommitSelection, RunConfiguration
from dependency_lag.ecosystems import build_ecosystem
from dependency_lag.history import GitHistory
from dependency_lag.libyears import compute_libyears, head_snapshot
from dependency_lag.reporting import format_libyears_report, save_results_json, summarize
from dependency_lag.repository import ensure_repository
from dependency_lag.resolvers import ReleaseTimeCache


def example_recent_commits(repo_path):
    """Example: lag over the 50 most recent package.json commits."""
    print("="*60)
    print("Example 1: Most recent commits (npm)")
    print("="*60)

    config = RunConfiguration(ecosystem="npm", max_commits=50)
    analyzer = UpdateLagAnalyzer(GitHistory(repo_path), build_ecosystem("npm"), config)
    result = analyzer.analyze()
    summary = summarize(result.samples)

    print(f"\nCommits walked: {result.commits_walked}")
    print(f"Analysed updates: {summary.count}")
    print(f"Mean lag: {summary.mean_days:.1f} days")
    print(f"Median lag: {summary.median_days:.1f} days")


def example_change_budget(repo_path):
    """Example: stop after the first 20 upgrades, four lookups in parallel."""
    print("\n" + "="*60)
    print("Example 2: Change budget with parallel lookups (npm)")
    print("="*60)

    config = RunConfiguration(ecosystem="npm", max_changes=20, prefetch_workers=4)
    analyzer = UpdateLagAnalyzer(GitHistory(repo_path), build_ecosystem("npm"), config)
    result = analyzer.analyze()
    summary = summarize(result.samples, top_n=5)

    print(f"\nFinal state: {result.state.value}")
    for sample in summary.slowest:
        print(f"{sample.dependency:<30} {sample.lag_days:6.1f} d")

    results_file = save_results_json(result, summary, Path("./output/example2"), "express")
    print(f"Results saved to: {results_file}")


def example_oldest_commits(repo_path):
    """Example: the first 30 manifest commits of a project's history."""
    print("\n" + "="*60)
    print("Example 3: Oldest commits (npm)")
    print("="*60)

    config = RunConfiguration(
        ecosystem="npm", max_commits=30, commit_selection=CommitSelection.OLDEST
    )
    result = UpdateLagAnalyzer(GitHistory(repo_path), build_ecosystem("npm"), config).analyze()
    print(f"\nAnalysed updates: {len(result.samples)} (discarded: {len(result.discarded)})")


def example_libyears(repo_path):
    """Example: libyears of the dependencies pinned at HEAD."""
    print("\n" + "="*60)
    print("Example 4: Libyears at HEAD")
    print("="*60)

    ecosystem = build_ecosystem("npm", ReleaseTimeCache())
    records = compute_libyears(head_snapshot(GitHistory(repo_path), ecosystem), ecosystem)
    print(format_libyears_report(records))


if __name__ == "__main__":
    import sys

    print("Dependency Lag - Example Usage")
    print("="*60)
    print("\nNOTE: These examples require network access and may take several minutes.")

    try:
        repo_path = ensure_repository("https://github.com/expressjs/express.git", "./output")

        example_recent_commits(repo_path)
        example_change_budget(repo_path)
        example_oldest_commits(repo_path)
        example_libyears(repo_path)

        print("\n" + "="*60)
        print("Examples completed successfully!")
        print("="*60)

    except Exception as e:
        print(f"\nError running examples: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
