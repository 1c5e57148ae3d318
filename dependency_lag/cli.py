"""
Command-line interface for the dependency update lag tool.
"""

import argparse
import logging
import sys
from pathlib import Path

from .analyzer import UpdateLagAnalyzer
from .config import ECOSYSTEM_ALIASES, CommitSelection, RunConfiguration
from .ecosystems import build_ecosystem
from .exceptions import ConfigurationError, DependencyLagError
from .history import GitHistory
from .libyears import compute_libyears, head_snapshot
from .reporting import (
    export_samples_csv,
    format_libyears_report,
    format_report,
    save_results_json,
    summarize,
)
from .repository import clone_directory, ensure_repository
from .resolvers import ReleaseTimeCache


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dependency-lag",
        description="Measure how long a project takes to adopt new dependency releases"
    )

    parser.add_argument(
        "repository",
        help="Local path or clone URL of the repository to analyze"
    )

    parser.add_argument(
        "--ecosystem", "--eco",
        required=True,
        choices=sorted(ECOSYSTEM_ALIASES),
        help="The ecosystem whose manifests are analyzed"
    )

    parser.add_argument(
        "--commits",
        type=int,
        default=None,
        help="Analyze the N manifest-touching commits (most recent by default)"
    )

    parser.add_argument(
        "--changes",
        type=int,
        default=None,
        help="Stop after N detected upgrades"
    )

    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Analyze the history of the last N days"
    )

    parser.add_argument(
        "--oldest-commits",
        action="store_true",
        help="With --commits, keep the oldest N commits instead of the most recent"
    )

    parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Number of slowest updates to list. Default: 10"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Parallel registry lookups per commit. Default: 1"
    )

    parser.add_argument(
        "--libyears",
        action="store_true",
        help="Report libyears of the manifests at HEAD instead of walking history"
    )

    parser.add_argument(
        "--output-dir",
        default=None,
        help="Write JSON and CSV results to this directory"
    )

    parser.add_argument(
        "--workdir",
        default=".",
        help="Directory remote repositories are cloned into. Default: ."
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every detected update"
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while walking commits"
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(message)s",
    )

    config = RunConfiguration(
        ecosystem=args.ecosystem,
        max_commits=args.commits,
        max_changes=args.changes,
        lookback_days=args.days,
        verbose=args.verbose,
        commit_selection=CommitSelection.OLDEST if args.oldest_commits else CommitSelection.NEWEST,
        top_n=args.top,
        prefetch_workers=args.workers,
        output_dir=Path(args.output_dir) if args.output_dir else None,
    )

    # Validate arguments
    if not args.libyears:
        try:
            config = config.validate()
        except ConfigurationError as e:
            parser.error(str(e))

    cache = ReleaseTimeCache()
    try:
        repo_path = ensure_repository(args.repository, args.workdir)
        history = GitHistory(repo_path)
        ecosystem = build_ecosystem(args.ecosystem, cache)

        if args.libyears:
            records = compute_libyears(head_snapshot(history, ecosystem), ecosystem)
            print(format_libyears_report(records))
            return 0

        analyzer = UpdateLagAnalyzer(history, ecosystem, config, show_progress=args.progress)
        result = analyzer.analyze()
    except DependencyLagError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        cache.close()

    summary = summarize(result.samples, top_n=config.top_n)
    print(format_report(result, summary, args.repository, config.describe_scope()))

    if config.output_dir is not None and result.samples:
        name = clone_directory(args.repository, ".").name
        results_file = save_results_json(result, summary, config.output_dir, name)
        samples_file = export_samples_csv(result, config.output_dir, name)
        print(f"\nResults saved to: {results_file}")
        print(f"Samples saved to: {samples_file}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
