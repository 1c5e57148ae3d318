"""
Reporting and export utilities.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from .models import AnalysisResult, LagSample, LagSummary, LibyearRecord


logger = logging.getLogger(__name__)

SAMPLE_COLUMNS = [
    "dependency",
    "old_version",
    "new_version",
    "lag_days",
    "commit_date",
    "commit",
]

NO_UPDATES_MESSAGE = (
    "No updates detected - the project may have no direct dependencies "
    "or the filter is too narrow"
)


def samples_to_frame(samples: Sequence[LagSample]) -> pd.DataFrame:
    """One row per sample, in discovery order."""
    rows = [
        {
            "dependency": s.event.dependency,
            "old_version": s.event.old_version,
            "new_version": s.event.new_version,
            "lag_days": s.lag_days,
            "commit_date": s.event.committed_at,
            "commit": s.event.short_hash,
        }
        for s in samples
    ]
    return pd.DataFrame(rows, columns=SAMPLE_COLUMNS)


def summarize(samples: Sequence[LagSample], top_n: int = 10) -> LagSummary:
    """Mean, median and the ``top_n`` slowest updates.

    Ties in lag keep their discovery order.
    """
    if not samples:
        return LagSummary(count=0, mean_days=0.0, median_days=0.0, slowest=[])

    lags = pd.Series([s.lag_days for s in samples], dtype="float64")
    slowest = sorted(samples, key=lambda s: s.lag_days, reverse=True)
    return LagSummary(
        count=len(samples),
        mean_days=float(lags.mean()),
        median_days=float(lags.median()),
        slowest=slowest[:max(top_n, 0)],
    )


def format_report(
    result: AnalysisResult,
    summary: LagSummary,
    repository: str,
    scope: str,
) -> str:
    """Render the per-update table followed by the summary block."""
    if not result.samples:
        return NO_UPDATES_MESSAGE

    table = samples_to_frame(result.samples)
    table["lag_days"] = table["lag_days"].map(lambda d: f"{d:.1f}")
    table["commit_date"] = table["commit_date"].map(lambda d: d.strftime("%Y-%m-%d"))

    lines = [
        table.to_string(index=False),
        "",
        f"Summary for {repository} ({result.ecosystem})",
        f"Scope                  : {scope}",
        f"Analysed updates       : {summary.count}",
    ]
    if result.discarded:
        lines.append(f"Discarded (implausible): {len(result.discarded)}")
    lines.extend([
        f"Mean lag               : {summary.mean_days:.1f} days",
        f"Median lag             : {summary.median_days:.1f} days",
        "",
        "Slowest updates:",
    ])
    for sample in summary.slowest:
        event = sample.event
        lines.append(
            f"{event.dependency:<40} {sample.lag_days:7.0f} d  "
            f"({event.old_version} → {event.new_version}) "
            f"[{event.committed_at.strftime('%y-%m-%d')} {event.short_hash}]"
        )
    return "\n".join(lines)


def results_to_dict(result: AnalysisResult, summary: LagSummary) -> Dict:
    return {
        "ecosystem": result.ecosystem,
        "state": result.state.value,
        "commits_walked": result.commits_walked,
        "commits_skipped": result.commits_skipped,
        "processed_changes": result.processed_count,
        "discarded_changes": len(result.discarded),
        "count": summary.count,
        "mean_days": summary.mean_days,
        "median_days": summary.median_days,
        "samples": samples_to_frame(result.samples).to_dict(orient="records"),
        "slowest": samples_to_frame(summary.slowest).to_dict(orient="records"),
    }


def save_results_json(
    result: AnalysisResult, summary: LagSummary, output_dir: Path, name: str
) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    results_file = output_dir / f"{name}_update_lag.json"
    with open(results_file, 'w') as f:
        json.dump(results_to_dict(result, summary), f, indent=2, default=str)
    return results_file


def export_samples_csv(result: AnalysisResult, output_dir: Path, name: str) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    samples_file = output_dir / f"{name}_update_lag.csv"
    df = samples_to_frame(result.samples)
    df.to_csv(samples_file, index=False)
    return samples_file


def libyears_to_frame(records: List[LibyearRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "package": r.dependency,
                "current": r.current_version,
                "latest": r.latest_version,
                "libyears": r.libyears,
            }
            for r in records
        ],
        columns=["package", "current", "latest", "libyears"],
    )


def format_libyears_report(records: List[LibyearRecord]) -> str:
    if not records:
        return "No valid packages processed."
    df = libyears_to_frame(records)
    total = float(df["libyears"].sum())
    df["libyears"] = df["libyears"].map(lambda y: f"{y:.2f}")
    return "\n".join([
        df.to_string(index=False),
        "",
        f"TOTAL Lag: {total:.2f}  |  mean {total / len(records):.2f}",
    ])
