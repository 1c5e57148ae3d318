"""Tests for the update lag analyzer state machine."""

import logging
from datetime import timedelta

import pytest

from conftest import FakeHistory, FakeResolver, commit, requirements, utc
from dependency_lag.analyzer import UpdateLagAnalyzer
from dependency_lag.config import CommitSelection, RunConfiguration
from dependency_lag.ecosystems import PythonEcosystem
from dependency_lag.exceptions import ConfigurationError
from dependency_lag.models import EngineState


C1 = utc(2021, 1, 1)
C2 = utc(2021, 2, 1)
C3 = utc(2021, 3, 1)
C4 = utc(2021, 4, 1)


def run(commits, release_times, **config):
    config.setdefault("max_commits", 100)
    resolver = FakeResolver(release_times)
    analyzer = UpdateLagAnalyzer(
        FakeHistory(commits),
        PythonEcosystem(resolver),
        RunConfiguration(ecosystem="py", **config),
        now=utc(2021, 12, 31),
    )
    return analyzer, analyzer.analyze(), resolver


def test_upgrade_then_downgrade_keeps_baseline():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.1.0")),
        commit("c3", C3, requirements(dep="1.0.5")),
    ]
    release_times = {
        ("dep", "1.1.0"): C2 - timedelta(days=10),
        ("dep", "1.0.5"): C1,
    }

    analyzer, result, _ = run(commits, release_times)

    assert len(result.samples) == 1
    sample = result.samples[0]
    assert sample.event.old_version == "1.0.0"
    assert sample.event.new_version == "1.1.0"
    assert sample.event.commit_hash.startswith("c2")
    assert sample.lag_days == pytest.approx(10.0)
    assert analyzer.baseline["dep"] == "1.1.0"
    assert result.state is EngineState.DONE


def test_failed_lookup_leaves_stale_baseline():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.1.0")),
        commit("c4", C4, requirements(dep="1.2.0")),
    ]
    release_times = {("dep", "1.2.0"): C4 - timedelta(days=3)}

    analyzer, result, resolver = run(commits, release_times)

    assert ("dep", "1.1.0") in resolver.calls
    assert [(s.event.old_version, s.event.new_version) for s in result.samples] == [
        ("1.0.0", "1.2.0")
    ]
    assert result.samples[0].lag_days == pytest.approx(3.0)
    assert analyzer.baseline["dep"] == "1.2.0"


def test_negative_lag_is_discarded_but_advances_baseline():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.1.0")),
        commit("c3", C3, requirements(dep="1.2.0")),
    ]
    release_times = {
        ("dep", "1.1.0"): C2 + timedelta(days=5),
        ("dep", "1.2.0"): C3 - timedelta(days=1),
    }

    analyzer, result, _ = run(commits, release_times)

    assert len(result.discarded) == 1
    assert result.discarded[0].lag_days == pytest.approx(-5.0)
    assert len(result.samples) == 1
    assert result.samples[0].event.old_version == "1.1.0"
    assert result.processed_count == 2


def test_negative_lag_consumes_change_budget():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.1.0")),
        commit("c3", C3, requirements(dep="1.2.0")),
    ]
    release_times = {
        ("dep", "1.1.0"): C2 + timedelta(days=5),
        ("dep", "1.2.0"): C3 - timedelta(days=1),
    }

    analyzer, result, resolver = run(commits, release_times, max_commits=None, max_changes=1)

    assert result.state is EngineState.HALTED
    assert result.samples == []
    assert result.processed_count == 1
    assert analyzer.baseline["dep"] == "1.1.0"
    assert ("dep", "1.2.0") not in resolver.calls


def test_implausibly_old_release_is_discarded():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="2.0.0")),
    ]
    release_times = {("dep", "2.0.0"): C2 - timedelta(days=400)}

    analyzer, result, _ = run(commits, release_times)

    assert result.samples == []
    assert len(result.discarded) == 1
    assert analyzer.baseline["dep"] == "2.0.0"


def test_change_budget_halts_within_a_commit():
    commits = [
        commit("c1", C1, requirements(alpha="1.0.0", beta="1.0.0")),
        commit("c2", C2, requirements(alpha="1.1.0", beta="1.1.0")),
        commit("c3", C3, requirements(alpha="1.2.0", beta="1.1.0")),
    ]
    release_times = {
        ("alpha", "1.1.0"): C2 - timedelta(days=2),
        ("beta", "1.1.0"): C2 - timedelta(days=4),
        ("alpha", "1.2.0"): C3 - timedelta(days=1),
    }

    analyzer, result, resolver = run(commits, release_times, max_commits=None, max_changes=1)

    assert result.state is EngineState.HALTED
    assert [s.dependency for s in result.samples] == ["alpha"]
    assert ("beta", "1.1.0") not in resolver.calls
    assert analyzer.baseline["beta"] == "1.0.0"


def test_change_budget_counts_across_commits():
    commits = [
        commit("c1", C1, requirements(alpha="1.0.0", beta="1.0.0")),
        commit("c2", C2, requirements(alpha="1.1.0", beta="1.1.0")),
        commit("c3", C3, requirements(alpha="1.2.0", beta="1.1.0")),
    ]
    release_times = {
        ("alpha", "1.1.0"): C2 - timedelta(days=2),
        ("beta", "1.1.0"): C2 - timedelta(days=4),
        ("alpha", "1.2.0"): C3 - timedelta(days=1),
    }

    _, result, _ = run(commits, release_times, max_commits=None, max_changes=3)

    assert [(s.dependency, s.event.new_version) for s in result.samples] == [
        ("alpha", "1.1.0"),
        ("beta", "1.1.0"),
        ("alpha", "1.2.0"),
    ]
    assert result.state is EngineState.HALTED


def test_unchanged_declarations_produce_no_events():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.0.0")),
        commit("c3", C3, requirements(dep="1.0.0")),
    ]

    _, result, resolver = run(commits, {("dep", "1.0.0"): C1})

    assert result.samples == []
    assert resolver.calls == []


def test_first_commit_only_initializes_baseline():
    commits = [commit("c1", C1, requirements(dep="1.0.0"))]

    analyzer, result, resolver = run(commits, {("dep", "1.0.0"): C1})

    assert result.samples == []
    assert resolver.calls == []
    assert analyzer.baseline == {"dep": "1.0.0"}
    assert result.state is EngineState.DONE


def test_new_dependency_without_baseline_is_skipped():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.0.0", extra="2.0.0")),
    ]

    analyzer, result, resolver = run(commits, {("extra", "2.0.0"): C1})

    assert result.samples == []
    assert resolver.calls == []
    assert "extra" not in analyzer.baseline


def test_non_semver_values_are_skipped():
    commits = [
        commit("c1", C1, {"setup.cfg": "[options]\ninstall_requires =\n    dep>=1.0.0\n"}),
        commit("c2", C2, {"setup.cfg": "[options]\ninstall_requires =\n    dep>=1.0.0,<2\n"}),
        commit("c3", C3, {"setup.cfg": "[options]\ninstall_requires =\n    dep>=1.5.0\n"}),
    ]
    release_times = {("dep", "1.5.0"): C3 - timedelta(days=7)}

    analyzer, result, resolver = run(commits, release_times)

    assert ("dep", "1.0.0,<2") not in resolver.calls
    assert [(s.event.old_version, s.event.new_version) for s in result.samples] == [
        ("1.0.0", "1.5.0")
    ]


def test_commits_without_manifest_content_are_skipped():
    commits = [
        commit("c0", C1, {"requirements.txt": ""}),
        commit("c1", C2, requirements(dep="1.0.0")),
        commit("c2", C3, {}),
        commit("c3", C4, requirements(dep="1.1.0")),
    ]
    release_times = {("dep", "1.1.0"): C4 - timedelta(days=1)}

    analyzer, result, _ = run(commits, release_times)

    assert result.commits_walked == 4
    assert result.commits_skipped == 2
    assert len(result.samples) == 1
    assert result.samples[0].event.old_version == "1.0.0"


def test_commit_cap_keeps_newest_commits_by_default():
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.1.0")),
        commit("c3", C3, requirements(dep="1.2.0")),
    ]
    release_times = {
        ("dep", "1.1.0"): C2 - timedelta(days=1),
        ("dep", "1.2.0"): C3 - timedelta(days=2),
    }

    _, newest, _ = run(commits, release_times, max_commits=2)
    _, oldest, _ = run(
        commits, release_times, max_commits=2, commit_selection=CommitSelection.OLDEST
    )

    assert [(s.event.old_version, s.event.new_version) for s in newest.samples] == [
        ("1.1.0", "1.2.0")
    ]
    assert [(s.event.old_version, s.event.new_version) for s in oldest.samples] == [
        ("1.0.0", "1.1.0")
    ]


def test_lookback_window_limits_walked_commits():
    commits = [
        commit("c1", utc(2020, 1, 1), requirements(dep="1.0.0")),
        commit("c2", utc(2021, 12, 1), requirements(dep="1.1.0")),
        commit("c3", utc(2021, 12, 20), requirements(dep="1.2.0")),
    ]
    release_times = {
        ("dep", "1.1.0"): utc(2021, 11, 20),
        ("dep", "1.2.0"): utc(2021, 12, 10),
    }

    _, result, _ = run(commits, release_times, max_commits=None, lookback_days=60)

    assert result.commits_walked == 2
    assert [(s.event.old_version, s.event.new_version) for s in result.samples] == [
        ("1.1.0", "1.2.0")
    ]


def test_parallel_prefetch_matches_sequential_run():
    pins_before = {f"dep{i}": "1.0.0" for i in range(8)}
    pins_after = {f"dep{i}": "1.1.0" for i in range(8)}
    commits = [
        commit("c1", C1, requirements(**pins_before)),
        commit("c2", C2, requirements(**pins_after)),
    ]
    release_times = {(f"dep{i}", "1.1.0"): C2 - timedelta(days=i + 1) for i in range(8)}

    _, sequential, _ = run(commits, release_times)
    _, parallel, _ = run(commits, release_times, prefetch_workers=4)

    assert [s.event for s in parallel.samples] == [s.event for s in sequential.samples]
    assert [s.dependency for s in parallel.samples] == sorted(pins_after)


def test_setup_cfg_overrides_requirements_pin():
    files_before = {
        "requirements.txt": "dep==1.0.0\n",
        "setup.cfg": "[options]\ninstall_requires = dep>=1.0.0\n",
    }
    files_after = {
        "requirements.txt": "dep==1.0.0\n",
        "setup.cfg": "[options]\ninstall_requires = dep>=1.3.0\n",
    }
    commits = [commit("c1", C1, files_before), commit("c2", C2, files_after)]

    _, result, _ = run(commits, {("dep", "1.3.0"): C2 - timedelta(days=6)})

    assert result.samples[0].event.new_version == "1.3.0"


@pytest.mark.parametrize(
    "older, newer",
    [
        ("1.0.0", "1.0.1"),
        ("1.9.0", "1.10.0"),
        ("v1.2.3", "1.3.0"),
        ("1.0.0-beta", "1.0.0"),
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.2", "1.2.1"),
    ],
)
def test_upgrade_direction_follows_semver_order(older, newer):
    forward = [
        commit("c1", C1, requirements(dep=older)),
        commit("c2", C2, requirements(dep=newer)),
    ]
    backward = [
        commit("c1", C1, requirements(dep=newer)),
        commit("c2", C2, requirements(dep=older)),
    ]
    release_times = {
        ("dep", newer): C2 - timedelta(days=1),
        ("dep", older): C2 - timedelta(days=1),
    }

    _, up, _ = run(forward, release_times)
    _, down, _ = run(backward, release_times)

    assert len(up.samples) == 1
    assert down.samples == [] and down.discarded == []


def test_invalid_configuration_is_rejected():
    with pytest.raises(ConfigurationError):
        UpdateLagAnalyzer(
            FakeHistory([]),
            PythonEcosystem(FakeResolver()),
            RunConfiguration(ecosystem="py", max_commits=5, max_changes=5),
        )


def test_verbose_run_logs_each_accepted_update(caplog):
    commits = [
        commit("c1", C1, requirements(dep="1.0.0", late="1.0.0", odd="1.0.0")),
        commit("c2", C2, requirements(dep="1.1.0", late="2.0.0", odd="latest", fresh="3.0.0")),
    ]
    release_times = {
        ("dep", "1.1.0"): C2 - timedelta(days=3),
        ("late", "2.0.0"): C2 + timedelta(days=5),
        ("fresh", "3.0.0"): C1,
    }
    caplog.set_level(logging.INFO, logger="dependency_lag.analyzer")

    _, result, _ = run(commits, release_times, verbose=True)

    event_lines = [r.getMessage() for r in caplog.records if "→" in r.getMessage()]
    assert event_lines == [f"2021-02-01  c200000  {'dep':<38}  1.0.0 → 1.1.0"]
    assert len(result.discarded) == 1


def test_quiet_run_logs_no_update_lines(caplog):
    commits = [
        commit("c1", C1, requirements(dep="1.0.0")),
        commit("c2", C2, requirements(dep="1.1.0")),
    ]
    caplog.set_level(logging.INFO, logger="dependency_lag.analyzer")

    _, result, _ = run(commits, {("dep", "1.1.0"): C2 - timedelta(days=3)})

    assert len(result.samples) == 1
    assert not [r for r in caplog.records if "→" in r.getMessage()]


def test_prefetch_stays_within_change_budget():
    commits = [
        commit("c1", C1, requirements(alpha="1.0.0", beta="1.0.0", gamma="1.0.0")),
        commit("c2", C2, requirements(alpha="1.1.0", beta="1.1.0", gamma="1.1.0")),
    ]
    release_times = {
        (name, "1.1.0"): C2 - timedelta(days=1) for name in ("alpha", "beta", "gamma")
    }

    _, result, resolver = run(
        commits, release_times, max_commits=None, max_changes=1, prefetch_workers=4
    )

    assert result.state is EngineState.HALTED
    assert resolver.calls == [("alpha", "1.1.0")]


def test_prefetch_resolves_lazily_past_skipped_candidates():
    commits = [
        commit("c1", C1, requirements(alpha="1.0.0", beta="1.0.0", gamma="1.0.0")),
        commit("c2", C2, requirements(alpha="1.1.0", beta="1.1.0", gamma="1.1.0")),
    ]
    release_times = {
        ("beta", "1.1.0"): C2 - timedelta(days=1),
        ("gamma", "1.1.0"): C2 - timedelta(days=2),
    }

    _, result, resolver = run(
        commits, release_times, max_commits=None, max_changes=2, prefetch_workers=4
    )

    assert [s.dependency for s in result.samples] == ["beta", "gamma"]
    assert sorted(resolver.calls) == [("alpha", "1.1.0"), ("beta", "1.1.0"), ("gamma", "1.1.0")]
