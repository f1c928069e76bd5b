from __future__ import annotations

import asyncio

import pandas as pd
import pytest

from loadprobe.analysis import compare_per_second, compare_reports
from loadprobe.config import ComparisonTarget, ConfigError, RunConfig
from loadprobe.loadgen.comparison import ComparisonStatus, parse_target, run_comparison
from loadprobe.loadgen.runner import RunResult
from loadprobe.metrics import LatencyStats, RunReport


def _report(p99: float = 50.0, failures: int = 0, throughput: float = 100.0, total: int = 100) -> RunReport:
    return RunReport(
        total_requests=total,
        success_count=total - failures,
        failure_count=failures,
        latency=LatencyStats(min_ms=1.0, max_ms=p99, mean_ms=10.0, p50_ms=10.0, p95_ms=p99, p99_ms=p99),
        error_breakdown={500: failures} if failures else {},
        observed_duration_sec=total / throughput,
        observed_throughput=throughput,
    )


def test_identical_reports_have_no_regressions() -> None:
    assert compare_reports(_report(), _report()) == []


def test_detects_latency_error_and_throughput_regressions() -> None:
    base = _report(p99=50.0, failures=10, throughput=100.0)
    cand = _report(p99=80.0, failures=20, throughput=60.0)
    metrics = {r.metric: r.delta_pct for r in compare_reports(base, cand)}
    assert metrics["p99_ms"] == pytest.approx(60.0)
    assert metrics["error_rate"] == pytest.approx(100.0)
    assert metrics["throughput"] == pytest.approx(40.0)


def test_errors_appearing_on_clean_baseline_are_flagged() -> None:
    regressions = compare_reports(_report(), _report(failures=5))
    assert [r.metric for r in regressions] == ["error_rate"]
    assert regressions[0].delta_pct == pytest.approx(5.0)


def test_empty_runs_are_not_compared() -> None:
    empty = RunReport(total_requests=0, success_count=0, failure_count=0, latency=LatencyStats())
    assert compare_reports(empty, _report()) == []


def test_per_second_comparison() -> None:
    base = pd.DataFrame({"second": [0, 1], "p99_ms": [10.0, 10.0], "error_rate": [0.1, 0.1], "achieved_rps": [50, 50]})
    cand = pd.DataFrame({"second": [0, 1], "p99_ms": [20.0, 20.0], "error_rate": [0.1, 0.1], "achieved_rps": [50, 50]})
    regressions = compare_per_second(base, cand)
    assert [r.metric for r in regressions] == ["p99_ms"]
    assert compare_per_second(base, pd.DataFrame()) == []


def test_parse_target() -> None:
    defaults = ComparisonTarget(name="", url="", duration_sec=7, target_rps=12)
    target = parse_target("GAE=http://localhost:8080", defaults)
    assert target.name == "GAE"
    assert target.url == "http://localhost:8080"
    assert target.duration_sec == 7
    assert target.target_rps == 12
    with pytest.raises(ConfigError):
        parse_target("http://localhost:8080")


def test_comparison_continues_past_failing_targets() -> None:
    reports = {"http://a.test": _report(p99=50.0), "http://c.test": _report(p99=100.0)}
    calls: list[str] = []

    async def fake_runner(config: RunConfig, progress: object = None) -> RunResult:
        calls.append(config.target_base_url)
        if config.target_base_url == "http://b.test":
            raise RuntimeError("boom")
        return RunResult(
            run_id="r",
            config=config,
            outcomes=(),
            report=reports[config.target_base_url],
            issued_requests=0,
            per_second=[],
        )

    targets = [
        ComparisonTarget("A", "http://a.test"),
        ComparisonTarget("B", "http://b.test"),
        ComparisonTarget("Bad", "not-a-url"),
        ComparisonTarget("C", "http://c.test"),
    ]
    results = asyncio.run(run_comparison(targets, runner=fake_runner))
    assert [r.status for r in results] == [
        ComparisonStatus.PASSED,
        ComparisonStatus.ERROR,
        ComparisonStatus.ERROR,
        ComparisonStatus.PASSED,
    ]
    assert calls == ["http://a.test", "http://b.test", "http://c.test"]
    assert results[0].regressions == []
    assert "boom" in (results[1].error or "")
    assert [r.metric for r in results[3].regressions] == ["p99_ms"]
