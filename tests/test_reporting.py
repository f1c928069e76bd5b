from __future__ import annotations

import io
import json

from loadprobe.config import RunConfig
from loadprobe.loadgen.comparison import ComparisonResult, ComparisonStatus
from loadprobe.loadgen.runner import ProgressSnapshot, RunResult
from loadprobe.analysis import Regression
from loadprobe.metrics import LatencyStats, RunReport
from loadprobe.reporting import (
    emit,
    format_comparison,
    format_header,
    format_progress,
    format_report,
    result_to_json,
)


def _report() -> RunReport:
    return RunReport(
        total_requests=200,
        success_count=150,
        failure_count=50,
        latency=LatencyStats(min_ms=1.0, max_ms=90.0, mean_ms=12.5, p50_ms=10.0, p95_ms=40.0, p99_ms=80.0),
        error_breakdown={500: 30, "timeout": 15, "ECONNRESET": 5},
        observed_duration_sec=2.0,
        observed_throughput=100.0,
    )


def test_header_lists_configuration() -> None:
    text = format_header(RunConfig(target_base_url="http://localhost:8080", duration_sec=5, target_rps=20))
    assert "URL: http://localhost:8080" in text
    assert "Duration: 5s" in text
    assert "RPS: 20" in text
    assert "/health, /api/info" in text


def test_report_contains_stats_and_breakdown() -> None:
    text = format_report(_report())
    assert "Total Requests: 200" in text
    assert "Successful: 150 (75.00%)" in text
    assert "Failed: 50 (25.00%)" in text
    assert "Throughput: 100.00 req/s" in text
    assert "Average Response Time: 12.50ms" in text
    assert "P99: 80.00ms" in text
    errors = text.split("Errors:")[1].strip().splitlines()
    assert errors[:3] == ["500: 30", "timeout: 15", "ECONNRESET: 5"]


def test_report_without_errors_omits_breakdown() -> None:
    report = RunReport(total_requests=0, success_count=0, failure_count=0, latency=LatencyStats())
    text = format_report(report)
    assert "Errors:" not in text
    assert "Successful: 0 (0.00%)" in text


def test_progress_line() -> None:
    line = format_progress(ProgressSnapshot(elapsed_sec=2.0, issued=100, completed=90, success=85, failure=5))
    assert "Issued: 100" in line
    assert "Rate: 50 req/s" in line
    assert "Success: 85" in line
    assert "Failed: 5" in line
    assert "\n" not in line


def test_result_json() -> None:
    config = RunConfig(target_base_url="http://target.test")
    result = RunResult(run_id="abc", config=config, outcomes=(), report=_report(), issued_requests=3, per_second=[])
    payload = json.loads(result_to_json(result))
    assert payload["run_id"] == "abc"
    assert payload["abandoned_requests"] == 3
    assert payload["report"]["error_breakdown"]["500"] == 30


def test_comparison_summary() -> None:
    results = [
        ComparisonResult("GAE", "http://a", ComparisonStatus.PASSED, report=_report()),
        ComparisonResult(
            "GKE",
            "http://b",
            ComparisonStatus.PASSED,
            report=_report(),
            regressions=[Regression("p99_ms", 25.0, "p99 latency increased materially")],
        ),
        ComparisonResult("Cloud", "http://c", ComparisonStatus.ERROR, error="ConnectError: boom"),
    ]
    text = format_comparison(results)
    assert "1. GAE (http://a) - PASSED" in text
    assert "p99_ms: p99 latency increased materially (+25.0%)" in text
    assert "3. Cloud (http://c) - ERROR | ConnectError: boom" in text


class _BrokenStream(io.StringIO):
    def write(self, s: str) -> int:
        raise BrokenPipeError("closed")


def test_emit_swallows_output_errors() -> None:
    assert emit("hello", stream=_BrokenStream()) is False
    buffer = io.StringIO()
    assert emit("hello", stream=buffer, end="")
    assert buffer.getvalue() == "hello"
