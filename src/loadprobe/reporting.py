from __future__ import annotations

import json
import logging
import sys
from typing import Sequence, TextIO

from loadprobe.config import RunConfig
from loadprobe.loadgen.comparison import ComparisonResult, ComparisonStatus
from loadprobe.loadgen.runner import ProgressSnapshot, RunResult
from loadprobe.metrics import RunReport

logger = logging.getLogger(__name__)

RULE = "=" * 60


def format_header(config: RunConfig) -> str:
    lines = [
        RULE,
        "LOAD TEST",
        RULE,
        f"URL: {config.target_base_url}",
        f"Duration: {config.duration_sec}s",
        f"RPS: {config.target_rps:g}",
        f"Timeout: {config.timeout_ms}ms",
        f"Endpoints: {', '.join(config.endpoints)}",
        RULE,
    ]
    return "\n".join(lines)


def format_progress(snapshot: ProgressSnapshot) -> str:
    elapsed = max(snapshot.elapsed_sec, 1e-9)
    rate = snapshot.issued / elapsed
    return (
        f"{snapshot.elapsed_sec:5.1f}s | Issued: {snapshot.issued} | Rate: {rate:.0f} req/s"
        f" | Success: {snapshot.success} | Failed: {snapshot.failure}"
    )


def format_report(report: RunReport) -> str:
    lat = report.latency
    lines = [
        RULE,
        "RESULTS",
        RULE,
        f"Duration: {report.observed_duration_sec:.2f}s",
        f"Total Requests: {report.total_requests}",
        f"Successful: {report.success_count} ({report.success_rate:.2f}%)",
        f"Failed: {report.failure_count} ({report.failure_rate:.2f}%)",
        f"Throughput: {report.observed_throughput:.2f} req/s",
        "",
        f"Average Response Time: {lat.mean_ms:.2f}ms",
        f"Min Response Time: {lat.min_ms:.2f}ms",
        f"Max Response Time: {lat.max_ms:.2f}ms",
        f"P50 (Median): {lat.p50_ms:.2f}ms",
        f"P95: {lat.p95_ms:.2f}ms",
        f"P99: {lat.p99_ms:.2f}ms",
    ]
    if report.error_breakdown:
        lines.extend(["", "Errors:"])
        ordered = sorted(report.error_breakdown.items(), key=lambda item: (-item[1], str(item[0])))
        lines.extend(f"  {classifier}: {count}" for classifier, count in ordered)
    lines.append(RULE)
    return "\n".join(lines)


def result_to_json(result: RunResult) -> str:
    payload = {
        "run_id": result.run_id,
        "config": dict(result.config.to_metadata()),
        "issued_requests": result.issued_requests,
        "abandoned_requests": result.abandoned_requests,
        "report": result.report.to_dict(),
    }
    return json.dumps(payload, indent=2)


def format_comparison(results: Sequence[ComparisonResult]) -> str:
    lines = [RULE, "TEST SUMMARY", RULE]
    for index, result in enumerate(results, start=1):
        line = f"{index}. {result.name} ({result.url}) - {result.status.value}"
        if result.status is ComparisonStatus.PASSED and result.report is not None:
            report = result.report
            line += (
                f" | {report.total_requests} req, {report.success_rate:.1f}% ok,"
                f" p99 {report.latency.p99_ms:.2f}ms, {report.observed_throughput:.1f} req/s"
            )
        elif result.error:
            line += f" | {result.error}"
        lines.append(line)
        for regression in result.regressions:
            lines.append(f"     ! {regression.metric}: {regression.message} ({regression.delta_pct:+.1f}%)")
    lines.append(RULE)
    return "\n".join(lines)


def emit(text: str, stream: TextIO | None = None, end: str = "\n") -> bool:
    out = stream or sys.stdout
    try:
        out.write(text + end)
        out.flush()
    except OSError as exc:
        logger.warning("Could not write report output: %s", exc)
        return False
    return True
