from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from loadprobe.metrics import RunReport

P99_THRESHOLD = 0.2
ERROR_RATE_THRESHOLD = 0.3
THROUGHPUT_THRESHOLD = 0.2


@dataclass(frozen=True, slots=True)
class Regression:
    metric: str
    delta_pct: float
    message: str


def compare_reports(base: RunReport, candidate: RunReport) -> list[Regression]:
    if base.total_requests == 0 or candidate.total_requests == 0:
        return []
    return (
        _latency_regression(base.latency.p99_ms, candidate.latency.p99_ms)
        + _error_regression(base.failure_rate / 100.0, candidate.failure_rate / 100.0)
        + _throughput_regression(base.observed_throughput, candidate.observed_throughput)
    )


def compare_per_second(base: pd.DataFrame, candidate: pd.DataFrame) -> list[Regression]:
    if base.empty or candidate.empty:
        return []
    merged = base.merge(candidate, on="second", suffixes=("_base", "_cand"))
    if merged.empty:
        return []
    return (
        _latency_regression(merged["p99_ms_base"].mean(), merged["p99_ms_cand"].mean())
        + _error_regression(merged["error_rate_base"].mean(), merged["error_rate_cand"].mean())
        + _throughput_regression(merged["achieved_rps_base"].mean(), merged["achieved_rps_cand"].mean())
    )


def _latency_regression(base_p99: float, cand_p99: float) -> list[Regression]:
    if base_p99 <= 0:
        return []
    delta = (cand_p99 - base_p99) / base_p99
    if delta > P99_THRESHOLD:
        return [Regression(metric="p99_ms", delta_pct=float(delta * 100), message="p99 latency increased materially")]
    return []


def _error_regression(base_err: float, cand_err: float) -> list[Regression]:
    if base_err <= 0:
        if cand_err > 0:
            # No relative change exists from a clean baseline; report the absolute rate.
            return [Regression(metric="error_rate", delta_pct=float(cand_err * 100), message="errors appeared")]
        return []
    delta = (cand_err - base_err) / base_err
    if delta > ERROR_RATE_THRESHOLD:
        return [Regression(metric="error_rate", delta_pct=float(delta * 100), message="error rate regression detected")]
    return []


def _throughput_regression(base_rps: float, cand_rps: float) -> list[Regression]:
    if base_rps <= 0:
        return []
    delta = (base_rps - cand_rps) / base_rps
    if delta > THROUGHPUT_THRESHOLD:
        return [Regression(metric="throughput", delta_pct=float(delta * 100), message="throughput regression detected")]
    return []
