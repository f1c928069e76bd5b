from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Sequence

from loadprobe.analysis import Regression, compare_reports
from loadprobe.config import ComparisonTarget, ConfigError
from loadprobe.loadgen.runner import ProgressCallback, RunResult, run_load_test
from loadprobe.metrics import RunReport

logger = logging.getLogger(__name__)


class ComparisonStatus(str, Enum):
    PASSED = "PASSED"
    ERROR = "ERROR"


@dataclass(frozen=True, slots=True)
class ComparisonResult:
    name: str
    url: str
    status: ComparisonStatus
    report: RunReport | None = None
    regressions: list[Regression] = field(default_factory=list)
    error: str | None = None


RunnerFn = Callable[..., Awaitable[RunResult]]


async def run_comparison(
    targets: Sequence[ComparisonTarget],
    *,
    runner: RunnerFn = run_load_test,
    progress: ProgressCallback | None = None,
    on_start: Callable[[ComparisonTarget], None] | None = None,
) -> list[ComparisonResult]:
    results: list[ComparisonResult] = []
    baseline: RunReport | None = None
    for target in targets:
        if on_start:
            on_start(target)
        try:
            config = target.to_run_config()
            run_result = await runner(config, progress=progress)
        except ConfigError as exc:
            logger.error("Target %s has invalid configuration: %s", target.name, exc)
            results.append(_errored(target, str(exc)))
            continue
        except Exception as exc:  # noqa: BLE001
            logger.exception("Load test against %s failed", target.name)
            results.append(_errored(target, f"{type(exc).__name__}: {exc}"))
            continue
        report = run_result.report
        regressions = compare_reports(baseline, report) if baseline is not None else []
        if baseline is None:
            baseline = report
        results.append(
            ComparisonResult(
                name=target.name,
                url=target.url,
                status=ComparisonStatus.PASSED,
                report=report,
                regressions=regressions,
            )
        )
    return results


def _errored(target: ComparisonTarget, message: str) -> ComparisonResult:
    return ComparisonResult(name=target.name, url=target.url, status=ComparisonStatus.ERROR, error=message)


def parse_target(spec: str, defaults: ComparisonTarget | None = None) -> ComparisonTarget:
    name, sep, url = spec.partition("=")
    if not sep or not name.strip() or not url.strip():
        msg = f"Comparison target must look like NAME=URL, got {spec!r}"
        raise ConfigError(msg)
    base = defaults or ComparisonTarget(name="", url="")
    return ComparisonTarget(
        name=name.strip(),
        url=url.strip(),
        duration_sec=base.duration_sec,
        target_rps=base.target_rps,
        timeout_ms=base.timeout_ms,
        endpoints=base.endpoints,
    )


def default_targets(duration_sec: int = 30, target_rps: float = 50.0, timeout_ms: int = 5000) -> list[ComparisonTarget]:
    return [
        ComparisonTarget("Local 8080", "http://localhost:8080", duration_sec, target_rps, timeout_ms),
        ComparisonTarget("Local 8081", "http://localhost:8081", duration_sec, target_rps, timeout_ms),
    ]
