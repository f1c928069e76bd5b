from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from loadprobe.config import RunConfig
from loadprobe.loadgen.client import send_request
from loadprobe.metrics import (
    OutcomeCollector,
    PerSecondMetrics,
    RequestOutcome,
    RunReport,
    aggregate_per_second,
    summarize,
)

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL_SEC = 1.0


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    elapsed_sec: float
    issued: int
    completed: int
    success: int
    failure: int


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    config: RunConfig
    outcomes: tuple[RequestOutcome, ...]
    report: RunReport
    issued_requests: int
    per_second: list[PerSecondMetrics]

    @property
    def abandoned_requests(self) -> int:
        return self.issued_requests - len(self.outcomes)


ProgressCallback = Callable[[ProgressSnapshot], Awaitable[None]]


def _new_run_id() -> str:
    return uuid.uuid4().hex


def run(config: RunConfig, **kwargs: Any) -> RunReport:
    result = asyncio.run(run_load_test(config, **kwargs))
    return result.report


async def run_load_test(
    config: RunConfig,
    *,
    client: httpx.AsyncClient | None = None,
    progress: ProgressCallback | None = None,
    run_id: str | None = None,
) -> RunResult:
    run_id = run_id or config.run_id or _new_run_id()
    logger.info(
        "Run %s: %s for %ss at %s req/s", run_id, config.target_base_url, config.duration_sec, config.target_rps
    )
    if client is None:
        limits = httpx.Limits(max_connections=None, max_keepalive_connections=None)
        async with httpx.AsyncClient(base_url=config.target_base_url, limits=limits) as owned:
            return await _execute_load(run_id, config, owned, progress)
    return await _execute_load(run_id, config, client, progress)


async def _execute_load(
    run_id: str,
    config: RunConfig,
    client: httpx.AsyncClient,
    progress: ProgressCallback | None,
) -> RunResult:
    collector = OutcomeCollector()
    tasks: set[asyncio.Task[None]] = set()
    started_mono = time.perf_counter()
    issued = await _open_loop(client, config, collector, tasks, progress, started_mono)
    loop_ended = time.perf_counter()

    await _drain(tasks, config.effective_drain_grace_sec)
    outcomes = collector.close()

    observed = loop_ended - started_mono
    report = summarize(outcomes, observed)
    per_second = aggregate_per_second(outcomes, config.duration_sec, config.target_rps)
    logger.info(
        "Run %s finished: issued=%d recorded=%d success=%d failure=%d",
        run_id,
        issued,
        report.total_requests,
        report.success_count,
        report.failure_count,
    )
    return RunResult(
        run_id=run_id,
        config=config,
        outcomes=outcomes,
        report=report,
        issued_requests=issued,
        per_second=per_second,
    )


async def _open_loop(
    client: httpx.AsyncClient,
    config: RunConfig,
    collector: OutcomeCollector,
    tasks: set[asyncio.Task[None]],
    progress: ProgressCallback | None,
    started_mono: float,
) -> int:
    rng = random.Random(config.seed)
    interval = config.interval_sec
    stop_at = started_mono + config.duration_sec
    next_progress = started_mono + PROGRESS_INTERVAL_SEC
    issued = 0
    while time.perf_counter() < stop_at:
        endpoint = rng.choice(config.endpoints)
        task = asyncio.create_task(_record_one(client, config, collector, endpoint, started_mono))
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        issued += 1

        now = time.perf_counter()
        if progress and now >= next_progress:
            await progress(_snapshot(collector, issued, now - started_mono))
            next_progress = now + PROGRESS_INTERVAL_SEC

        # Absolute slots keep sleep overshoot from accumulating over the run.
        await _sleep_until_time(min(started_mono + issued * interval, stop_at))
    if progress:
        await progress(_snapshot(collector, issued, time.perf_counter() - started_mono))
    return issued


async def _record_one(
    client: httpx.AsyncClient,
    config: RunConfig,
    collector: OutcomeCollector,
    endpoint: str,
    started_mono: float,
) -> None:
    outcome = await send_request(client, endpoint, config.timeout_sec, started_mono, config.headers)
    collector.add(outcome)


async def _drain(tasks: set[asyncio.Task[None]], grace_sec: float) -> None:
    if not tasks:
        return
    pending_tasks = set(tasks)
    _, pending = await asyncio.wait(pending_tasks, timeout=grace_sec)
    if pending:
        logger.warning("Abandoning %d requests still in flight after %.2fs drain", len(pending), grace_sec)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


def _snapshot(collector: OutcomeCollector, issued: int, elapsed_sec: float) -> ProgressSnapshot:
    counts = collector.counts()
    return ProgressSnapshot(
        elapsed_sec=elapsed_sec,
        issued=issued,
        completed=counts.completed,
        success=counts.success,
        failure=counts.failure,
    )


async def _sleep_until_time(target: float) -> None:
    # Sleeps even when the slot is already due so dispatched requests get to run.
    await asyncio.sleep(max(0.0, target - time.perf_counter()))
