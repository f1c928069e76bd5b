from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from loadprobe.config import DEFAULT_BASE_URL, DEFAULT_ENDPOINTS, ComparisonTarget, ConfigError, RunConfig
from loadprobe.loadgen.comparison import default_targets, parse_target, run_comparison
from loadprobe.loadgen.runner import ProgressSnapshot, run_load_test
from loadprobe.reporting import (
    emit,
    format_comparison,
    format_header,
    format_progress,
    format_report,
    result_to_json,
)
from loadprobe.storage import DEFAULT_DB_PATH, default_storage

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def _setup_logging() -> None:
    level_name = os.getenv("LOADPROBE_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


async def _print_progress(snapshot: ProgressSnapshot) -> None:
    emit("\r" + format_progress(snapshot), end="")


def _add_load_options(parser: argparse.ArgumentParser, default_rps: float) -> None:
    parser.add_argument("--duration", type=int, default=30, help="Test length in seconds")
    parser.add_argument("--rps", type=float, default=default_rps, help="Target requests per second")
    parser.add_argument("--timeout", type=int, default=5000, help="Per-request timeout in milliseconds")
    parser.add_argument(
        "--endpoint",
        action="append",
        dest="endpoints",
        help="Path to request; repeat for several (default: the demo service paths)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loadprobe", description="Fixed-rate HTTP load generator")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Run a load test against one target")
    run_p.add_argument("url", nargs="?", default=DEFAULT_BASE_URL, help="Target base URL")
    _add_load_options(run_p, default_rps=100.0)
    run_p.add_argument("--seed", type=int, default=None, help="Seed for endpoint selection")
    run_p.add_argument("--drain", type=float, default=None, help="Seconds to wait for in-flight requests")
    run_p.add_argument("--json", action="store_true", help="Print the result as JSON")
    run_p.add_argument("--save", action="store_true", help="Persist the run to the results database")
    run_p.add_argument("--db", type=Path, default=DEFAULT_DB_PATH)
    run_p.add_argument("--notes", default="")

    cmp_p = sub.add_parser("compare", help="Run the same load against several targets in turn")
    cmp_p.add_argument(
        "--target",
        action="append",
        dest="targets",
        metavar="NAME=URL",
        help="Target to include; repeat for several (default: localhost:8080 and :8081)",
    )
    _add_load_options(cmp_p, default_rps=50.0)

    hist_p = sub.add_parser("history", help="List stored runs")
    hist_p.add_argument("--db", type=Path, default=DEFAULT_DB_PATH)
    return parser


def _run_command(args: argparse.Namespace) -> int:
    config = RunConfig(
        target_base_url=args.url,
        endpoints=args.endpoints or DEFAULT_ENDPOINTS,
        duration_sec=args.duration,
        target_rps=args.rps,
        timeout_ms=args.timeout,
        seed=args.seed,
        drain_grace_sec=args.drain,
        notes=args.notes,
    )
    storage = default_storage(args.db) if args.save else None
    progress = None
    if not args.json:
        emit(format_header(config) + "\n")
        progress = _print_progress

    result = asyncio.run(run_load_test(config, progress=progress))

    if args.json:
        emit(result_to_json(result))
    else:
        emit("\n\n" + format_report(result.report))
    if storage is not None:
        storage.save_run(result)
        emit(f"Saved run: {result.run_id}")
    return EXIT_OK


def _compare_command(args: argparse.Namespace) -> int:
    defaults = ComparisonTarget(
        name="",
        url="",
        duration_sec=args.duration,
        target_rps=args.rps,
        timeout_ms=args.timeout,
        endpoints=tuple(args.endpoints or DEFAULT_ENDPOINTS),
    )
    if args.targets:
        targets = [parse_target(spec, defaults) for spec in args.targets]
    else:
        targets = default_targets(args.duration, args.rps, args.timeout)

    def announce(target: ComparisonTarget) -> None:
        emit(f"\nStarting: {target.name}\nURL: {target.url}")

    results = asyncio.run(run_comparison(targets, progress=_print_progress, on_start=announce))
    emit("\n\n" + format_comparison(results))
    return EXIT_OK


def _history_command(args: argparse.Namespace) -> int:
    runs = default_storage(args.db).list_runs()
    if runs.empty:
        emit("No stored runs.")
        return EXIT_OK
    emit(runs.drop(columns=["report_json"]).to_string(index=False))
    return EXIT_OK


COMMANDS = {
    "run": _run_command,
    "compare": _compare_command,
    "history": _history_command,
}


def main(argv: Sequence[str] | None = None) -> int:
    _setup_logging()
    args = build_parser().parse_args(argv)
    try:
        return COMMANDS[args.command](args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as exc:  # noqa: BLE001
        logger.debug("Unhandled error", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
