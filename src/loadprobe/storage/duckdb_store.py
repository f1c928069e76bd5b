from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path

import duckdb
import pandas as pd

from loadprobe.loadgen.runner import RunResult
from loadprobe.metrics import RunReport

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        logger.debug("Initializing schema in %s", self.db_path)
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_meta (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    target_base_url TEXT,
                    config_json TEXT,
                    notes TEXT,
                    issued_requests INTEGER
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS request_outcomes (
                    run_id TEXT,
                    endpoint TEXT,
                    issued_at DOUBLE,
                    offset_sec DOUBLE,
                    latency_ms DOUBLE,
                    kind TEXT,
                    status_code INTEGER,
                    error_code TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS per_second (
                    run_id TEXT,
                    second INTEGER,
                    requested_rps DOUBLE,
                    achieved_rps DOUBLE,
                    p50_ms DOUBLE,
                    p95_ms DOUBLE,
                    p99_ms DOUBLE,
                    error_rate DOUBLE,
                    timeout_rate DOUBLE
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_reports (
                    run_id TEXT PRIMARY KEY,
                    report_json TEXT
                );
                """
            )

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_run(self, result: RunResult) -> None:
        if self.run_exists(result.run_id):
            msg = f"Run {result.run_id} already exists"
            raise ValueError(msg)
        config = result.config
        config_json = json.dumps({**config.to_metadata(), "run_id": result.run_id})
        with self._connect() as con:
            con.execute(
                "INSERT INTO run_meta VALUES (?, ?, ?, ?, ?, ?)",
                [
                    result.run_id,
                    config.created_at.astimezone(timezone.utc).replace(tzinfo=None),
                    config.target_base_url,
                    config_json,
                    config.notes,
                    result.issued_requests,
                ],
            )
            outcomes_df = pd.DataFrame(
                [
                    {
                        "run_id": result.run_id,
                        "endpoint": o.endpoint,
                        "issued_at": o.issued_at,
                        "offset_sec": o.offset_sec,
                        "latency_ms": o.latency_ms,
                        "kind": o.kind.value,
                        "status_code": o.status_code,
                        "error_code": o.error_code,
                    }
                    for o in result.outcomes
                ]
            )
            if not outcomes_df.empty:
                # Nullable ints keep missing status codes as NULL instead of NaN.
                outcomes_df = outcomes_df.astype({"status_code": "Int64", "error_code": "object"})
                con.execute("INSERT INTO request_outcomes SELECT * FROM outcomes_df")
            per_df = pd.DataFrame(
                [
                    {
                        "run_id": result.run_id,
                        "second": m.second,
                        "requested_rps": m.requested_rps,
                        "achieved_rps": m.achieved_rps,
                        "p50_ms": m.p50_ms,
                        "p95_ms": m.p95_ms,
                        "p99_ms": m.p99_ms,
                        "error_rate": m.error_rate,
                        "timeout_rate": m.timeout_rate,
                    }
                    for m in result.per_second
                ]
            )
            if not per_df.empty:
                con.execute("INSERT INTO per_second SELECT * FROM per_df")
            con.execute(
                "INSERT INTO run_reports VALUES (?, ?)",
                [result.run_id, json.dumps(result.report.to_dict())],
            )
        logger.debug("Saved run %s (%d outcomes)", result.run_id, len(result.outcomes))

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                """
                SELECT m.run_id, m.created_at, m.target_base_url, m.issued_requests, m.notes,
                       r.report_json
                FROM run_meta m LEFT JOIN run_reports r ON m.run_id = r.run_id
                ORDER BY m.created_at DESC
                """
            ).fetchdf()

    def load_run_meta(self, run_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return json.loads(row[0])

    def load_report(self, run_id: str) -> RunReport | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT report_json FROM run_reports WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return RunReport.from_dict(json.loads(row[0]))

    def load_per_second(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM per_second WHERE run_id = ? ORDER BY second",
                [run_id],
            ).fetchdf()

    def load_outcomes(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM request_outcomes WHERE run_id = ?",
                [run_id],
            ).fetchdf()
