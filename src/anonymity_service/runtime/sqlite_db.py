# src/anonymity_service/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

Json = Dict[str, Any]


def canon_json(obj: Any) -> str:
    """Canonical JSON encoding of a service snapshot.

    Unknown types are not coerced: a non-JSON value leaking into state is a
    bug and must fail the write.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite file holding the service snapshot.

    The executor is the only writer in-process; cross-process contention is
    left to SQLite's busy_timeout.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _synchronous_pragma() -> str:
        """FULL in prod, NORMAL otherwise; ANONSVC_SQLITE_SYNCHRONOUS overrides."""
        mode = (os.environ.get("ANONSVC_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("ANONSVC_SQLITE_SYNCHRONOUS") or default).strip().upper()
        return raw if raw in {"OFF", "NORMAL", "FULL", "EXTRA"} else default

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        busy_ms = max(0, _env_int("ANONSVC_SQLITE_BUSY_TIMEOUT_MS", 30_000))
        con = sqlite3.connect(self.path, timeout=busy_ms / 1000.0, isolation_level=None)
        try:
            con.row_factory = sqlite3.Row
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute(f"PRAGMA synchronous={self._synchronous_pragma()};")
            con.execute("PRAGMA temp_store=MEMORY;")
            con.execute(f"PRAGMA busy_timeout={busy_ms};")
            yield con
        finally:
            con.close()

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """One BEGIN IMMEDIATE ... COMMIT; rolls back and re-raises on error."""
        with self.connection() as con:
            con.execute("BEGIN IMMEDIATE;")
            try:
                yield con
                con.execute("COMMIT;")
            except Exception:
                con.execute("ROLLBACK;")
                raise

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  service_id TEXT NOT NULL,
                  height INTEGER NOT NULL,
                  message_count INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )
            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            elif str(row["value"]) != str(self.SCHEMA_VERSION):
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={row['value']} want={self.SCHEMA_VERSION}. Refuse to start."
                )


class SqliteLedgerStore:
    """Service snapshot persisted as a single canonical-JSON row.

    service_id, height and message_count are also stored as columns so an
    operator can inspect the db with the sqlite3 CLI; read() refuses a row
    whose columns disagree with its JSON (torn or hand-edited snapshot).
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute(
                "SELECT service_id, height, message_count, state_json FROM ledger_state WHERE id=1;"
            ).fetchone()
        if row is None:
            raise FileNotFoundError("sqlite ledger_state is missing")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("ledger_state is not a JSON object")
        if _summary(st) != (str(row["service_id"]), int(row["height"]), int(row["message_count"])):
            raise ValueError("ledger_state columns disagree with state_json")
        return st

    def write(self, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        service_id, height, message_count = _summary(st)
        payload = canon_json(st)
        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO ledger_state(id, service_id, height, message_count, state_json, updated_ts_ms)
                VALUES(1, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  service_id=excluded.service_id,
                  height=excluded.height,
                  message_count=excluded.message_count,
                  state_json=excluded.state_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (service_id, height, message_count, payload, int(time.time() * 1000)),
            )


def _summary(st: Json) -> tuple:
    m = st.get("messaging")
    count = int(m.get("next_id", 0) or 0) if isinstance(m, dict) else 0
    return str(st.get("service_id") or ""), int(st.get("height", 0) or 0), count
