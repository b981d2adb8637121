"""SQLite schema and query helpers for persisted covers and batch runs."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from covergen.models import GenerationRun, PersistedAsset

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS assets (
    request_id TEXT PRIMARY KEY,
    primary_path TEXT NOT NULL,
    fallback_path TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    provider TEXT NOT NULL,
    kind TEXT NOT NULL,
    formats TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS generation_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    requested INTEGER NOT NULL DEFAULT 0,
    succeeded INTEGER NOT NULL DEFAULT 0,
    placeholders INTEGER NOT NULL DEFAULT 0,
    failed INTEGER NOT NULL DEFAULT 0,
    cost_usd REAL NOT NULL DEFAULT 0.0
);

CREATE INDEX IF NOT EXISTS idx_assets_provider ON assets(provider);
CREATE INDEX IF NOT EXISTS idx_runs_tenant ON generation_runs(tenant);
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode enabled."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create all tables and set schema version."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    finally:
        conn.close()


def _dt_str(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def _parse_dt(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s)


# --- Asset helpers ---


def upsert_asset(conn: sqlite3.Connection, asset: PersistedAsset) -> None:
    """Record an asset; a regeneration replaces the previous row."""
    conn.execute(
        """INSERT OR REPLACE INTO assets
           (request_id, primary_path, fallback_path, content_hash,
            provider, kind, formats, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            asset.request_id,
            asset.primary_path,
            asset.fallback_path,
            asset.content_hash,
            asset.provider,
            asset.kind,
            json.dumps(asset.formats),
            _dt_str(asset.created_at),
        ),
    )
    conn.commit()


def get_asset(conn: sqlite3.Connection, request_id: str) -> PersistedAsset | None:
    row = conn.execute(
        "SELECT * FROM assets WHERE request_id = ?", (request_id,)
    ).fetchone()
    if row is None:
        return None
    return PersistedAsset(
        request_id=row["request_id"],
        primary_path=row["primary_path"],
        fallback_path=row["fallback_path"],
        content_hash=row["content_hash"],
        provider=row["provider"],
        kind=row["kind"],
        formats=json.loads(row["formats"]),
        created_at=_parse_dt(row["created_at"]),
    )


# --- GenerationRun helpers ---


def insert_run(conn: sqlite3.Connection, run: GenerationRun) -> int:
    cur = conn.execute(
        "INSERT INTO generation_runs (tenant, started_at, status, requested)"
        " VALUES (?, ?, ?, ?)",
        (run.tenant, _dt_str(run.started_at), run.status, run.requested),
    )
    conn.commit()
    return cur.lastrowid


def finish_run(conn: sqlite3.Connection, run_id: int, run: GenerationRun) -> None:
    conn.execute(
        """UPDATE generation_runs SET
           finished_at = ?, status = ?, succeeded = ?,
           placeholders = ?, failed = ?, cost_usd = ?
           WHERE id = ?""",
        (
            _dt_str(run.finished_at),
            run.status,
            run.succeeded,
            run.placeholders,
            run.failed,
            run.cost_usd,
            run_id,
        ),
    )
    conn.commit()


def get_recent_runs(conn: sqlite3.Connection, limit: int = 10) -> list[dict]:
    """Fetch recent batch runs for stats display."""
    rows = conn.execute(
        "SELECT * FROM generation_runs ORDER BY started_at DESC LIMIT ?", (limit,)
    ).fetchall()
    return [dict(row) for row in rows]
