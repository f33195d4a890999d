"""
Usage ledger database schema -- one SQLite table, append-only.

Usage:
    initialize_schema(db_path)  # Creates the table if it doesn't exist
    get_connection(db_path)     # Returns a connection with WAL mode enabled

TEXT primary keys (UUIDs) and TEXT timestamps (ISO 8601, UTC).
metadata_json stores arbitrary call metadata as serialized JSON.
"""

import json
import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/usage.db")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS api_usage (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    project_id TEXT,
    agent_id TEXT,
    provider TEXT NOT NULL,
    model TEXT NOT NULL,
    action TEXT,
    tokens_prompt INTEGER NOT NULL DEFAULT 0,
    tokens_completion INTEGER NOT NULL DEFAULT 0,
    tokens_total INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'success',
    duration_ms INTEGER NOT NULL DEFAULT 0,
    metadata_json TEXT DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_usage_user ON api_usage(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_usage_project ON api_usage(project_id);
CREATE INDEX IF NOT EXISTS idx_usage_agent ON api_usage(agent_id);
CREATE INDEX IF NOT EXISTS idx_usage_created ON api_usage(created_at);
"""


def get_connection(db_path: Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a connection with WAL journaling and dict-like rows."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


def initialize_schema(db_path: Path = DEFAULT_DB_PATH) -> None:
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
        logger.info(f"[UsageSchema] Initialized at {db_path}")
    finally:
        conn.close()


def dict_from_row(row: sqlite3.Row) -> dict:
    """Convert a row to a dict, decoding metadata_json into metadata."""
    d = dict(row)
    raw = d.pop("metadata_json", None)
    try:
        d["metadata"] = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        logger.warning(f"[UsageSchema] Corrupt metadata_json on row {d.get('id')}")
        d["metadata"] = {}
    return d
