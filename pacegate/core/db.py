"""
SQLite persistence for the control plane.
One connection per Database instance; statement groups are serialised by a lock
that is never held across an external agent call.
"""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Generator

from .config import DB_PATH, ensure_db_directory

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Seeded once; existing values are never overwritten
DEFAULT_STATE: Dict[str, str] = {
    "pace": "pause",
    "mode": "awake",
    "sleep_start": "23:00",
    "sleep_end": "08:00",
    "budget_ceiling": "50",
    "budget_cost_per_call": "0.01",
    "max_calls_per_agent_per_hour": "20",
    "max_consecutive_failures": "5",
}


def utc_now() -> datetime:
    """Default clock for stored timestamps."""
    return datetime.now(timezone.utc)


def format_ts(value: datetime) -> str:
    """Render a datetime as the UTC text form stored in every timestamp column."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


class Database:
    """Owns the SQLite connection and schema."""

    def __init__(self, path: str = None):
        self.path = path or DB_PATH
        ensure_db_directory(self.path)

        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()

        if self.path != ":memory:":
            self._conn.execute("PRAGMA journal_mode = WAL")

    @contextmanager
    def get_db(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield the connection under the lock; commit on success, roll back on error."""
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def init_db(self):
        """Initialize the database with required tables and default state."""
        with self.get_db() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS system_state (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS proposals (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    domain          TEXT NOT NULL,
                    title           TEXT NOT NULL,
                    body            TEXT NOT NULL,
                    effort          TEXT NOT NULL,
                    recommendation  TEXT NOT NULL,
                    status          TEXT NOT NULL DEFAULT 'pending',
                    source          TEXT NOT NULL,
                    created_at      TEXT NOT NULL,
                    resolved_at     TEXT,
                    resolution_note TEXT
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS audit_log (
                    id        INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    agent     TEXT NOT NULL,
                    action    TEXT NOT NULL,
                    domain    TEXT NOT NULL,
                    detail    TEXT,
                    blocked   INTEGER NOT NULL DEFAULT 0
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS api_usage (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    agent       TEXT NOT NULL,
                    domain      TEXT NOT NULL,
                    node        TEXT NOT NULL,
                    cost        REAL NOT NULL DEFAULT 0.0,
                    duration_ms INTEGER NOT NULL DEFAULT 0,
                    created_at  TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS dossier_entries (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    topic_id   TEXT NOT NULL,
                    category   TEXT NOT NULL,
                    findings   TEXT NOT NULL,
                    relevance  TEXT NOT NULL DEFAULT 'medium',
                    source     TEXT NOT NULL DEFAULT 'agent',
                    created_at TEXT NOT NULL
                )
            ''')

            # Rolling-window aggregations scan by time
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_api_usage_created_at ON api_usage(created_at)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_api_usage_agent_created_at ON api_usage(agent, created_at)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_audit_log_agent_blocked ON audit_log(agent, blocked, id DESC)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_proposals_domain_status ON proposals(domain, status)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_dossier_topic_created_at ON dossier_entries(topic_id, created_at)')

            cursor.executemany(
                'INSERT OR IGNORE INTO system_state (key, value) VALUES (?, ?)',
                list(DEFAULT_STATE.items())
            )

    def health_check(self) -> bool:
        """Check database health."""
        try:
            with self.get_db() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
                table_names = [row[0] for row in cursor.fetchall()]

                required_tables = ['system_state', 'proposals', 'audit_log', 'api_usage', 'dossier_entries']
                return all(table in table_names for table in required_tables)
        except sqlite3.Error:
            return False

    def close(self):
        with self._lock:
            self._conn.close()
