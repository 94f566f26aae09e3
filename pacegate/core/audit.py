"""
Audit log - append-only record of every attempted action, allowed or blocked.
No update or delete is exposed.
"""

from datetime import datetime
from typing import Callable, List, Optional

from .db import Database, format_ts, utc_now
from .schema import AuditEntry


class AuditLog:
    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def log_action(self, agent: str, action: str, domain: str,
                   detail: Optional[str] = None, blocked: bool = False) -> AuditEntry:
        """Append an entry and return it with its generated id and timestamp."""
        timestamp = format_ts(self.clock())
        with self.db.get_db() as conn:
            cursor = conn.execute(
                """
                INSERT INTO audit_log (timestamp, agent, action, domain, detail, blocked)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (timestamp, agent, action, domain, detail, 1 if blocked else 0)
            )
            entry_id = cursor.lastrowid

        return AuditEntry(
            id=entry_id,
            timestamp=timestamp,
            agent=agent,
            action=action,
            domain=domain,
            detail=detail,
            blocked=bool(blocked)
        )

    def get_recent_logs(self, limit: int = 50) -> List[AuditEntry]:
        """Most recent entries first, ordered by id."""
        with self.db.get_db() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [AuditEntry.from_row(row) for row in rows]

    def count(self, blocked: Optional[bool] = None) -> int:
        query = "SELECT COUNT(*) FROM audit_log"
        params = ()
        if blocked is not None:
            query += " WHERE blocked = ?"
            params = (1 if blocked else 0,)
        with self.db.get_db() as conn:
            return conn.execute(query, params).fetchone()[0]
