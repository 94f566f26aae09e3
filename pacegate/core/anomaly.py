"""
Anomaly detection - scans recent usage and audit history and pauses the
system when an agent behaves abnormally.

Two rules:
- excessive_calls: an agent made more calls in the last hour than
  max_calls_per_agent_per_hour allows.
- consecutive_failures: an agent's most recent blocked attempts reach
  max_consecutive_failures. Only blocked rows are considered, so allowed
  actions interleaved between them do not reset the streak.

The detector runs on demand; nothing here schedules itself.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

from .audit import AuditLog
from .db import Database, format_ts, utc_now
from .state import Pace, StateStore
from ..util.logging import logger

EXCESSIVE_CALLS = "excessive_calls"
CONSECUTIVE_FAILURES = "consecutive_failures"

RATE_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class Anomaly:
    type: str
    agent: str
    detail: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class AnomalyReport:
    anomalies: List[Anomaly] = field(default_factory=list)
    auto_paused: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anomalies": [a.to_dict() for a in self.anomalies],
            "auto_paused": self.auto_paused
        }


class AnomalyDetector:
    def __init__(self, db: Database, state: StateStore, audit: AuditLog,
                 clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.state = state
        self.audit = audit
        self.clock = clock

    def _excessive_calls(self, max_calls: int) -> List[Anomaly]:
        since = format_ts(self.clock() - RATE_WINDOW)
        with self.db.get_db() as conn:
            rows = conn.execute(
                """
                SELECT agent, COUNT(*) AS cnt
                FROM api_usage
                WHERE created_at >= ?
                GROUP BY agent
                HAVING cnt > ?
                ORDER BY agent
                """,
                (since, max_calls)
            ).fetchall()

        return [
            Anomaly(
                type=EXCESSIVE_CALLS,
                agent=row["agent"],
                detail=f"{row['cnt']} calls in last hour (threshold: {max_calls})"
            )
            for row in rows
        ]

    def _consecutive_failures(self, max_failures: int) -> List[Anomaly]:
        with self.db.get_db() as conn:
            rows = conn.execute(
                """
                SELECT agent, COUNT(*) AS cnt
                FROM (
                    SELECT agent,
                           ROW_NUMBER() OVER (PARTITION BY agent ORDER BY id DESC) AS rn
                    FROM audit_log
                    WHERE blocked = 1
                )
                WHERE rn <= ?
                GROUP BY agent
                HAVING cnt >= ?
                ORDER BY agent
                """,
                (max_failures, max_failures)
            ).fetchall()

        return [
            Anomaly(
                type=CONSECUTIVE_FAILURES,
                agent=row["agent"],
                detail=f"{row['cnt']} consecutive blocked actions (threshold: {max_failures})"
            )
            for row in rows
        ]

    def detect(self) -> List[Anomaly]:
        """Run both rules without touching pace or the audit log."""
        thresholds = self.state.get_anomaly_thresholds()
        return (
            self._excessive_calls(thresholds.max_calls_per_agent_per_hour)
            + self._consecutive_failures(thresholds.max_consecutive_failures)
        )

    def check_anomalies(self) -> AnomalyReport:
        """Detect, then pause once and audit each finding if anything was found."""
        anomalies = self.detect()
        if not anomalies:
            return AnomalyReport()

        self.state.set_pace(Pace.PAUSE, actor="anomaly-detector")
        for anomaly in anomalies:
            logger.log_anomaly(anomaly.type, anomaly.agent, anomaly.detail)
            self.audit.log_action(
                agent="anomaly-detector",
                action="auto_pause",
                domain="system",
                detail=f"{anomaly.type}: {anomaly.agent} - {anomaly.detail}"
            )

        return AnomalyReport(anomalies=anomalies, auto_paused=True)
