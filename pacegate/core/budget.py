"""
Budget tracker - records estimated cost per dispatched call and compares the
trailing 24 hours of spend against the ceiling held in system_state.
Cost is advisory: callers supply it, nothing here meters real billing.
"""

import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Union

from .config import DEFAULT_NODE
from .db import Database, format_ts, utc_now
from .errors import ValidationError
from .schema import UsageRecord
from .state import StateStore

USAGE_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class UsageWindow:
    total_cost: float
    call_count: int

    def to_dict(self) -> Dict[str, Union[float, int]]:
        return asdict(self)


class BudgetTracker:
    def __init__(self, db: Database, state: StateStore, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.state = state
        self.clock = clock

    def record_usage(self, agent: str, domain: str, node: Optional[str] = None,
                     cost: float = 0.0, duration_ms: int = 0,
                     created_at: Optional[datetime] = None) -> UsageRecord:
        """Append a usage row. created_at defaults to the clock's now."""
        if isinstance(cost, bool) or not isinstance(cost, (int, float)) or not math.isfinite(cost) or cost < 0:
            raise ValidationError("cost", cost, "Cost must be a non-negative number")

        node = node or DEFAULT_NODE
        timestamp = format_ts(created_at or self.clock())

        with self.db.get_db() as conn:
            cursor = conn.execute(
                """
                INSERT INTO api_usage (agent, domain, node, cost, duration_ms, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (agent, domain, node, float(cost), int(duration_ms), timestamp)
            )
            usage_id = cursor.lastrowid

        return UsageRecord(
            id=usage_id,
            agent=agent,
            domain=domain,
            node=node,
            cost=float(cost),
            duration_ms=int(duration_ms),
            created_at=timestamp
        )

    def get_usage_24h(self) -> UsageWindow:
        since = format_ts(self.clock() - USAGE_WINDOW)
        with self.db.get_db() as conn:
            row = conn.execute(
                """
                SELECT COALESCE(SUM(cost), 0) AS total_cost, COUNT(*) AS call_count
                FROM api_usage
                WHERE created_at >= ?
                """,
                (since,)
            ).fetchone()
        return UsageWindow(total_cost=float(row["total_cost"]), call_count=int(row["call_count"]))

    def get_recent_usage(self, limit: int = 50) -> List[UsageRecord]:
        with self.db.get_db() as conn:
            rows = conn.execute(
                "SELECT * FROM api_usage ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [UsageRecord.from_row(row) for row in rows]

    def is_within_budget(self) -> bool:
        # Spend equal to the ceiling already counts as over budget
        return self.get_usage_24h().total_cost < self.state.get_ceiling()

    def get_budget_status(self) -> Dict[str, Union[float, int, bool]]:
        ceiling = self.state.get_ceiling()
        usage = self.get_usage_24h()
        return {
            "ceiling": ceiling,
            "spent": usage.total_cost,
            "remaining": max(0.0, ceiling - usage.total_cost),
            "call_count": usage.call_count,
            "within_budget": usage.total_cost < ceiling,
            "cost_per_call": self.state.get_cost_per_call(),
        }
