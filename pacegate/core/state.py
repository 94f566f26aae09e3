"""
State store - single source of truth for pace, mode, sleep window, budget
values and anomaly thresholds. Every getter reads the current row; every
setter validates first and writes a single row.
"""

import math
import re
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Union

from .db import Database
from .errors import ValidationError
from ..util.logging import logger


class Pace(str, Enum):
    """Operator throttle. STOP overrides everything."""
    FULL = "full"
    SLOW = "slow"
    PAUSE = "pause"
    STOP = "stop"


class Mode(str, Enum):
    """Time-of-day context."""
    AWAKE = "awake"
    SLEEP = "sleep"


VALID_PACES = [p.value for p in Pace]
VALID_MODES = [m.value for m in Mode]
VALID_THRESHOLDS = ("max_calls_per_agent_per_hour", "max_consecutive_failures")

_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


@dataclass(frozen=True)
class AnomalyThresholds:
    max_calls_per_agent_per_hour: int
    max_consecutive_failures: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def parse_pace(value: Union[str, Pace]) -> Pace:
    """Coerce a raw value to Pace or raise ValidationError."""
    try:
        return Pace(value)
    except ValueError:
        raise ValidationError(
            "pace", value,
            f'Invalid pace: "{value}". Must be one of: {", ".join(VALID_PACES)}',
            allowed=VALID_PACES
        )


def parse_mode(value: Union[str, Mode]) -> Mode:
    """Coerce a raw value to Mode or raise ValidationError."""
    try:
        return Mode(value)
    except ValueError:
        raise ValidationError(
            "mode", value,
            f'Invalid mode: "{value}". Must be one of: {", ".join(VALID_MODES)}',
            allowed=VALID_MODES
        )


def is_valid_time(value: Any) -> bool:
    """True for a zero-padded HH:MM string between 00:00 and 23:59."""
    if not isinstance(value, str) or not _TIME_RE.match(value):
        return False
    hours, minutes = (int(part) for part in value.split(":"))
    return hours < 24 and minutes < 60


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class StateStore:
    """Typed access to the system_state table."""

    def __init__(self, db: Database):
        self.db = db

    def get_value(self, key: str) -> str:
        """Raw string value for a seeded key."""
        with self.db.get_db() as conn:
            row = conn.execute("SELECT value FROM system_state WHERE key = ?", (key,)).fetchone()
        if row is None:
            raise KeyError(f"system_state key not seeded: {key}")
        return row["value"]

    def _set_value(self, key: str, value: str, actor: str = "system"):
        with self.db.get_db() as conn:
            row = conn.execute("SELECT value FROM system_state WHERE key = ?", (key,)).fetchone()
            conn.execute("UPDATE system_state SET value = ? WHERE key = ?", (value, key))
        logger.log_state_change(key, row["value"] if row else None, value, actor)

    def snapshot(self) -> Dict[str, str]:
        """Every key with its current value."""
        with self.db.get_db() as conn:
            rows = conn.execute("SELECT key, value FROM system_state ORDER BY key").fetchall()
        return {row["key"]: row["value"] for row in rows}

    # Pace / mode

    def get_pace(self) -> Pace:
        return Pace(self.get_value("pace"))

    def set_pace(self, pace: Union[str, Pace], actor: str = "system") -> Pace:
        try:
            parsed = parse_pace(pace)
        except ValidationError as e:
            logger.log_validation_error(e.field, e.value, e.allowed)
            raise
        self._set_value("pace", parsed.value, actor)
        return parsed

    def get_mode(self) -> Mode:
        return Mode(self.get_value("mode"))

    def set_mode(self, mode: Union[str, Mode], actor: str = "system") -> Mode:
        try:
            parsed = parse_mode(mode)
        except ValidationError as e:
            logger.log_validation_error(e.field, e.value, e.allowed)
            raise
        self._set_value("mode", parsed.value, actor)
        return parsed

    # Sleep window

    def get_schedule(self) -> Dict[str, str]:
        return {
            "sleep_start": self.get_value("sleep_start"),
            "sleep_end": self.get_value("sleep_end")
        }

    def set_schedule(self, sleep_start: str, sleep_end: str, actor: str = "system") -> Dict[str, str]:
        """Set both ends of the sleep window; neither is written unless both are valid."""
        if not is_valid_time(sleep_start):
            raise ValidationError("sleep_start", sleep_start, f'Invalid sleep_start: "{sleep_start}". Use HH:MM format.')
        if not is_valid_time(sleep_end):
            raise ValidationError("sleep_end", sleep_end, f'Invalid sleep_end: "{sleep_end}". Use HH:MM format.')

        with self.db.get_db() as conn:
            conn.execute("UPDATE system_state SET value = ? WHERE key = 'sleep_start'", (sleep_start,))
            conn.execute("UPDATE system_state SET value = ? WHERE key = 'sleep_end'", (sleep_end,))
        logger.log_state_change("sleep_window", None, f"{sleep_start}-{sleep_end}", actor)
        return self.get_schedule()

    # Budget values

    def get_ceiling(self) -> float:
        return float(self.get_value("budget_ceiling"))

    def set_ceiling(self, ceiling: float, actor: str = "system") -> float:
        if not _is_number(ceiling) or ceiling <= 0:
            raise ValidationError("budget_ceiling", ceiling, "Budget ceiling must be a positive number")
        self._set_value("budget_ceiling", str(ceiling), actor)
        return float(ceiling)

    def get_cost_per_call(self) -> float:
        return float(self.get_value("budget_cost_per_call"))

    def set_cost_per_call(self, cost: float, actor: str = "system") -> float:
        if not _is_number(cost) or cost < 0:
            raise ValidationError("budget_cost_per_call", cost, "Cost per call must be a non-negative number")
        self._set_value("budget_cost_per_call", str(cost), actor)
        return float(cost)

    # Anomaly thresholds

    def get_anomaly_thresholds(self) -> AnomalyThresholds:
        return AnomalyThresholds(
            max_calls_per_agent_per_hour=int(self.get_value("max_calls_per_agent_per_hour")),
            max_consecutive_failures=int(self.get_value("max_consecutive_failures"))
        )

    def set_anomaly_threshold(self, key: str, value: Union[int, float], actor: str = "system") -> AnomalyThresholds:
        if key not in VALID_THRESHOLDS:
            raise ValidationError(
                "key", key,
                f"Unknown threshold: {key}. Valid: {', '.join(VALID_THRESHOLDS)}",
                allowed=VALID_THRESHOLDS
            )
        if not _is_number(value) or value <= 0 or int(value) != value:
            raise ValidationError(key, value, "Threshold must be a positive integer")
        self._set_value(key, str(int(value)), actor)
        return self.get_anomaly_thresholds()
