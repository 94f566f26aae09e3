"""
Permission matrix: (mode, action, pace) -> allowed.

Pure, no I/O. Unknown mode or pace values fail closed.
"""

from enum import Enum
from typing import Optional, Type, Union

from .state import Mode, Pace

# Actions that may run while the operator is asleep, whatever the pace
SLEEP_SAFE_ACTIONS = frozenset([
    "scan",
    "research",
    "draft",
    "test",
    "maintenance",
    "analyze",
    "sandbox",
])

# Daytime caution: only passive scanning while paused
PAUSE_SAFE_ACTIONS = frozenset(["scan"])


def _coerce(enum_cls: Type[Enum], value) -> Optional[Enum]:
    try:
        return enum_cls(value)
    except ValueError:
        return None


def is_allowed(mode: Union[str, Mode], action: str, pace: Union[str, Pace]) -> bool:
    pace = _coerce(Pace, pace)
    mode = _coerce(Mode, mode)

    if pace is None or mode is None:
        return False

    if pace is Pace.STOP:
        return False

    if mode is Mode.SLEEP:
        return action in SLEEP_SAFE_ACTIONS
    elif mode is Mode.AWAKE:
        if pace is Pace.PAUSE:
            return action in PAUSE_SAFE_ACTIONS
        elif pace is Pace.FULL or pace is Pace.SLOW:
            return True

    return False


def blocking_reason(mode: Union[str, Mode], action: str, pace: Union[str, Pace]) -> Optional[str]:
    """Human-readable reason an action is refused, or None when it is allowed."""
    if is_allowed(mode, action, pace):
        return None

    mode_value = mode.value if isinstance(mode, Enum) else mode
    pace_value = pace.value if isinstance(pace, Enum) else pace

    if _coerce(Pace, pace) is Pace.STOP:
        return f"Blocked: pace={pace_value} halts all actions"
    if _coerce(Mode, mode) is Mode.SLEEP:
        return f"Blocked: mode={mode_value}, pace={pace_value}, action '{action}' is not sleep-safe"
    return f"Blocked: mode={mode_value}, pace={pace_value}"
