"""
Sleep scheduler - flips mode between awake and sleep as the local clock
crosses the configured sleep window.

The window test is a pure function; tick() applies it once; SleepScheduler
runs tick() on a background thread with an explicit start/stop handle.
"""

import threading
from datetime import datetime
from typing import Callable, Dict, Optional

from .audit import AuditLog
from .config import SCHEDULER_INTERVAL_SEC
from .state import Mode, StateStore, is_valid_time
from ..util.logging import logger

__all__ = ["to_minutes", "is_valid_time", "is_in_sleep_window", "SleepScheduler"]


def to_minutes(time_str: str) -> int:
    """Minutes since midnight for an HH:MM string."""
    hours, minutes = time_str.split(":")
    return int(hours) * 60 + int(minutes)


def is_in_sleep_window(time_str: str, sleep_start: str, sleep_end: str) -> bool:
    """
    Check whether time_str falls inside the sleep window.

    Start is inclusive and end exclusive. When start > end the window wraps
    midnight (e.g. 23:00-08:00).
    """
    t = to_minutes(time_str)
    start = to_minutes(sleep_start)
    end = to_minutes(sleep_end)

    if start <= end:
        return start <= t < end
    return t >= start or t < end


class SleepScheduler:
    """Owns the periodic tick. Start it with the process, stop it on shutdown."""

    def __init__(self, state: StateStore, audit: AuditLog,
                 clock: Callable[[], datetime] = datetime.now,
                 interval_sec: Optional[float] = None):
        self.state = state
        self.audit = audit
        self.clock = clock
        self.interval_sec = interval_sec if interval_sec is not None else SCHEDULER_INTERVAL_SEC

        self._thread: Optional[threading.Thread] = None
        self._shutdown_event = threading.Event()
        self.last_tick: Optional[datetime] = None
        self.transitions = 0

    def tick(self, now: Optional[datetime] = None) -> bool:
        """Apply the window once. Returns True only when mode changed."""
        now = now or self.clock()
        time_str = now.strftime("%H:%M")

        schedule = self.state.get_schedule()
        sleep_start, sleep_end = schedule["sleep_start"], schedule["sleep_end"]
        should_sleep = is_in_sleep_window(time_str, sleep_start, sleep_end)
        current_mode = self.state.get_mode()
        self.last_tick = now

        if should_sleep and current_mode is Mode.AWAKE:
            target = Mode.SLEEP
        elif not should_sleep and current_mode is Mode.SLEEP:
            target = Mode.AWAKE
        else:
            return False

        window = f"{sleep_start}-{sleep_end}"
        self.state.set_mode(target, actor="sleep-scheduler")
        self.audit.log_action(
            agent="sleep-scheduler",
            action="set_mode",
            domain="system",
            detail=f"Auto-transition to {target.value} at {time_str} (window {window})"
        )
        logger.log_scheduler_transition(current_mode.value, target.value, time_str, window)
        self.transitions += 1
        return True

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Tick once now, then every interval on a daemon thread."""
        if self.running:
            raise RuntimeError("Sleep scheduler already running")

        if self.interval_sec <= 0:
            raise ValueError(f"Interval must be > 0 seconds: {self.interval_sec}")

        self._shutdown_event.clear()
        self.tick()

        self._thread = threading.Thread(target=self._run, name="sleep-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Sleep scheduler started (every {self.interval_sec}s)")

    def _run(self):
        while not self._shutdown_event.wait(self.interval_sec):
            try:
                self.tick()
            except Exception as e:
                # Error isolation - a failed tick must not kill the loop
                logger.error(f"Sleep scheduler tick failed: {e}")

    def stop(self, timeout: float = 5.0):
        """Cancel the loop and wait for the thread to exit."""
        if self._thread is None:
            return

        self._shutdown_event.set()
        self._thread.join(timeout)
        if self._thread.is_alive():
            # Keep the handle so start() cannot launch a second loop beside it
            logger.warning(f"Sleep scheduler thread still busy after {timeout}s; it will exit after its current tick")
            return

        self._thread = None
        logger.info("Sleep scheduler stopped")

    def get_status(self) -> Dict:
        schedule = self.state.get_schedule()
        return {
            "status": "running" if self.running else "stopped",
            "interval_sec": self.interval_sec,
            "sleep_start": schedule["sleep_start"],
            "sleep_end": schedule["sleep_end"],
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "transitions": self.transitions
        }
