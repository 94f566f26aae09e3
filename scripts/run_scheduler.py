#!/usr/bin/env python3
"""
Run the sleep scheduler in the foreground without the HTTP API.
Ticks once at start, then every SCHEDULER_INTERVAL_SEC seconds; anomaly
checks run on the same cadence when --check-anomalies is given.
"""

import argparse
import threading

from pacegate.core.config import get_scheduler_interval, validate_config
from pacegate.core.control_plane import ControlPlane
from pacegate.util.logging import logger


def main():
    parser = argparse.ArgumentParser(description="pacegate sleep scheduler")
    parser.add_argument("--interval", type=float, default=None,
                        help="Seconds between ticks (default: SCHEDULER_INTERVAL_SEC)")
    parser.add_argument("--check-anomalies", action="store_true",
                        help="Also run the anomaly detector every interval")
    args = parser.parse_args()

    issues = validate_config()
    if issues:
        raise SystemExit(f"Configuration invalid: {issues}")

    interval = args.interval or get_scheduler_interval()
    plane = ControlPlane(scheduler_interval_sec=interval)
    stop_event = threading.Event()

    plane.scheduler.start()
    try:
        while not stop_event.wait(interval):
            if args.check_anomalies:
                report = plane.anomaly.check_anomalies()
                if report.auto_paused:
                    logger.warning(f"Auto-paused: {len(report.anomalies)} anomalies")
    except KeyboardInterrupt:
        logger.info("Scheduler interrupted by user")
    finally:
        plane.close()


if __name__ == "__main__":
    main()
