"""
Structured operational logging for the control plane.
Audit rows live in SQLite; this logger is the process-side trail next to them.
"""

import logging
from typing import Any, Dict, List


def _truncate(value: str, limit: int = 50) -> str:
    return value[:limit] + "..." if len(value) > limit else value


class StructuredLogger:
    """Structured logger for dispatch, policy, scheduler and proposal operations."""

    def __init__(self, name: str = "pacegate"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_dispatch(self, agent: str, action: str, domain: str, status: str, details: Dict[str, Any] = None):
        """Log a dispatch attempt through the gateway."""
        log_details = {"agent": agent, "action": action, "domain": domain}
        if details:
            for k, v in details.items():
                log_details[k] = _truncate(v, 100) if isinstance(v, str) else v

        self.log_operation("dispatch", status, log_details)

    def log_policy_block(self, agent: str, action: str, mode: str, pace: str, reason: str = "allowlist"):
        """Log an action refused by policy."""
        self.log_operation("policy.block", "blocked", {
            "agent": agent,
            "action": action,
            "mode": mode,
            "pace": pace,
            "reason": reason
        })

    def log_state_change(self, key: str, old_value: Any, new_value: Any, actor: str = "system"):
        """Log a system_state write."""
        self.log_operation(f"state.{key}", "updated", {
            "old": old_value,
            "new": new_value,
            "actor": actor
        })

    def log_anomaly(self, anomaly_type: str, agent: str, detail: str):
        """Log an anomaly finding."""
        self.log_operation(f"anomaly.{anomaly_type}", "detected", {
            "agent": agent,
            "detail": _truncate(detail, 100)
        })

    def log_scheduler_transition(self, old_mode: str, new_mode: str, at: str, window: str):
        """Log an automatic mode transition."""
        self.log_operation("scheduler.transition", "success", {
            "from": old_mode,
            "to": new_mode,
            "at": at,
            "window": window
        })

    def log_proposal(self, event: str, proposal_id: int, domain: str, title: str, status: str = "success"):
        """Log a proposal lifecycle event."""
        self.log_operation(f"proposal.{event}", status, {
            "proposal_id": proposal_id,
            "domain": domain,
            "title": _truncate(title)
        })

    def log_validation_error(self, field: str, value: Any, allowed: List[Any] = None):
        """Log a rejected value with the allowed set."""
        log_details = {"field": field, "value": _truncate(str(value))}
        if allowed:
            log_details["allowed"] = list(allowed)

        self.log_operation("validation", "rejected", log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
