"""
Anomaly detector tests - both rules, the auto-pause side effect, and the
side-effect-free detect().
"""

from datetime import timedelta

from pacegate.core.anomaly import CONSECUTIVE_FAILURES, EXCESSIVE_CALLS
from pacegate.core.state import Mode, Pace


def _record(plane, agent, n, **kwargs):
    for _ in range(n):
        plane.budget.record_usage(agent, "d", cost=0.01, **kwargs)


class TestExcessiveCalls:
    def test_triggers_and_pauses(self, plane):
        plane.state.set_pace("full")
        plane.state.set_anomaly_threshold("max_calls_per_agent_per_hour", 3)
        _record(plane, "busy", 4)

        report = plane.anomaly.check_anomalies()

        assert report.auto_paused is True
        assert len(report.anomalies) == 1
        anomaly = report.anomalies[0]
        assert anomaly.type == EXCESSIVE_CALLS
        assert anomaly.agent == "busy"
        assert "4 calls" in anomaly.detail and "threshold: 3" in anomaly.detail
        assert plane.state.get_pace() is Pace.PAUSE

    def test_at_threshold_is_fine(self, plane):
        plane.state.set_pace("full")
        plane.state.set_anomaly_threshold("max_calls_per_agent_per_hour", 3)
        _record(plane, "busy", 3)

        report = plane.anomaly.check_anomalies()
        assert report.anomalies == []
        assert report.auto_paused is False
        assert plane.state.get_pace() is Pace.FULL

    def test_counts_per_agent(self, plane):
        plane.state.set_anomaly_threshold("max_calls_per_agent_per_hour", 3)
        _record(plane, "a", 2)
        _record(plane, "b", 2)
        assert plane.anomaly.detect() == []

    def test_calls_older_than_an_hour_ignored(self, plane, clock):
        plane.state.set_anomaly_threshold("max_calls_per_agent_per_hour", 3)
        _record(plane, "busy", 4, created_at=clock() - timedelta(minutes=61))
        assert plane.anomaly.detect() == []


class TestConsecutiveFailures:
    def test_blocked_streak(self, plane):
        plane.state.set_anomaly_threshold("max_consecutive_failures", 3)
        for _ in range(3):
            plane.audit.log_action("blocked-agent", "deploy", "d", blocked=True)

        anomalies = plane.anomaly.detect()
        assert [(a.type, a.agent) for a in anomalies] == [(CONSECUTIVE_FAILURES, "blocked-agent")]

    def test_below_threshold(self, plane):
        plane.state.set_anomaly_threshold("max_consecutive_failures", 3)
        for _ in range(2):
            plane.audit.log_action("blocked-agent", "deploy", "d", blocked=True)
        assert plane.anomaly.detect() == []

    def test_interleaved_allowed_actions_do_not_reset(self, plane):
        plane.state.set_anomaly_threshold("max_consecutive_failures", 3)
        for _ in range(3):
            plane.audit.log_action("flaky", "deploy", "d", blocked=True)
            plane.audit.log_action("flaky", "scan", "d", blocked=False)

        anomalies = plane.anomaly.detect()
        assert len(anomalies) == 1
        assert anomalies[0].agent == "flaky"


class TestSideEffects:
    def test_detect_has_no_side_effects(self, plane):
        plane.state.set_pace("full")
        plane.state.set_anomaly_threshold("max_calls_per_agent_per_hour", 1)
        _record(plane, "busy", 2)
        before = plane.audit.count()

        assert len(plane.anomaly.detect()) == 1
        assert plane.state.get_pace() is Pace.FULL
        assert plane.audit.count() == before

    def test_one_audit_entry_per_anomaly(self, plane):
        plane.state.set_pace("full")
        plane.state.set_anomaly_threshold("max_calls_per_agent_per_hour", 1)
        plane.state.set_anomaly_threshold("max_consecutive_failures", 1)
        _record(plane, "busy", 2)
        plane.audit.log_action("blocked-agent", "deploy", "d", blocked=True)

        report = plane.anomaly.check_anomalies()
        assert len(report.anomalies) == 2

        entries = [e for e in plane.audit.get_recent_logs() if e.agent == "anomaly-detector"]
        assert len(entries) == 2
        assert all(e.action == "auto_pause" and e.domain == "system" and not e.blocked for e in entries)
        assert any(e.detail.startswith("excessive_calls: busy") for e in entries)

    def test_never_escalates_or_touches_mode(self, plane):
        plane.state.set_pace("stop")
        plane.state.set_mode("sleep")
        plane.state.set_anomaly_threshold("max_calls_per_agent_per_hour", 1)
        _record(plane, "busy", 2)

        plane.anomaly.check_anomalies()
        assert plane.state.get_pace() is Pace.PAUSE
        assert plane.state.get_mode() is Mode.SLEEP

    def test_report_to_dict(self, plane):
        assert plane.anomaly.check_anomalies().to_dict() == {"anomalies": [], "auto_paused": False}
