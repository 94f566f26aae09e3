"""
Audit log tests - append and read back, newest first.
"""

import threading

from pacegate.core.schema import AuditEntry


class TestAuditLog:
    def test_log_action_returns_entry(self, plane):
        entry = plane.audit.log_action("tester", "scan", "example.com", detail="hello")
        assert isinstance(entry, AuditEntry)
        assert entry.id > 0
        assert entry.timestamp == "2026-03-01 12:00:00"
        assert entry.blocked is False
        assert entry.detail == "hello"

    def test_detail_optional_and_blocked_flag(self, plane):
        entry = plane.audit.log_action("tester", "deploy", "example.com", blocked=True)
        stored = plane.audit.get_recent_logs(1)[0]
        assert stored == entry
        assert stored.detail is None
        assert stored.blocked is True

    def test_recent_logs_newest_first(self, plane):
        for i in range(5):
            plane.audit.log_action("tester", f"action-{i}", "d")
        logs = plane.audit.get_recent_logs()
        assert [e.action for e in logs] == [f"action-{i}" for i in reversed(range(5))]

    def test_limit(self, plane):
        for i in range(10):
            plane.audit.log_action("tester", "scan", "d")
        assert len(plane.audit.get_recent_logs(3)) == 3

    def test_count(self, plane):
        plane.audit.log_action("a", "scan", "d")
        plane.audit.log_action("a", "deploy", "d", blocked=True)
        assert plane.audit.count() == 2
        assert plane.audit.count(blocked=True) == 1
        assert plane.audit.count(blocked=False) == 1

    def test_concurrent_appends_keep_unique_increasing_ids(self, plane):
        def worker(n):
            for _ in range(20):
                plane.audit.log_action(f"agent-{n}", "scan", "d")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = [e.id for e in plane.audit.get_recent_logs(1000)]
        assert len(ids) == 80
        assert ids == sorted(set(ids), reverse=True)
