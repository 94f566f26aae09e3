"""
Smoke tests - file-backed database, configuration checks, error payloads
and the structured logger.
"""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from pacegate.core import config
from pacegate.core.control_plane import ControlPlane
from pacegate.core.db import Database, format_ts
from pacegate.core.errors import ValidationError
from pacegate.util.logging import StructuredLogger, logger


class TestDatabase:
    def test_file_database_initializes(self, tmp_path):
        db_path = tmp_path / "nested" / "pacegate.db"
        db = Database(str(db_path))
        db.init_db()
        try:
            assert db_path.exists()
            assert db.health_check() is True
        finally:
            db.close()

    def test_state_survives_reopen(self, tmp_path, mock_agent):
        db_path = str(tmp_path / "pacegate.db")
        first = ControlPlane(db_path=db_path, agent=mock_agent)
        first.state.set_pace("slow")
        first.audit.log_action("tester", "scan", "d")
        first.close()

        second = ControlPlane(db_path=db_path, agent=mock_agent)
        try:
            assert second.state.get_pace().value == "slow"
            assert len(second.audit.get_recent_logs()) == 1
        finally:
            second.close()

    def test_failed_statement_rolls_back(self):
        db = Database(":memory:")
        db.init_db()
        with pytest.raises(RuntimeError):
            with db.get_db() as conn:
                conn.execute("UPDATE system_state SET value = 'full' WHERE key = 'pace'")
                raise RuntimeError("abort")
        with db.get_db() as conn:
            assert conn.execute("SELECT value FROM system_state WHERE key = 'pace'").fetchone()[0] == "pause"
        db.close()

    def test_format_ts_converts_to_utc(self):
        local = datetime(2026, 3, 1, 14, 30, tzinfo=timezone(timedelta(hours=2)))
        assert format_ts(local) == "2026-03-01 12:30:00"


class TestConfig:
    def test_defaults_are_valid(self):
        assert config.validate_config() == []

    def test_invalid_values_reported(self):
        with patch.object(config, "AGENT_TRANSPORT", "smoke-signals"), \
                patch.object(config, "SCHEDULER_INTERVAL_SEC", 0):
            issues = config.validate_config()
        assert any("AGENT_TRANSPORT" in issue for issue in issues)
        assert any("SCHEDULER_INTERVAL_SEC" in issue for issue in issues)

    def test_memory_path_needs_no_directory(self):
        config.ensure_db_directory(":memory:")


class TestValidationError:
    def test_payload(self):
        err = ValidationError("pace", "warp", "Invalid pace", allowed=("full", "stop"))
        assert isinstance(err, ValueError)
        assert err.to_dict() == {
            "field": "pace",
            "value": "warp",
            "message": "Invalid pace",
            "allowed": ["full", "stop"],
        }

    def test_open_set_has_no_allowed(self):
        assert "allowed" not in ValidationError("cost", -1, "bad").to_dict()


class TestStructuredLogger:
    def test_failed_operations_warn(self, caplog):
        with caplog.at_level(logging.INFO, logger="pacegate"):
            logger.log_dispatch("bot", "scan", "site", "failed", {"error": "x" * 300})
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "Operation: dispatch, Status: failed" in record.getMessage()
        assert "x" * 101 not in record.getMessage()

    def test_policy_block(self, caplog):
        with caplog.at_level(logging.INFO, logger="pacegate"):
            logger.log_policy_block("bot", "deploy", "sleep", "full")
        assert "policy.block" in caplog.text
        assert "'mode': 'sleep'" in caplog.text

    def test_single_handler_per_name(self):
        StructuredLogger("pacegate.test")
        second = StructuredLogger("pacegate.test")
        assert len(second.logger.handlers) == 1
