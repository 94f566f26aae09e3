"""
Permission matrix tests - the full mode x action x pace table.
"""

import itertools

import pytest

from pacegate.core.allowlist import SLEEP_SAFE_ACTIONS, blocking_reason, is_allowed
from pacegate.core.state import Mode, Pace

ACTIONS = sorted(SLEEP_SAFE_ACTIONS) + ["deploy", "publish", "delete", "email", "purchase"]


def expected(mode: str, action: str, pace: str) -> bool:
    if pace == "stop":
        return False
    if mode == "sleep":
        return action in SLEEP_SAFE_ACTIONS
    if pace == "pause":
        return action == "scan"
    return True


class TestPermissionMatrix:
    """Exhaustive cross-product against the reference table."""

    @pytest.mark.parametrize(
        "mode,action,pace",
        list(itertools.product(["awake", "sleep"], ACTIONS, ["full", "slow", "pause", "stop"]))
    )
    def test_matches_table(self, mode, action, pace):
        assert is_allowed(mode, action, pace) == expected(mode, action, pace)

    def test_accepts_enum_members(self):
        assert is_allowed(Mode.AWAKE, "deploy", Pace.FULL) is True
        assert is_allowed(Mode.SLEEP, "deploy", Pace.FULL) is False

    def test_stop_overrides_sleep_safe_actions(self):
        for action in SLEEP_SAFE_ACTIONS:
            assert is_allowed("sleep", action, "stop") is False
            assert is_allowed("awake", action, "stop") is False

    def test_sleep_ignores_pace(self):
        for pace in ("full", "slow", "pause"):
            assert is_allowed("sleep", "research", pace) is True
            assert is_allowed("sleep", "deploy", pace) is False


class TestFailClosed:
    """Unknown values are never allowed."""

    @pytest.mark.parametrize("mode,pace", [
        ("awake", "turbo"),
        ("dreaming", "full"),
        ("", ""),
        (None, None),
        ("AWAKE", "FULL"),
    ])
    def test_unknown_values(self, mode, pace):
        assert is_allowed(mode, "scan", pace) is False


class TestBlockingReason:
    def test_allowed_has_no_reason(self):
        assert blocking_reason("awake", "deploy", "full") is None

    def test_stop_reason(self):
        assert "stop" in blocking_reason("awake", "scan", "stop")

    def test_sleep_reason_names_action(self):
        reason = blocking_reason(Mode.SLEEP, "deploy", Pace.FULL)
        assert "deploy" in reason
        assert "mode=sleep" in reason
