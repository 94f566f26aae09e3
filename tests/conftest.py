"""
Shared fixtures: a fresh in-memory control plane per test with a controllable
clock and a recording mock agent.
"""

import json
import random
from datetime import datetime, timedelta, timezone

import pytest

from pacegate.agents.mock_agent import MockAgent
from pacegate.core.control_plane import ControlPlane


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_agent():
    return MockAgent(reply='{"reply": "done"}')


@pytest.fixture
def topics_file(tmp_path):
    path = tmp_path / "topics.json"
    path.write_text(json.dumps({
        "topics": [
            {"id": "alpha", "category": "revenue", "topic": "Alpha topic", "frequency": "weekly"},
            {"id": "beta", "category": "growth", "topic": "Beta topic", "frequency": "weekly"},
            {"id": "gamma", "category": "trends", "topic": "Gamma topic"}
        ],
        "references": [
            {"name": "Ref One", "role": "producer", "note": "example"}
        ]
    }))
    return str(path)


@pytest.fixture
def plane(clock, mock_agent, topics_file):
    """In-memory control plane; nothing touches the filesystem database."""
    cp = ControlPlane(
        db_path=":memory:",
        agent=mock_agent,
        clock=clock,
        local_clock=lambda: datetime(2026, 3, 1, 12, 0, 0),
        topics_path=topics_file,
        enforce_budget=False,
        rng=random.Random(7)
    )
    yield cp
    cp.close()
