"""
External agent collaborator interface.
The agent itself is opaque: it takes a free-text instruction and returns text
or a JSON envelope. Implementations must never raise for agent failures;
they return an AgentResult with ok=False instead.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

from ..core.config import AGENT_DEFAULT_TIMEOUT_SEC
from ..core.errors import ValidationError

THINKING_LEVELS = ["off", "minimal", "low", "medium", "high"]

# Envelope fields checked in order for the agent's reply text
RESPONSE_FIELDS = ("reply", "response", "text", "content")


@dataclass
class AgentOptions:
    """Options bag passed through to the agent."""
    agent: Optional[str] = None
    timeout_seconds: int = AGENT_DEFAULT_TIMEOUT_SEC
    model: Optional[str] = None
    thinking: Optional[str] = None
    session_id: Optional[str] = None
    node: Optional[str] = None

    def __post_init__(self):
        if self.thinking is not None and self.thinking not in THINKING_LEVELS:
            raise ValidationError(
                "thinking", self.thinking,
                f'Invalid thinking level: "{self.thinking}". Must be one of: {", ".join(THINKING_LEVELS)}',
                allowed=THINKING_LEVELS
            )
        if isinstance(self.timeout_seconds, bool) or not isinstance(self.timeout_seconds, (int, float)) \
                or self.timeout_seconds <= 0:
            raise ValidationError("timeout_seconds", self.timeout_seconds, "timeout_seconds must be a positive number")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AgentOptions':
        """Build from a dict using snake_case or camelCase keys."""
        if not data:
            return cls()
        aliases = {
            "timeoutSeconds": "timeout_seconds",
            "sessionId": "session_id",
        }
        kwargs = {}
        for key, value in data.items():
            name = aliases.get(key, key)
            if name in cls.__dataclass_fields__ and value is not None:
                kwargs[name] = value
        return cls(**kwargs)


@dataclass
class AgentResult:
    """Normalised outcome of one agent call."""
    ok: bool
    response: Optional[str] = None
    error: Optional[str] = None
    duration_ms: int = 0
    raw: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_response(stdout: str) -> Tuple[str, Optional[Any]]:
    """
    Extract reply text from agent output.

    JSON envelopes are preferred; the first non-empty of reply, response,
    text or content wins. Anything that does not decode is returned as
    stripped raw text.
    """
    text = stdout.strip()
    try:
        parsed = json.loads(stdout)
    except (ValueError, TypeError):
        return text, None

    if isinstance(parsed, dict):
        for key in RESPONSE_FIELDS:
            value = parsed.get(key)
            if value:
                return value if isinstance(value, str) else json.dumps(value), parsed
    return text, parsed


class BaseAgent(ABC):
    """
    Abstract base for agent collaborators.
    All agents must implement call().
    """

    def __init__(self, agent_id: str):
        self.agent_id = agent_id

    @abstractmethod
    def call(self, message: str, options: Optional[AgentOptions] = None) -> AgentResult:
        """
        Send an instruction to the agent.

        Args:
            message: Free-text instruction
            options: Agent selection, timeout and model options

        Returns:
            AgentResult; failures are reported with ok=False, never raised
        """
        pass

    def get_status(self) -> Dict[str, Any]:
        """Get current status of this agent."""
        return {
            "agent_id": self.agent_id,
            "agent_type": self.__class__.__name__,
            "status": "ready"
        }
