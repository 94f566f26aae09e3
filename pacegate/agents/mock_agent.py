"""
Mock agent that records every call and returns a canned result.
Used for testing, development, and when no agent binary is installed.
"""

from typing import List, Optional, Tuple

from .agent import AgentOptions, AgentResult, BaseAgent, normalize_response


class MockAgent(BaseAgent):
    def __init__(self, agent_id: str = "mock", reply: str = "ok", ok: bool = True,
                 error: Optional[str] = None, duration_ms: int = 5,
                 raise_error: Optional[Exception] = None):
        super().__init__(agent_id)
        self.reply = reply
        self.ok = ok
        self.error = error
        self.duration_ms = duration_ms
        self.raise_error = raise_error
        self.calls: List[Tuple[str, AgentOptions]] = []

    @property
    def called(self) -> bool:
        return bool(self.calls)

    def call(self, message: str, options: Optional[AgentOptions] = None) -> AgentResult:
        self.calls.append((message, options or AgentOptions()))

        if self.raise_error is not None:
            raise self.raise_error

        if not self.ok:
            return AgentResult(ok=False, error=self.error or "Mock agent failure", duration_ms=self.duration_ms)

        response, raw = normalize_response(self.reply)
        return AgentResult(ok=True, response=response, duration_ms=self.duration_ms, raw=raw)
