"""
HTTP agent: posts the instruction to an agent gateway on a remote node.
Used when the agent runs on another machine instead of as a local CLI.
"""

import time
from typing import Optional

import requests

from .agent import AgentOptions, AgentResult, BaseAgent, normalize_response
from ..core.config import AGENT_HTTP_URL, AGENT_MAX_OUTPUT_BYTES


class HttpAgent(BaseAgent):
    def __init__(self, agent_id: str = "openclaw-http", url: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        super().__init__(agent_id)
        self.url = url or AGENT_HTTP_URL
        self.session = session or requests.Session()

    def call(self, message: str, options: Optional[AgentOptions] = None) -> AgentResult:
        options = options or AgentOptions()
        payload = {"message": message}
        payload.update({k: v for k, v in options.to_dict().items() if v is not None})

        start = time.monotonic()
        try:
            resp = self.session.post(self.url, json=payload, timeout=options.timeout_seconds)
            resp.raise_for_status()
        except requests.Timeout:
            return AgentResult(
                ok=False,
                error=f"Agent timed out after {options.timeout_seconds}s",
                duration_ms=int((time.monotonic() - start) * 1000)
            )
        except requests.RequestException as e:
            return AgentResult(
                ok=False,
                error=f"Agent request failed: {e}",
                duration_ms=int((time.monotonic() - start) * 1000)
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        if len(resp.content) > AGENT_MAX_OUTPUT_BYTES:
            return AgentResult(
                ok=False,
                error=f"Agent output exceeded {AGENT_MAX_OUTPUT_BYTES} bytes",
                duration_ms=duration_ms
            )

        response, raw = normalize_response(resp.text)
        return AgentResult(ok=True, response=response, duration_ms=duration_ms, raw=raw)

    def get_status(self):
        status = super().get_status()
        status["url"] = self.url
        return status
