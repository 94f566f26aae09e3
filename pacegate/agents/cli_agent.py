"""
Subprocess-backed agent: runs the agent CLI once per call.

    <bin> agent --message M --json [--agent A] [--model X] [--thinking T]
          [--session-id S] --timeout-seconds N

The process gets a hard timeout slightly longer than the one the CLI is asked
to honour, so a hung agent still ends with a structured failure.
"""

import subprocess
import time
from typing import List, Optional

from .agent import AgentOptions, AgentResult, BaseAgent, normalize_response
from ..core.config import AGENT_BIN, AGENT_MAX_OUTPUT_BYTES
from ..util.logging import logger

# Grace period on top of the agent's own timeout
PROCESS_TIMEOUT_GRACE_SEC = 10


class CliAgent(BaseAgent):
    def __init__(self, agent_id: str = "openclaw", binary: Optional[str] = None,
                 max_output_bytes: Optional[int] = None):
        super().__init__(agent_id)
        self.binary = binary or AGENT_BIN
        self.max_output_bytes = max_output_bytes or AGENT_MAX_OUTPUT_BYTES

    def build_args(self, message: str, options: AgentOptions) -> List[str]:
        args = [self.binary, "agent", "--message", message, "--json"]
        if options.agent:
            args += ["--agent", options.agent]
        if options.model:
            args += ["--model", options.model]
        if options.thinking:
            args += ["--thinking", options.thinking]
        if options.session_id:
            args += ["--session-id", options.session_id]
        args += ["--timeout-seconds", str(options.timeout_seconds)]
        return args

    def call(self, message: str, options: Optional[AgentOptions] = None) -> AgentResult:
        options = options or AgentOptions()
        args = self.build_args(message, options)
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=options.timeout_seconds + PROCESS_TIMEOUT_GRACE_SEC
            )
        except subprocess.TimeoutExpired:
            error = f"Agent timed out after {options.timeout_seconds}s"
            logger.warning(error)
            return AgentResult(ok=False, error=error, duration_ms=elapsed_ms())
        except OSError as e:
            error = f"Failed to start agent '{self.binary}': {e}"
            logger.error(error)
            return AgentResult(ok=False, error=error, duration_ms=elapsed_ms())

        duration_ms = elapsed_ms()
        stdout = completed.stdout or ""

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            error = f"Agent exited with code {completed.returncode}"
            if stderr:
                error += f": {stderr[:500]}"
            return AgentResult(ok=False, error=error, duration_ms=duration_ms)

        if len(stdout.encode("utf-8")) > self.max_output_bytes:
            return AgentResult(
                ok=False,
                error=f"Agent output exceeded {self.max_output_bytes} bytes",
                duration_ms=duration_ms
            )

        response, raw = normalize_response(stdout)
        return AgentResult(ok=True, response=response, duration_ms=duration_ms, raw=raw)
