"""
Dispatch gateway - the single choke point between callers and the external
agent.

Every task is checked against the permission matrix using the current pace
and mode. Denied tasks leave one blocked audit entry and never reach the
agent. Allowed tasks leave a "dispatching" entry before the call and a
completion or failure entry after it. Agent failures come back as data.
"""

import json
import re
import sqlite3
import time
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional, Union

from .agent import AgentOptions, AgentResult, BaseAgent
from ..core.allowlist import is_allowed
from ..core.audit import AuditLog
from ..core.budget import BudgetTracker
from ..core.config import DEFAULT_NODE
from ..core.dossier import Dossier
from ..core.errors import ValidationError
from ..core.proposals import Created, ProposalStore
from ..core.state import StateStore
from ..util.logging import logger

BLOCKED_BY_ALLOWLIST = "Blocked by allowlist"
BLOCKED_BY_BUDGET = "Budget ceiling reached"
MESSAGE_PREVIEW_CHARS = 100

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


@dataclass
class DispatchTask:
    action: str
    domain: str
    message: str
    agent_name: Optional[str] = None
    options: Optional[Union[AgentOptions, Dict[str, Any]]] = None

    def resolved_agent_name(self) -> str:
        return self.agent_name or f"openclaw:{self.action}"

    def resolved_options(self) -> AgentOptions:
        if isinstance(self.options, AgentOptions):
            return self.options
        return AgentOptions.from_dict(self.options)


@dataclass
class DispatchResult:
    ok: bool
    allowed: bool
    response: Optional[str] = None
    error: Optional[str] = None
    duration_ms: int = 0
    node: Optional[str] = None
    agent: Optional[str] = None
    raw: Optional[Any] = None
    ingested: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DispatchGateway:
    def __init__(self, state: StateStore, audit: AuditLog, agent: BaseAgent,
                 budget: Optional[BudgetTracker] = None, enforce_budget: bool = False):
        self.state = state
        self.audit = audit
        self.agent = agent
        self.budget = budget
        self.enforce_budget = enforce_budget

    def dispatch(self, task: DispatchTask) -> DispatchResult:
        agent_name = task.resolved_agent_name()
        options = task.resolved_options()
        node = options.node or DEFAULT_NODE

        pace = self.state.get_pace()
        mode = self.state.get_mode()

        if not is_allowed(mode, task.action, pace):
            self.audit.log_action(
                agent=agent_name,
                action=task.action,
                domain=task.domain,
                detail=f"Blocked by allowlist (mode={mode.value}, pace={pace.value})",
                blocked=True
            )
            logger.log_policy_block(agent_name, task.action, mode.value, pace.value)
            return DispatchResult(ok=False, allowed=False, error=BLOCKED_BY_ALLOWLIST,
                                  node=node, agent=agent_name)

        if self.enforce_budget and self.budget is not None:
            status = self.budget.get_budget_status()
            if not status["within_budget"]:
                self.audit.log_action(
                    agent=agent_name,
                    action=task.action,
                    domain=task.domain,
                    detail=f"Blocked by budget (spent={status['spent']:.2f}, ceiling={status['ceiling']:.2f})",
                    blocked=True
                )
                logger.log_policy_block(agent_name, task.action, mode.value, pace.value, reason="budget")
                return DispatchResult(ok=False, allowed=False, error=BLOCKED_BY_BUDGET,
                                      node=node, agent=agent_name)

        self.audit.log_action(
            agent=agent_name,
            action=task.action,
            domain=task.domain,
            detail=f"Dispatching: {task.message[:MESSAGE_PREVIEW_CHARS]}..."
        )
        logger.log_dispatch(agent_name, task.action, task.domain, "started", {"node": node})

        result = self._call_agent(task.message, options)

        self.audit.log_action(
            agent=agent_name,
            action=task.action,
            domain=task.domain,
            detail=(f"Completed in {result.duration_ms}ms" if result.ok else f"Failed: {result.error}")
        )
        logger.log_dispatch(
            agent_name, task.action, task.domain,
            "success" if result.ok else "failed",
            {"duration_ms": result.duration_ms, "error": result.error}
        )

        if self.budget is not None:
            self.budget.record_usage(
                agent=agent_name,
                domain=task.domain,
                node=node,
                cost=self.state.get_cost_per_call(),
                duration_ms=result.duration_ms
            )

        return DispatchResult(
            ok=result.ok,
            allowed=True,
            response=result.response,
            error=result.error,
            duration_ms=result.duration_ms,
            node=node,
            agent=agent_name,
            raw=result.raw
        )

    def _call_agent(self, message: str, options: AgentOptions) -> AgentResult:
        # Collaborators report failures as results; anything raised is folded in too
        start = time.monotonic()
        try:
            return self.agent.call(message, options)
        except Exception as e:
            return AgentResult(
                ok=False,
                error=f"{e.__class__.__name__}: {e}",
                duration_ms=int((time.monotonic() - start) * 1000)
            )


def parse_agent_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode an agent reply as a JSON object, unwrapping a ```json fence."""
    if not text:
        return None
    match = _JSON_FENCE_RE.search(text)
    if match:
        text = match.group(1)
    try:
        parsed = json.loads(text.strip())
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _text(value: Any) -> Optional[str]:
    """Scalar agent field as stripped text; None for blanks, booleans and containers."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = str(value).strip()
    return text or None


def ingest_response(result: DispatchResult, domain: str, proposals: ProposalStore,
                    dossier: Optional[Dossier] = None, source: Optional[str] = None,
                    topic_id: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
    """
    Turn structured agent output into proposals and dossier findings.

    Proposals come from a "proposals" list, a "suggested_proposal" object, or
    a top-level object with title and body. Findings become one dossier entry.
    Output that is not a JSON object is ignored. Malformed items are skipped
    and rejected ones are reported under "errors"; nothing here raises.
    """
    summary: Dict[str, Any] = {
        "proposals_created": [],
        "proposals_deduplicated": [],
        "dossier_entry": None,
        "errors": []
    }
    if not result.ok:
        return summary

    parsed = parse_agent_json(result.response)
    if parsed is None:
        return summary

    source = source or f"{result.agent or 'openclaw'}@{result.node or DEFAULT_NODE}"

    findings = _text(parsed.get("findings"))
    if dossier is not None and findings:
        relevance = _text(parsed.get("relevance"))
        try:
            entry = dossier.add_entry(
                topic_id=_text(parsed.get("topic_id")) or topic_id or "unknown",
                category=category or _text(parsed.get("category")) or "general",
                findings=findings,
                relevance=relevance if relevance in ("high", "medium", "low") else "medium",
                source=source
            )
            summary["dossier_entry"] = entry.id
        except (ValidationError, sqlite3.Error) as e:
            logger.warning(f"Skipped agent findings from {source}: {e}")
            summary["errors"].append(f"findings: {e}")

    listed = parsed.get("proposals")
    candidates: List[Any] = list(listed) if isinstance(listed, list) else []
    if isinstance(parsed.get("suggested_proposal"), dict):
        candidates.append(parsed["suggested_proposal"])
    if "title" in parsed and "body" in parsed:
        candidates.append(parsed)

    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        title = _text(candidate.get("title"))
        body = _text(candidate.get("body"))
        if not title or not body:
            continue
        try:
            created = proposals.create_proposal(
                domain=domain,
                title=title,
                body=body,
                effort=_text(candidate.get("effort")) or "unknown",
                recommendation=_text(candidate.get("recommendation")) or "none",
                source=source
            )
        except (ValidationError, sqlite3.Error) as e:
            logger.warning(f"Skipped agent proposal '{title[:50]}' from {source}: {e}")
            summary["errors"].append(f"proposal '{title}': {e}")
            continue
        key = "proposals_created" if isinstance(created, Created) else "proposals_deduplicated"
        summary[key].append(created.proposal.id)

    result.ingested = summary
    return summary
