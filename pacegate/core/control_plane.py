"""
Control plane wiring - one explicit instance owning the database and every
component built over it. Tests build a fresh in-memory instance each; the API
holds one for the process lifetime.
"""

import random
from datetime import datetime
from typing import Callable, Optional

from .anomaly import AnomalyDetector
from .audit import AuditLog
from .budget import BudgetTracker
from .config import AGENT_TRANSPORT, BUDGET_GUARD_ENABLED, DB_PATH
from .db import Database, utc_now
from .dossier import Dossier
from .proposals import ProposalStore
from .sleep_scheduler import SleepScheduler
from .state import StateStore
from ..agents.agent import BaseAgent
from ..agents.dispatch import DispatchGateway, DispatchResult, DispatchTask, ingest_response
from ..util.logging import logger


def build_agent(transport: Optional[str] = None) -> BaseAgent:
    """Agent collaborator for the configured transport."""
    transport = transport or AGENT_TRANSPORT
    if transport == "cli":
        from ..agents.cli_agent import CliAgent
        return CliAgent()
    elif transport == "http":
        from ..agents.http_agent import HttpAgent
        return HttpAgent()
    elif transport == "mock":
        from ..agents.mock_agent import MockAgent
        return MockAgent()
    raise ValueError(f"Unknown agent transport: {transport}")


class ControlPlane:
    def __init__(self, db_path: Optional[str] = None, agent: Optional[BaseAgent] = None,
                 clock: Callable[[], datetime] = utc_now,
                 local_clock: Callable[[], datetime] = datetime.now,
                 topics_path: Optional[str] = None,
                 enforce_budget: Optional[bool] = None,
                 scheduler_interval_sec: Optional[float] = None,
                 rng: Optional[random.Random] = None):
        self.clock = clock
        self.db = Database(db_path or DB_PATH)
        self.db.init_db()

        self.state = StateStore(self.db)
        self.audit = AuditLog(self.db, clock)
        self.budget = BudgetTracker(self.db, self.state, clock)
        self.anomaly = AnomalyDetector(self.db, self.state, self.audit, clock)
        self.proposals = ProposalStore(self.db, clock)
        self.dossier = Dossier(self.db, topics_path, clock, rng)
        self.scheduler = SleepScheduler(self.state, self.audit, local_clock, scheduler_interval_sec)

        self.agent = agent or build_agent()
        self.gateway = DispatchGateway(
            self.state,
            self.audit,
            self.agent,
            budget=self.budget,
            enforce_budget=BUDGET_GUARD_ENABLED if enforce_budget is None else enforce_budget
        )
        logger.info(f"Control plane ready (db={self.db.path}, agent={self.agent.__class__.__name__})")

    def dispatch(self, task: DispatchTask, ingest: bool = False,
                 topic_id: Optional[str] = None, category: Optional[str] = None) -> DispatchResult:
        """Dispatch a task; optionally turn its output into proposals and findings."""
        result = self.gateway.dispatch(task)
        if ingest and result.ok:
            ingest_response(result, task.domain, self.proposals, self.dossier,
                            topic_id=topic_id, category=category)
        return result

    def close(self):
        self.scheduler.stop()
        self.db.close()
