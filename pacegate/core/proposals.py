"""
Proposal store - human-reviewable suggestions with a pending -> resolved
lifecycle.

Creation is deduplicated against open proposals (pending or greenlit) in the
same domain with a case-insensitive title match. The first submission wins;
later duplicates are absorbed and reported back as Deduplicated. Once a
proposal is resolved the same title may be proposed again.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Union

from .db import Database, format_ts, utc_now
from .errors import ValidationError
from .schema import Proposal
from ..util.logging import logger


class ProposalStatus(str, Enum):
    PENDING = "pending"
    GREENLIT = "greenlit"
    MODIFIED = "modified"
    REJECTED = "rejected"
    SHELVED = "shelved"
    EXPIRED = "expired"
    SHIPPED = "shipped"


RESOLUTION_STATUSES = [s.value for s in ProposalStatus if s is not ProposalStatus.PENDING]
OPEN_STATUSES = (ProposalStatus.PENDING.value, ProposalStatus.GREENLIT.value)


@dataclass(frozen=True)
class Created:
    proposal: Proposal
    deduplicated: bool = field(default=False, init=False)


@dataclass(frozen=True)
class Deduplicated:
    proposal: Proposal
    deduplicated: bool = field(default=True, init=False)


CreateProposalResult = Union[Created, Deduplicated]


def parse_resolution(status: Union[str, ProposalStatus]) -> ProposalStatus:
    """Coerce a resolution status, rejecting pending and unknown values."""
    value = status.value if isinstance(status, ProposalStatus) else status
    if value not in RESOLUTION_STATUSES:
        raise ValidationError(
            "status", status,
            f'Invalid resolution status: "{value}". Must be one of: {", ".join(RESOLUTION_STATUSES)}',
            allowed=RESOLUTION_STATUSES
        )
    return ProposalStatus(value)


class ProposalStore:
    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def find_duplicate(self, domain: str, title: str) -> Optional[Proposal]:
        """Most recent open proposal with this domain and title, ignoring case."""
        # SQLite LOWER() folds ASCII only; compare with casefold() instead
        wanted = title.casefold()
        with self.db.get_db() as conn:
            rows = conn.execute(
                """
                SELECT * FROM proposals
                WHERE domain = ? AND status IN (?, ?)
                ORDER BY created_at DESC, id DESC
                """,
                (domain,) + OPEN_STATUSES
            ).fetchall()
        for row in rows:
            if row["title"].casefold() == wanted:
                return Proposal.from_row(row)
        return None

    def create_proposal(self, domain: str, title: str, body: str,
                        effort: str = "unknown", recommendation: str = "none",
                        source: str = "api") -> CreateProposalResult:
        for name, value in (("domain", domain), ("title", title), ("body", body)):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(name, value, f"{name} is required")

        # Lookup and insert share one lock hold so concurrent submissions
        # of the same title cannot both insert
        with self.db.get_db() as conn:
            existing = self.find_duplicate(domain, title)
            if existing is not None:
                logger.log_proposal("create", existing.id, domain, title, status="deduplicated")
                return Deduplicated(existing)

            cursor = conn.execute(
                """
                INSERT INTO proposals (domain, title, body, effort, recommendation, status, source, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (domain, title, body, effort, recommendation,
                 ProposalStatus.PENDING.value, source, format_ts(self.clock()))
            )
            proposal_id = cursor.lastrowid

        proposal = self.get_proposal(proposal_id)
        logger.log_proposal("create", proposal.id, domain, title)
        return Created(proposal)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        with self.db.get_db() as conn:
            row = conn.execute("SELECT * FROM proposals WHERE id = ?", (proposal_id,)).fetchone()
        return Proposal.from_row(row) if row else None

    def list_proposals(self, status: Optional[str] = None, domain: Optional[str] = None,
                       limit: Optional[int] = None) -> List[Proposal]:
        """Newest first; filters are AND-combined."""
        conditions = []
        params: list = []

        if status:
            conditions.append("status = ?")
            params.append(status.value if isinstance(status, ProposalStatus) else status)
        if domain:
            conditions.append("domain = ?")
            params.append(domain)

        sql = "SELECT * FROM proposals"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY created_at DESC, id DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        with self.db.get_db() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Proposal.from_row(row) for row in rows]

    def resolve_proposal(self, proposal_id: int, status: Union[str, ProposalStatus],
                         note: Optional[str] = None) -> Optional[Proposal]:
        """
        Resolve a proposal. The status is validated before anything is written.
        Returns the updated row, or None when the id does not exist.
        """
        resolution = parse_resolution(status)

        with self.db.get_db() as conn:
            cursor = conn.execute(
                """
                UPDATE proposals
                SET status = ?, resolution_note = ?, resolved_at = ?
                WHERE id = ?
                """,
                (resolution.value, note, format_ts(self.clock()), proposal_id)
            )
            if cursor.rowcount == 0:
                return None

        proposal = self.get_proposal(proposal_id)
        logger.log_proposal(f"resolve.{resolution.value}", proposal.id, proposal.domain, proposal.title)
        return proposal

    def count_by_status(self) -> dict:
        with self.db.get_db() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS cnt FROM proposals GROUP BY status"
            ).fetchall()
        return {row["status"]: row["cnt"] for row in rows}
