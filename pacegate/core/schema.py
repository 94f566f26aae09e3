"""
Record types read back from the store.
"""

import sqlite3
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AuditEntry:
    id: int
    timestamp: str
    agent: str
    action: str
    domain: str
    detail: Optional[str]
    blocked: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'AuditEntry':
        return cls(
            id=row["id"],
            timestamp=row["timestamp"],
            agent=row["agent"],
            action=row["action"],
            domain=row["domain"],
            detail=row["detail"],
            blocked=bool(row["blocked"])
        )


@dataclass(frozen=True)
class UsageRecord:
    id: int
    agent: str
    domain: str
    node: str
    cost: float
    duration_ms: int
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'UsageRecord':
        return cls(
            id=row["id"],
            agent=row["agent"],
            domain=row["domain"],
            node=row["node"],
            cost=row["cost"],
            duration_ms=row["duration_ms"],
            created_at=row["created_at"]
        )


@dataclass
class Proposal:
    id: int
    domain: str
    title: str
    body: str
    effort: str
    recommendation: str
    status: str
    source: str
    created_at: str
    resolved_at: Optional[str] = None
    resolution_note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'Proposal':
        return cls(**{key: row[key] for key in row.keys()})


@dataclass(frozen=True)
class DossierTopic:
    id: str
    category: str
    topic: str
    frequency: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DossierEntry:
    id: int
    topic_id: str
    category: str
    findings: str
    relevance: str
    source: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> 'DossierEntry':
        return cls(**{key: row[key] for key in row.keys()})
