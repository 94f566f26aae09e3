"""
Research dossier - append-only findings keyed by topic, plus topic rotation
so overnight research does not keep revisiting the same subject.

Topics and references are read-only reference data loaded from JSON.
"""

import json
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import DOSSIER_TOPICS_PATH
from .db import Database, format_ts, utc_now
from .errors import ValidationError
from .schema import DossierEntry, DossierTopic

RECENT_WINDOW = timedelta(days=7)
RELEVANCE_LEVELS = ["high", "medium", "low"]


class Dossier:
    def __init__(self, db: Database, topics_path: Optional[str] = None,
                 clock: Callable[[], datetime] = utc_now,
                 rng: Optional[random.Random] = None):
        self.db = db
        self.topics_path = topics_path or DOSSIER_TOPICS_PATH
        self.clock = clock
        self.rng = rng or random.Random()
        self._reference_data: Optional[Dict] = None

    def _load(self) -> Dict:
        if self._reference_data is None:
            path = Path(self.topics_path)
            if path.exists():
                with open(path, "r", encoding="utf-8") as f:
                    self._reference_data = json.load(f)
            else:
                self._reference_data = {"topics": [], "references": []}
        return self._reference_data

    def get_topics(self) -> List[DossierTopic]:
        return [
            DossierTopic(
                id=t["id"],
                category=t["category"],
                topic=t["topic"],
                frequency=t.get("frequency")
            )
            for t in self._load().get("topics", [])
        ]

    def get_references(self) -> List[Dict]:
        return list(self._load().get("references", []))

    def add_entry(self, topic_id: str, category: str, findings: str,
                  relevance: Optional[str] = None, source: Optional[str] = None) -> DossierEntry:
        """Append a finding. topic_id is not checked against the topic list."""
        if not findings or not str(findings).strip():
            raise ValidationError("findings", findings, "findings is required")
        relevance = relevance or "medium"
        if relevance not in RELEVANCE_LEVELS:
            raise ValidationError(
                "relevance", relevance,
                f'Invalid relevance: "{relevance}". Must be one of: {", ".join(RELEVANCE_LEVELS)}',
                allowed=RELEVANCE_LEVELS
            )

        with self.db.get_db() as conn:
            cursor = conn.execute(
                """
                INSERT INTO dossier_entries (topic_id, category, findings, relevance, source, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (topic_id, category, findings, relevance, source or "agent", format_ts(self.clock()))
            )
            row = conn.execute(
                "SELECT * FROM dossier_entries WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return DossierEntry.from_row(row)

    def get_entries(self, topic_id: Optional[str] = None, category: Optional[str] = None,
                    limit: Optional[int] = None) -> List[DossierEntry]:
        sql = "SELECT * FROM dossier_entries WHERE 1=1"
        params: list = []
        if topic_id:
            sql += " AND topic_id = ?"
            params.append(topic_id)
        if category:
            sql += " AND category = ?"
            params.append(category)
        sql += " ORDER BY created_at DESC, id DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        with self.db.get_db() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [DossierEntry.from_row(row) for row in rows]

    def get_recent_entries(self, limit: int = 20) -> List[DossierEntry]:
        return self.get_entries(limit=limit)

    def pick_next_topic(self) -> Optional[DossierTopic]:
        """
        Choose the next topic to research.

        Topics with no entry in the last 7 days come first (random pick among
        them). When every topic is recent, the one researched longest ago wins.
        """
        topics = self.get_topics()
        if not topics:
            return None

        since = format_ts(self.clock() - RECENT_WINDOW)
        with self.db.get_db() as conn:
            rows = conn.execute(
                """
                SELECT topic_id, MAX(created_at) AS last_researched
                FROM dossier_entries
                WHERE created_at >= ?
                GROUP BY topic_id
                ORDER BY last_researched ASC
                """,
                (since,)
            ).fetchall()

        recent = {row["topic_id"] for row in rows}
        unresearched = [t for t in topics if t.id not in recent]
        if unresearched:
            return self.rng.choice(unresearched)

        by_id = {t.id: t for t in topics}
        for row in rows:
            if row["topic_id"] in by_id:
                return by_id[row["topic_id"]]
        return topics[0]
