"""Activity repository — append-only writes to the bot_activities table."""

import json
from typing import Optional

from autotrade.models.activity import ActivityRecord
from autotrade.repos.db import get_connection


class ActivityRepo:
    """Data access layer for the audit trail.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert(self, record: ActivityRecord) -> int:
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO bot_activities
                    (bot_id, owner_id, kind, title, description, status, data, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.bot_id,
                    record.owner_id,
                    record.kind.value,
                    record.title,
                    record.description,
                    record.status.value,
                    json.dumps(record.data, default=str),
                    record.created_at,
                ),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def get_activities(
        self,
        limit: int = 50,
        bot_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> dict:
        """Return the newest activities, optionally filtered.

        Returns:
            ``{"activities": [...], "total": int}``
        """
        conn = get_connection(self._db_path)
        try:
            conditions: list[str] = []
            params: list = []
            for column, value in (("bot_id", bot_id), ("owner_id", owner_id), ("kind", kind)):
                if value:
                    conditions.append(f"{column} = ?")
                    params.append(value)

            where_clause = ""
            if conditions:
                where_clause = "WHERE " + " AND ".join(conditions)

            rows = conn.execute(
                f"SELECT * FROM bot_activities {where_clause} ORDER BY id DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM bot_activities {where_clause}",
                params,
            ).fetchone()[0]

            activities = []
            for row in rows:
                item = dict(row)
                item["data"] = json.loads(item["data"] or "{}")
                activities.append(item)
            return {"activities": activities, "total": total}
        finally:
            conn.close()
