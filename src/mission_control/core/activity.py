"""Append-only activity log."""

import logging
import sqlite3

from mission_control.db.models import ACTIVITY_TYPES, Activity, parse_dt
from mission_control.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


def log_activity(
    db: sqlite3.Connection,
    activity_type: str,
    message: str,
    workspace_id: str | None = None,
    agent_id: str | None = None,
    task_id: str | None = None,
) -> int:
    """Append one activity record. The caller owns the transaction."""
    if activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"Unknown activity type: {activity_type}")
    cur = db.execute(
        """INSERT INTO activities (workspace_id, type, agent_id, task_id, message)
           VALUES (?, ?, ?, ?, ?)""",
        (workspace_id, activity_type, agent_id, task_id, message),
    )
    logger.debug("activity %s: %s", activity_type, message)
    return cur.lastrowid


def list_activities(
    db: sqlite3.Connection,
    workspace_id: str | None = None,
    activity_type: str | None = None,
    limit: int | None = None,
) -> list[Activity]:
    """List activities newest first, optionally filtered by workspace and type."""
    if limit is None:
        limit = DEFAULT_LIMIT
    if limit <= 0:
        raise ValidationError(f"Limit must be positive, got {limit}")
    if activity_type is not None and activity_type not in ACTIVITY_TYPES:
        raise ValidationError(f"Unknown activity type: {activity_type}")

    query = "SELECT * FROM activities WHERE 1=1"
    params: list = []

    if workspace_id:
        query += " AND workspace_id = ?"
        params.append(workspace_id)

    if activity_type:
        query += " AND type = ?"
        params.append(activity_type)

    query += " ORDER BY id DESC LIMIT ?"
    params.append(limit)
    rows = db.execute(query, params).fetchall()
    return [_row_to_activity(r) for r in rows]


def list_task_activities(db: sqlite3.Connection, task_id: str) -> list[Activity]:
    """Get the history of a single task, oldest first."""
    rows = db.execute(
        "SELECT * FROM activities WHERE task_id = ? ORDER BY id",
        (task_id,),
    ).fetchall()
    return [_row_to_activity(r) for r in rows]


def _row_to_activity(row: sqlite3.Row) -> Activity:
    return Activity(
        id=row["id"],
        type=row["type"],
        message=row["message"],
        workspace_id=row["workspace_id"],
        agent_id=row["agent_id"],
        task_id=row["task_id"],
        created_at=parse_dt(row["created_at"]),
    )
