"""Per-agent notifications and their delivery tracking."""

import logging
import sqlite3

from mission_control.db.engine import transaction
from mission_control.db.models import Notification, parse_dt
from mission_control.errors import NotFoundError

logger = logging.getLogger(__name__)


def create_notification(
    db: sqlite3.Connection,
    agent_id: str,
    content: str,
    task_id: str | None = None,
    workspace_id: str | None = None,
) -> int:
    """Queue an undelivered notification for an agent. The caller owns the transaction."""
    if not db.execute("SELECT 1 FROM agents WHERE id = ?", (agent_id,)).fetchone():
        raise NotFoundError(f"Agent not found: {agent_id}")
    cur = db.execute(
        """INSERT INTO notifications (workspace_id, agent_id, content, task_id, delivered)
           VALUES (?, ?, ?, ?, 0)""",
        (workspace_id, agent_id, content, task_id),
    )
    logger.info("Notification %s queued for %s", cur.lastrowid, agent_id)
    return cur.lastrowid


def get_notification(db: sqlite3.Connection, notification_id: int) -> Notification | None:
    row = db.execute(
        "SELECT * FROM notifications WHERE id = ?", (notification_id,)
    ).fetchone()
    if not row:
        return None
    return _row_to_notification(row)


def list_undelivered(db: sqlite3.Connection, agent_id: str) -> list[Notification]:
    """Pending notifications for an agent, in the order they were queued."""
    rows = db.execute(
        "SELECT * FROM notifications WHERE agent_id = ? AND delivered = 0 ORDER BY id",
        (agent_id,),
    ).fetchall()
    return [_row_to_notification(r) for r in rows]


def mark_delivered(db: sqlite3.Connection, notification_id: int) -> Notification | None:
    """Acknowledge a notification. Repeating it, or passing an unknown ID, is harmless."""
    with transaction(db):
        db.execute(
            "UPDATE notifications SET delivered = 1 WHERE id = ?", (notification_id,)
        )
    return get_notification(db, notification_id)


def mark_all_delivered(db: sqlite3.Connection, agent_id: str) -> int:
    """Acknowledge every pending notification for an agent. Returns how many were pending."""
    with transaction(db):
        cur = db.execute(
            "UPDATE notifications SET delivered = 1 WHERE agent_id = ? AND delivered = 0",
            (agent_id,),
        )
    return cur.rowcount


def _row_to_notification(row: sqlite3.Row) -> Notification:
    return Notification(
        id=row["id"],
        agent_id=row["agent_id"],
        content=row["content"],
        workspace_id=row["workspace_id"],
        task_id=row["task_id"],
        delivered=bool(row["delivered"]),
        created_at=parse_dt(row["created_at"]),
    )
