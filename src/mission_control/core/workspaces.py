"""Workspace management operations."""

import sqlite3

from mission_control.core.activity import log_activity
from mission_control.core.slugs import unique_id
from mission_control.db.engine import transaction
from mission_control.db.models import TASK_STATUSES, Workspace, parse_dt
from mission_control.errors import ValidationError

DEFAULT_WORKSPACE_ID = "default"


def create_workspace(
    db: sqlite3.Connection,
    name: str,
    description: str | None = None,
) -> Workspace:
    """Create a new workspace."""
    if not name or not name.strip():
        raise ValidationError("Workspace name is required")

    with transaction(db):
        workspace_id = unique_id(db, "workspaces", name, "workspace")
        db.execute(
            "INSERT INTO workspaces (id, name, description) VALUES (?, ?, ?)",
            (workspace_id, name, description),
        )
        log_activity(
            db,
            "workspace_created",
            f"Workspace created: {name}",
            workspace_id=workspace_id,
        )
    return get_workspace(db, workspace_id)


def get_workspace(db: sqlite3.Connection, workspace_id: str) -> Workspace | None:
    """Get a workspace by ID."""
    row = db.execute("SELECT * FROM workspaces WHERE id = ?", (workspace_id,)).fetchone()
    if not row:
        return None
    return _row_to_workspace(row)


def list_workspaces(db: sqlite3.Connection) -> list[Workspace]:
    """List all workspaces in creation order."""
    rows = db.execute("SELECT * FROM workspaces ORDER BY rowid").fetchall()
    return [_row_to_workspace(r) for r in rows]


def workspace_summary(db: sqlite3.Connection, workspace_id: str) -> dict | None:
    """Task counts per status plus agent and pending-notification totals."""
    if not get_workspace(db, workspace_id):
        return None

    counts = {status: 0 for status in TASK_STATUSES}
    for row in db.execute(
        "SELECT status, COUNT(*) AS n FROM tasks WHERE workspace_id = ? GROUP BY status",
        (workspace_id,),
    ):
        counts[row["status"]] = row["n"]
    total = sum(counts.values())
    progress = (counts["done"] / total * 100) if total > 0 else 0

    agents = db.execute(
        "SELECT COUNT(*) FROM agents WHERE workspace_id = ?", (workspace_id,)
    ).fetchone()[0]
    pending = db.execute(
        """SELECT COUNT(*) FROM notifications n JOIN agents a ON a.id = n.agent_id
           WHERE a.workspace_id = ? AND n.delivered = 0""",
        (workspace_id,),
    ).fetchone()[0]

    return {
        "workspace_id": workspace_id,
        "counts": counts,
        "total": total,
        "progress_pct": round(progress, 1),
        "agents": agents,
        "pending_notifications": pending,
    }


def _row_to_workspace(row: sqlite3.Row) -> Workspace:
    return Workspace(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        created_at=parse_dt(row["created_at"]),
    )


def ensure_default_workspace(db: sqlite3.Connection) -> Workspace:
    """Ensure a 'default' workspace exists, creating it if needed."""
    workspace = get_workspace(db, DEFAULT_WORKSPACE_ID)
    if not workspace:
        workspace = create_workspace(db, "Default", "Default workspace")
    return workspace
