"""Task lifecycle: creation, status transitions and assignment."""

import logging
import sqlite3
from datetime import datetime

from mission_control.core.activity import log_activity
from mission_control.core.notifications import create_notification
from mission_control.core.slugs import unique_id
from mission_control.core.workspaces import get_workspace
from mission_control.db.engine import transaction
from mission_control.db.models import TASK_PRIORITIES, TASK_STATUSES, Task, parse_dt
from mission_control.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

INITIAL_STATUSES = ("planning", "inbox")

ASSIGNMENT_TEMPLATE = "You've been assigned a task: {title}"

_STATUS_ORDER = "CASE status {} END".format(
    " ".join(f"WHEN '{s}' THEN {i}" for i, s in enumerate(TASK_STATUSES))
)
_PRIORITY_ORDER = "CASE priority {} END".format(
    " ".join(f"WHEN '{p}' THEN {i}" for i, p in enumerate(reversed(TASK_PRIORITIES)))
)


def validate_status(status: str) -> str:
    if status not in TASK_STATUSES:
        raise ValidationError(
            f"Invalid task status: {status} (expected one of {', '.join(TASK_STATUSES)})"
        )
    return status


def validate_priority(priority: str) -> str:
    if priority not in TASK_PRIORITIES:
        raise ValidationError(
            f"Invalid priority: {priority} (expected one of {', '.join(TASK_PRIORITIES)})"
        )
    return priority


def create_task(
    db: sqlite3.Connection,
    workspace_id: str,
    title: str,
    description: str = "",
    priority: str | None = None,
    assignee_ids: list[str] | None = None,
    due_date: datetime | str | None = None,
    initial_status: str = "planning",
) -> Task:
    """Create a task together with its conversation thread.

    Initial assignees are recorded as-is; notifying them is ``assign_task``'s job.
    """
    if not title or not title.strip():
        raise ValidationError("Task title is required")
    priority = validate_priority(priority or "normal")
    if initial_status not in INITIAL_STATUSES:
        raise ValidationError(f"Invalid initial status: {initial_status}")
    due = _coerce_due_date(due_date)
    if not get_workspace(db, workspace_id):
        raise NotFoundError(f"Workspace not found: {workspace_id}")
    assignees = _dedupe(assignee_ids or [])
    _check_agents(db, workspace_id, assignees)

    with transaction(db):
        task_id = unique_id(db, "tasks", title, "task")
        db.execute(
            """INSERT INTO tasks (id, workspace_id, title, description, status, priority, due_date)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (task_id, workspace_id, title, description or "", initial_status, priority, due),
        )
        _set_assignees(db, task_id, assignees)
        db.execute(
            "INSERT INTO conversations (workspace_id, type, task_id) VALUES (?, 'task', ?)",
            (workspace_id, task_id),
        )
        log_activity(
            db,
            "task_created",
            f"Task created: {title}",
            workspace_id=workspace_id,
            task_id=task_id,
        )
    logger.info("Created task %s in %s", task_id, workspace_id)
    return get_task(db, task_id)


def get_task(db: sqlite3.Connection, task_id: str) -> Task | None:
    """Get a task by ID with its assignees."""
    row = db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    if not row:
        return None
    task = _row_to_task(row)
    task.assignee_ids = _get_assignees(db, task_id)
    return task


def list_tasks(
    db: sqlite3.Connection,
    workspace_id: str,
    status: str | None = None,
    assignee_id: str | None = None,
) -> list[Task]:
    """List a workspace's tasks in lifecycle order, most urgent first within a status."""
    query = "SELECT * FROM tasks WHERE workspace_id = ?"
    params: list = [workspace_id]

    if status:
        query += " AND status = ?"
        params.append(validate_status(status))

    if assignee_id:
        query += " AND id IN (SELECT task_id FROM task_assignees WHERE agent_id = ?)"
        params.append(assignee_id)

    query += f" ORDER BY {_STATUS_ORDER}, {_PRIORITY_ORDER}, rowid"
    tasks = []
    for row in db.execute(query, params).fetchall():
        task = _row_to_task(row)
        task.assignee_ids = _get_assignees(db, task.id)
        tasks.append(task)
    return tasks


def update_task_status(
    db: sqlite3.Connection,
    task_id: str,
    status: str,
) -> Task | None:
    """Move a task to ``status``. Returns None if the task does not exist.

    Any transition is allowed, including re-opening a done task.
    """
    validate_status(status)
    task = get_task(db, task_id)
    if not task:
        return None

    with transaction(db):
        db.execute(
            "UPDATE tasks SET status = ?, updated_at = datetime('now') WHERE id = ?",
            (status, task_id),
        )
        log_activity(
            db,
            "task_status_changed",
            f"Task status changed to: {status}",
            workspace_id=task.workspace_id,
            task_id=task_id,
        )
    logger.info("Task %s: %s -> %s", task_id, task.status, status)
    return get_task(db, task_id)


def assign_task(
    db: sqlite3.Connection,
    task_id: str,
    agent_ids: str | list[str],
) -> Task | None:
    """Replace a task's assignees and move it to ``assigned``.

    Whatever state the task was in, assignment forces it back to ``assigned``.
    Every agent in the new set gets a notification, on every call.
    Returns None if the task does not exist.
    """
    if isinstance(agent_ids, str):
        agent_ids = [agent_ids]
    agent_ids = _dedupe(agent_ids)
    if not agent_ids:
        raise ValidationError("At least one agent is required")

    task = get_task(db, task_id)
    if not task:
        return None
    agents = _check_agents(db, task.workspace_id, agent_ids)

    with transaction(db):
        db.execute(
            "UPDATE tasks SET status = 'assigned', updated_at = datetime('now') WHERE id = ?",
            (task_id,),
        )
        _set_assignees(db, task_id, agent_ids)
        db.execute(
            "UPDATE agents SET current_task_id = ?, updated_at = datetime('now') "
            f"WHERE id IN ({', '.join('?' for _ in agent_ids)})",
            [task_id, *agent_ids],
        )
        log_activity(
            db,
            "task_assigned",
            f"Task assigned to {', '.join(agents[a] for a in agent_ids)}",
            workspace_id=task.workspace_id,
            agent_id=agent_ids[0],
            task_id=task_id,
        )
        for agent_id in agent_ids:
            create_notification(
                db,
                agent_id,
                ASSIGNMENT_TEMPLATE.format(title=task.title),
                task_id=task_id,
                workspace_id=task.workspace_id,
            )
    logger.info("Assigned %s to %s", task_id, ", ".join(agent_ids))
    return get_task(db, task_id)


def _check_agents(
    db: sqlite3.Connection,
    workspace_id: str,
    agent_ids: list[str],
) -> dict[str, str]:
    """Ensure every agent exists in the workspace. Returns a map of ID to name."""
    names = {}
    for agent_id in agent_ids:
        row = db.execute(
            "SELECT name, workspace_id FROM agents WHERE id = ?", (agent_id,)
        ).fetchone()
        if not row:
            raise ValidationError(f"Agent not found: {agent_id}")
        if row["workspace_id"] != workspace_id:
            raise ValidationError(f"Agent {agent_id} is not in workspace {workspace_id}")
        names[agent_id] = row["name"]
    return names


def _set_assignees(db: sqlite3.Connection, task_id: str, agent_ids: list[str]):
    db.execute("DELETE FROM task_assignees WHERE task_id = ?", (task_id,))
    db.executemany(
        "INSERT INTO task_assignees (task_id, agent_id, position) VALUES (?, ?, ?)",
        [(task_id, agent_id, i) for i, agent_id in enumerate(agent_ids)],
    )


def _get_assignees(db: sqlite3.Connection, task_id: str) -> list[str]:
    rows = db.execute(
        "SELECT agent_id FROM task_assignees WHERE task_id = ? ORDER BY position",
        (task_id,),
    ).fetchall()
    return [r["agent_id"] for r in rows]


def _dedupe(ids: list[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def _coerce_due_date(value: datetime | str | None) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    try:
        return datetime.fromisoformat(value).isoformat()
    except ValueError:
        raise ValidationError(f"Invalid due date: {value}") from None


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        workspace_id=row["workspace_id"],
        title=row["title"],
        description=row["description"],
        status=row["status"],
        priority=row["priority"],
        due_date=parse_dt(row["due_date"]),
        created_at=parse_dt(row["created_at"]),
        updated_at=parse_dt(row["updated_at"]),
    )
