"""Agent registry, status updates and heartbeats."""

import logging
import sqlite3

from mission_control.core.activity import log_activity
from mission_control.core.slugs import unique_id
from mission_control.core.workspaces import get_workspace
from mission_control.db.engine import transaction
from mission_control.db.models import AGENT_STATUSES, Agent, parse_dt
from mission_control.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Status asserted by a heartbeat.
LIVE_STATUS = "working"


def create_agent(
    db: sqlite3.Connection,
    workspace_id: str,
    name: str,
    role: str,
    session_key: str,
    description: str | None = None,
    avatar_emoji: str = "🤖",
    is_master: bool = False,
) -> Agent:
    """Register a new agent in a workspace. It starts on standby."""
    if not name or not name.strip():
        raise ValidationError("Agent name is required")
    if not get_workspace(db, workspace_id):
        raise NotFoundError(f"Workspace not found: {workspace_id}")

    with transaction(db):
        agent_id = unique_id(db, "agents", name, "agent")
        db.execute(
            """INSERT INTO agents
                   (id, workspace_id, name, role, description, avatar_emoji,
                    is_master, session_key)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                agent_id, workspace_id, name, role, description, avatar_emoji,
                int(is_master), session_key,
            ),
        )
        log_activity(
            db,
            "agent_created",
            f"{name} joined as {role}",
            workspace_id=workspace_id,
            agent_id=agent_id,
        )
    return get_agent(db, agent_id)


def get_agent(db: sqlite3.Connection, agent_id: str) -> Agent | None:
    """Get an agent by ID."""
    row = db.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)).fetchone()
    if not row:
        return None
    return _row_to_agent(row)


def list_agents(db: sqlite3.Connection, workspace_id: str) -> list[Agent]:
    """List a workspace's agents, masters first."""
    rows = db.execute(
        "SELECT * FROM agents WHERE workspace_id = ? ORDER BY is_master DESC, rowid",
        (workspace_id,),
    ).fetchall()
    return [_row_to_agent(r) for r in rows]


def find_agents_by_name(
    db: sqlite3.Connection,
    name: str,
    workspace_id: str | None = None,
) -> list[Agent]:
    """Agents whose name matches exactly (case-sensitive). Names are not unique."""
    query = "SELECT * FROM agents WHERE name = ?"
    params: list = [name]
    if workspace_id is not None:
        query += " AND workspace_id = ?"
        params.append(workspace_id)
    rows = db.execute(query + " ORDER BY rowid", params).fetchall()
    return [_row_to_agent(r) for r in rows]


def update_agent_status(
    db: sqlite3.Connection,
    agent_id: str,
    status: str,
) -> Agent | None:
    """Set an agent's status. Returns None if the agent does not exist."""
    if status not in AGENT_STATUSES:
        raise ValidationError(
            f"Invalid agent status: {status} (expected one of {', '.join(AGENT_STATUSES)})"
        )
    agent = get_agent(db, agent_id)
    if not agent:
        return None

    with transaction(db):
        db.execute(
            "UPDATE agents SET status = ?, updated_at = datetime('now') WHERE id = ?",
            (status, agent_id),
        )
        log_activity(
            db,
            "agent_status_changed",
            f"{agent.name} is now {status}",
            workspace_id=agent.workspace_id,
            agent_id=agent_id,
        )
    logger.info("Agent %s: %s -> %s", agent_id, agent.status, status)
    return get_agent(db, agent_id)


def heartbeat(db: sqlite3.Connection, agent_id: str) -> Agent | None:
    """Record that an agent checked in. Always marks it as working."""
    agent = get_agent(db, agent_id)
    if not agent:
        return None

    with transaction(db):
        db.execute(
            """UPDATE agents SET last_heartbeat = datetime('now'), status = ?,
                   updated_at = datetime('now')
               WHERE id = ?""",
            (LIVE_STATUS, agent_id),
        )
        log_activity(
            db,
            "agent_heartbeat",
            f"{agent.name} checked in",
            workspace_id=agent.workspace_id,
            agent_id=agent_id,
        )
    logger.debug("Heartbeat from %s", agent_id)
    return get_agent(db, agent_id)


def list_stale_agents(
    db: sqlite3.Connection,
    workspace_id: str,
    max_age_seconds: int = 300,
) -> list[Agent]:
    """Agents that never checked in, or not within ``max_age_seconds``."""
    rows = db.execute(
        """SELECT * FROM agents
           WHERE workspace_id = ?
             AND (last_heartbeat IS NULL OR last_heartbeat < datetime('now', ?))
           ORDER BY is_master DESC, rowid""",
        (workspace_id, f"-{int(max_age_seconds)} seconds"),
    ).fetchall()
    return [_row_to_agent(r) for r in rows]


def _row_to_agent(row: sqlite3.Row) -> Agent:
    return Agent(
        id=row["id"],
        workspace_id=row["workspace_id"],
        name=row["name"],
        role=row["role"],
        session_key=row["session_key"],
        description=row["description"],
        avatar_emoji=row["avatar_emoji"],
        status=row["status"],
        is_master=bool(row["is_master"]),
        current_task_id=row["current_task_id"],
        last_heartbeat=parse_dt(row["last_heartbeat"]),
        created_at=parse_dt(row["created_at"]),
        updated_at=parse_dt(row["updated_at"]),
    )
