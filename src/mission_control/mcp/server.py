"""MCP server exposing the mission control engine as tools."""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import Context, FastMCP

from mission_control.config import Config, get_config
from mission_control.core import activity as activity_mod
from mission_control.core import agents as agents_mod
from mission_control.core import documents as documents_mod
from mission_control.core import messages as messages_mod
from mission_control.core import notifications as notifications_mod
from mission_control.core import search as search_mod
from mission_control.core import tasks as tasks_mod
from mission_control.core import workspaces as workspaces_mod
from mission_control.db.engine import init_db
from mission_control.errors import MissionControlError
from mission_control.serialize import to_dict


@dataclass
class AppContext:
    db: sqlite3.Connection
    config: Config


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Initialize DB connection on startup, close on shutdown."""
    config = get_config()
    db = init_db(config.db_path)
    try:
        yield AppContext(db=db, config=config)
    finally:
        db.close()


mcp = FastMCP("mission-control", lifespan=app_lifespan)


def _ctx(ctx: Context) -> AppContext:
    """Extract AppContext from MCP Context."""
    return ctx.request_context.lifespan_context


def _error(exc: MissionControlError) -> dict:
    return {"error": str(exc)}


# ── Workspace Tools ───────────────────────────────────────────────────────────


@mcp.tool()
def create_workspace(ctx: Context, name: str, description: str | None = None) -> dict:
    """Create a new workspace."""
    try:
        return to_dict(workspaces_mod.create_workspace(_ctx(ctx).db, name, description))
    except MissionControlError as e:
        return _error(e)


@mcp.tool()
def list_workspaces(ctx: Context) -> list[dict]:
    """List all workspaces."""
    return [to_dict(w) for w in workspaces_mod.list_workspaces(_ctx(ctx).db)]


@mcp.tool()
def get_workspace(ctx: Context, workspace_id: str) -> dict:
    """Get a workspace with its task summary."""
    app = _ctx(ctx)
    workspace = workspaces_mod.get_workspace(app.db, workspace_id)
    if not workspace:
        return {"error": f"Workspace not found: {workspace_id}"}
    result = to_dict(workspace)
    result["summary"] = workspaces_mod.workspace_summary(app.db, workspace_id)
    return result


# ── Agent Tools ───────────────────────────────────────────────────────────────


@mcp.tool()
def create_agent(
    ctx: Context,
    workspace_id: str,
    name: str,
    role: str,
    session_key: str,
    description: str | None = None,
    avatar_emoji: str = "🤖",
    is_master: bool = False,
) -> dict:
    """Register an agent in a workspace. New agents start on standby."""
    try:
        agent = agents_mod.create_agent(
            _ctx(ctx).db, workspace_id, name, role, session_key,
            description=description, avatar_emoji=avatar_emoji, is_master=is_master,
        )
        return to_dict(agent)
    except MissionControlError as e:
        return _error(e)


@mcp.tool()
def list_agents(ctx: Context, workspace_id: str) -> list[dict]:
    """List the agents of a workspace."""
    return [to_dict(a) for a in agents_mod.list_agents(_ctx(ctx).db, workspace_id)]


@mcp.tool()
def update_agent_status(ctx: Context, agent_id: str, status: str) -> dict:
    """Set an agent's status. Valid statuses: standby, working, offline."""
    try:
        agent = agents_mod.update_agent_status(_ctx(ctx).db, agent_id, status)
    except MissionControlError as e:
        return _error(e)
    if not agent:
        return {"error": f"Agent not found: {agent_id}"}
    return to_dict(agent)


@mcp.tool()
def heartbeat(ctx: Context, agent_id: str) -> dict:
    """Check in as an agent. Marks the agent as working and returns its pending notifications."""
    app = _ctx(ctx)
    agent = agents_mod.heartbeat(app.db, agent_id)
    if not agent:
        return {"error": f"Agent not found: {agent_id}"}
    result = to_dict(agent)
    result["notifications"] = [
        to_dict(n) for n in notifications_mod.list_undelivered(app.db, agent_id)
    ]
    return result


# ── Task Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def create_task(
    ctx: Context,
    workspace_id: str,
    title: str,
    description: str = "",
    priority: str = "normal",
    assignee_ids: list[str] | None = None,
    due_date: str | None = None,
) -> dict:
    """Create a task. Priority: low, normal, high or urgent."""
    app = _ctx(ctx)
    try:
        task = tasks_mod.create_task(
            app.db, workspace_id, title, description,
            priority=priority,
            assignee_ids=assignee_ids,
            due_date=due_date,
            initial_status=app.config.initial_task_status,
        )
        return to_dict(task)
    except MissionControlError as e:
        return _error(e)


@mcp.tool()
def list_tasks(ctx: Context, workspace_id: str, status: str | None = None) -> list[dict]:
    """List a workspace's tasks, optionally filtered by status."""
    try:
        tasks = tasks_mod.list_tasks(_ctx(ctx).db, workspace_id, status=status)
    except MissionControlError as e:
        return [_error(e)]
    return [to_dict(t) for t in tasks]


@mcp.tool()
def get_task(ctx: Context, task_id: str) -> dict:
    """Get a task with its history and conversation thread."""
    app = _ctx(ctx)
    task = tasks_mod.get_task(app.db, task_id)
    if not task:
        return {"error": f"Task not found: {task_id}"}
    result = to_dict(task)
    result["history"] = [to_dict(a) for a in activity_mod.list_task_activities(app.db, task_id)]
    result["messages"] = [to_dict(m) for m in messages_mod.list_task_messages(app.db, task_id)]
    return result


@mcp.tool()
def update_task_status(ctx: Context, task_id: str, status: str) -> dict:
    """Move a task. Valid statuses: planning, inbox, assigned, in_progress, testing, review, done, blocked."""
    try:
        task = tasks_mod.update_task_status(_ctx(ctx).db, task_id, status)
    except MissionControlError as e:
        return _error(e)
    if not task:
        return {"error": f"Task not found: {task_id}"}
    return to_dict(task)


@mcp.tool()
def assign_task(ctx: Context, task_id: str, agent_ids: list[str]) -> dict:
    """Assign a task to one or more agents. Each new assignee is notified."""
    try:
        task = tasks_mod.assign_task(_ctx(ctx).db, task_id, agent_ids)
    except MissionControlError as e:
        return _error(e)
    if not task:
        return {"error": f"Task not found: {task_id}"}
    return to_dict(task)


# ── Message Tools ─────────────────────────────────────────────────────────────


@mcp.tool()
def create_conversation(
    ctx: Context,
    workspace_id: str,
    conversation_type: str = "group",
) -> dict:
    """Open a direct or group thread. Task threads come with their task."""
    try:
        conversation = messages_mod.create_conversation(
            _ctx(ctx).db, workspace_id, conversation_type
        )
        return to_dict(conversation)
    except MissionControlError as e:
        return _error(e)


@mcp.tool()
def post_message(
    ctx: Context,
    content: str,
    task_id: str | None = None,
    conversation_id: int | None = None,
    sender_agent_id: str | None = None,
) -> dict:
    """Post to a task's thread (task_id) or any conversation (conversation_id).

    Every @Name in the content notifies the agents with that exact name.
    """
    app = _ctx(ctx)
    try:
        if conversation_id is not None:
            message = messages_mod.post_message(
                app.db, conversation_id, content, sender_agent_id=sender_agent_id
            )
        elif task_id is not None:
            message = messages_mod.post_task_message(
                app.db, task_id, content, sender_agent_id=sender_agent_id
            )
        else:
            return {"error": "Either task_id or conversation_id is required"}
    except MissionControlError as e:
        return _error(e)
    if not message:
        return {"error": f"Conversation not found: {conversation_id or task_id}"}
    return to_dict(message)


@mcp.tool()
def list_messages(
    ctx: Context,
    task_id: str | None = None,
    conversation_id: int | None = None,
) -> list[dict]:
    """List a thread's messages, oldest first."""
    app = _ctx(ctx)
    if conversation_id is not None:
        messages = messages_mod.list_messages(app.db, conversation_id)
    elif task_id is not None:
        messages = messages_mod.list_task_messages(app.db, task_id)
    else:
        return [{"error": "Either task_id or conversation_id is required"}]
    return [to_dict(m) for m in messages]


# ── Activity & Notification Tools ─────────────────────────────────────────────


@mcp.tool()
def list_activities(
    ctx: Context,
    workspace_id: str | None = None,
    activity_type: str | None = None,
    limit: int | None = None,
) -> list[dict]:
    """Recent activity, newest first."""
    app = _ctx(ctx)
    try:
        activities = activity_mod.list_activities(
            app.db, workspace_id, activity_type,
            limit=limit if limit is not None else app.config.activity_limit,
        )
    except MissionControlError as e:
        return [_error(e)]
    return [to_dict(a) for a in activities]


@mcp.tool()
def list_notifications(ctx: Context, agent_id: str) -> list[dict]:
    """Undelivered notifications for an agent."""
    return [to_dict(n) for n in notifications_mod.list_undelivered(_ctx(ctx).db, agent_id)]


@mcp.tool()
def mark_notification_delivered(ctx: Context, notification_id: int) -> dict:
    """Acknowledge a notification. Safe to repeat."""
    notification = notifications_mod.mark_delivered(_ctx(ctx).db, notification_id)
    return to_dict(notification) if notification else {"ok": True}


@mcp.tool()
def mark_all_notifications_delivered(ctx: Context, agent_id: str) -> dict:
    """Acknowledge every pending notification for an agent."""
    return {"delivered": notifications_mod.mark_all_delivered(_ctx(ctx).db, agent_id)}


# ── Document Tools ────────────────────────────────────────────────────────────


@mcp.tool()
def create_document(
    ctx: Context,
    workspace_id: str,
    title: str,
    content: str,
    doc_type: str = "notes",
    task_id: str | None = None,
    created_by: str | None = None,
) -> dict:
    """Store a deliverable, research note, protocol or notes document."""
    try:
        document = documents_mod.create_document(
            _ctx(ctx).db, workspace_id, title, content,
            doc_type=doc_type, task_id=task_id, created_by=created_by,
        )
        return to_dict(document)
    except MissionControlError as e:
        return _error(e)


@mcp.tool()
def list_documents(
    ctx: Context,
    workspace_id: str,
    task_id: str | None = None,
    doc_type: str | None = None,
) -> list[dict]:
    """List a workspace's documents, optionally for one task or of one type."""
    documents = documents_mod.list_documents(
        _ctx(ctx).db, workspace_id, task_id=task_id, doc_type=doc_type
    )
    return [to_dict(d) for d in documents]


# ── Search Tools ──────────────────────────────────────────────────────────────


@mcp.tool()
def search(ctx: Context, workspace_id: str, query: str) -> list[dict]:
    """Find tasks and activity whose text contains ``query``."""
    results = search_mod.search(_ctx(ctx).db, workspace_id, query)
    return [to_dict(r) for r in results]
