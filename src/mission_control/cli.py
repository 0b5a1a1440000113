"""CLI entry point for mission control."""

import json
import logging
import sys

import click

from mission_control.config import get_config
from mission_control.core import activity as activity_mod
from mission_control.core import agents as agents_mod
from mission_control.core import documents as documents_mod
from mission_control.core import messages as messages_mod
from mission_control.core import notifications as notifications_mod
from mission_control.core import search as search_mod
from mission_control.core import tasks as tasks_mod
from mission_control.core import workspaces as workspaces_mod
from mission_control.db.engine import get_db
from mission_control.db.models import AGENT_STATUSES, DOCUMENT_TYPES, TASK_PRIORITIES, TASK_STATUSES
from mission_control.errors import MissionControlError
from mission_control.serialize import to_dict


def _get_db():
    config = get_config()
    return get_db(config.db_path)


def _fail(message: str):
    click.echo(message, err=True)
    sys.exit(1)


def _workspace_option(f):
    return click.option(
        "--workspace", "-w", default=workspaces_mod.DEFAULT_WORKSPACE_ID,
        envvar="MC_WORKSPACE", help="Workspace ID",
    )(f)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr")
def main(verbose):
    """mc - Mission Control CLI"""
    config = get_config()
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Workspace Commands ────────────────────────────────────────────────────────


@main.group("workspace")
def workspace_group():
    """Manage workspaces."""
    pass


@workspace_group.command("create")
@click.argument("name")
@click.option("--description", "-d", default=None, help="Workspace description")
def workspace_create(name, description):
    """Create a new workspace."""
    with _get_db() as db:
        try:
            workspace = workspaces_mod.create_workspace(db, name, description)
        except MissionControlError as e:
            _fail(f"Error: {e}")
        click.echo(f"Workspace created: {workspace.id} ({workspace.name})")


@workspace_group.command("list")
def workspace_list():
    """List workspaces."""
    with _get_db() as db:
        workspaces = workspaces_mod.list_workspaces(db)
        if not workspaces:
            click.echo("No workspaces found.")
            return
        for ws in workspaces:
            desc = f" - {ws.description}" if ws.description else ""
            click.echo(f"  {ws.id}: {ws.name}{desc}")


@workspace_group.command("show")
@click.argument("workspace_id")
def workspace_show(workspace_id):
    """Show a workspace and its progress."""
    with _get_db() as db:
        workspace = workspaces_mod.get_workspace(db, workspace_id)
        if not workspace:
            _fail(f"Workspace not found: {workspace_id}")
        summary = workspaces_mod.workspace_summary(db, workspace_id)

        click.echo(f"Workspace: {workspace.id}")
        click.echo(f"  Name: {workspace.name}")
        if workspace.description:
            click.echo(f"  Description: {workspace.description}")
        click.echo(f"  Agents: {summary['agents']}")
        click.echo(f"  Tasks: {summary['total']} ({summary['progress_pct']}% done)")
        for status, count in summary["counts"].items():
            if count:
                click.echo(f"    {status}: {count}")
        click.echo(f"  Pending notifications: {summary['pending_notifications']}")


# ── Agent Commands ────────────────────────────────────────────────────────────


@main.group("agent")
def agent_group():
    """Manage agents."""
    pass


@agent_group.command("add")
@click.argument("name")
@click.option("--role", "-r", required=True, help="Agent role, e.g. Coder or QA")
@click.option("--session-key", default=None, help="Session key (defaults to agent:<name>:main)")
@click.option("--description", "-d", default=None, help="Agent description")
@click.option("--emoji", default="🤖", help="Avatar emoji")
@click.option("--master", is_flag=True, help="Mark as the workspace's master agent")
@_workspace_option
def agent_add(name, role, session_key, description, emoji, master, workspace):
    """Register an agent."""
    session_key = session_key or f"agent:{name.lower()}:main"
    with _get_db() as db:
        if workspace == workspaces_mod.DEFAULT_WORKSPACE_ID:
            workspaces_mod.ensure_default_workspace(db)
        try:
            agent = agents_mod.create_agent(
                db, workspace, name, role, session_key,
                description=description, avatar_emoji=emoji, is_master=master,
            )
        except MissionControlError as e:
            _fail(f"Error: {e}")
        click.echo(f"Registered agent: {agent.id}")
        click.echo(f"  Name: {agent.avatar_emoji} {agent.name} ({agent.role})")
        click.echo(f"  Status: {agent.status}")


@agent_group.command("list")
@_workspace_option
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def agent_list(workspace, json_output):
    """List agents."""
    with _get_db() as db:
        agents = agents_mod.list_agents(db, workspace)
        if json_output:
            click.echo(json.dumps([to_dict(a) for a in agents], indent=2))
            return
        if not agents:
            click.echo("No agents found.")
            return
        for agent in agents:
            master = " [master]" if agent.is_master else ""
            task = f" -> {agent.current_task_id}" if agent.current_task_id else ""
            seen = agent.last_heartbeat.strftime("%Y-%m-%d %H:%M") if agent.last_heartbeat else "never"
            click.echo(
                f"  {agent.avatar_emoji} {agent.id}: {agent.name} ({agent.role}) "
                f"{agent.status}{master}{task} [last seen: {seen}]"
            )


@agent_group.command("status")
@click.argument("agent_id")
@click.argument("status", type=click.Choice(AGENT_STATUSES))
def agent_status(agent_id, status):
    """Set an agent's status."""
    with _get_db() as db:
        agent = agents_mod.update_agent_status(db, agent_id, status)
        if not agent:
            _fail(f"Agent not found: {agent_id}")
        click.echo(f"{agent.name} is now {agent.status}")


@agent_group.command("heartbeat")
@click.argument("agent_id")
def agent_heartbeat(agent_id):
    """Check in as an agent and show pending notifications."""
    with _get_db() as db:
        agent = agents_mod.heartbeat(db, agent_id)
        if not agent:
            _fail(f"Agent not found: {agent_id}")
        click.echo(f"{agent.name} checked in")
        pending = notifications_mod.list_undelivered(db, agent_id)
        if pending:
            click.echo(f"  {len(pending)} pending notification(s)")


@agent_group.command("stale")
@_workspace_option
@click.option("--max-age", default=300, type=int, help="Seconds since last heartbeat")
def agent_stale(workspace, max_age):
    """List agents that have not checked in recently."""
    with _get_db() as db:
        stale = agents_mod.list_stale_agents(db, workspace, max_age)
        if not stale:
            click.echo("All agents checked in recently.")
            return
        for agent in stale:
            seen = agent.last_heartbeat.isoformat() if agent.last_heartbeat else "never"
            click.echo(f"  {agent.id}: {agent.name} (last seen: {seen})")


# ── Task Commands ─────────────────────────────────────────────────────────────


STATUS_ICONS = {
    "planning": "◌",
    "inbox": "○",
    "assigned": "◔",
    "in_progress": "●",
    "testing": "◑",
    "review": "◕",
    "done": "✓",
    "blocked": "✗",
}


@main.group("task")
def task_group():
    """Manage tasks."""
    pass


@task_group.command("add")
@click.argument("title")
@_workspace_option
@click.option("--description", "-d", default="", help="Task description")
@click.option("--priority", "-p", default="normal", type=click.Choice(TASK_PRIORITIES))
@click.option("--assignee", "-a", "assignees", multiple=True, help="Agent ID (repeatable)")
@click.option("--due", default=None, type=click.DateTime(), help="Due date")
def task_add(title, workspace, description, priority, assignees, due):
    """Create a new task."""
    config = get_config()
    with _get_db() as db:
        if workspace == workspaces_mod.DEFAULT_WORKSPACE_ID:
            workspaces_mod.ensure_default_workspace(db)
        try:
            task = tasks_mod.create_task(
                db, workspace, title, description,
                priority=priority,
                assignee_ids=list(assignees),
                due_date=due,
                initial_status=config.initial_task_status,
            )
        except MissionControlError as e:
            _fail(f"Error: {e}")
        click.echo(f"Created task: {task.id}")
        click.echo(f"  Title: {task.title}")
        click.echo(f"  Priority: {task.priority}")
        click.echo(f"  Status: {task.status}")
        if task.assignee_ids:
            click.echo(f"  Assignees: {', '.join(task.assignee_ids)}")


@task_group.command("list")
@_workspace_option
@click.option("--status", default=None, type=click.Choice(TASK_STATUSES), help="Filter by status")
@click.option("--assignee", default=None, help="Filter by assigned agent ID")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def task_list(workspace, status, assignee, json_output):
    """List tasks."""
    with _get_db() as db:
        tasks = tasks_mod.list_tasks(db, workspace, status=status, assignee_id=assignee)

        if json_output:
            click.echo(json.dumps([to_dict(t) for t in tasks], indent=2))
            return

        if not tasks:
            click.echo("No tasks found.")
            return

        for task in tasks:
            icon = STATUS_ICONS.get(task.status, "?")
            who = f" [{', '.join(task.assignee_ids)}]" if task.assignee_ids else ""
            click.echo(f"  {icon} {task.id}: {task.title} ({task.status}, {task.priority}){who}")


@task_group.command("show")
@click.argument("task_id")
def task_show(task_id):
    """Show task details."""
    with _get_db() as db:
        task = tasks_mod.get_task(db, task_id)
        if not task:
            _fail(f"Task not found: {task_id}")

        click.echo(f"Task: {task.id}")
        click.echo(f"  Title: {task.title}")
        click.echo(f"  Status: {task.status}")
        click.echo(f"  Priority: {task.priority}")
        click.echo(f"  Workspace: {task.workspace_id}")
        if task.description:
            click.echo(f"  Description: {task.description}")
        if task.assignee_ids:
            click.echo(f"  Assignees: {', '.join(task.assignee_ids)}")
        if task.due_date:
            click.echo(f"  Due: {task.due_date}")
        if task.created_at:
            click.echo(f"  Created: {task.created_at}")

        history = activity_mod.list_task_activities(db, task_id)
        if history:
            click.echo("  History:")
            for a in history:
                click.echo(f"    [{a.created_at}] {a.type}: {a.message}")

        messages = messages_mod.list_task_messages(db, task_id)
        if messages:
            click.echo("  Messages:")
            for m in messages:
                click.echo(f"    {m.sender_agent_id or 'human'}: {m.content}")


@task_group.command("status")
@click.argument("task_id")
@click.argument("status", type=click.Choice(TASK_STATUSES))
def task_status(task_id, status):
    """Move a task to a new status."""
    with _get_db() as db:
        task = tasks_mod.update_task_status(db, task_id, status)
        if not task:
            _fail(f"Task not found: {task_id}")
        click.echo(f"{task.id} is now {task.status}")


@task_group.command("assign")
@click.argument("task_id")
@click.argument("agent_ids", nargs=-1, required=True)
def task_assign(task_id, agent_ids):
    """Assign a task to one or more agents."""
    with _get_db() as db:
        try:
            task = tasks_mod.assign_task(db, task_id, list(agent_ids))
        except MissionControlError as e:
            _fail(f"Error: {e}")
        if not task:
            _fail(f"Task not found: {task_id}")
        click.echo(f"Assigned {task.id} to {', '.join(task.assignee_ids)}")


# ── Message Commands ──────────────────────────────────────────────────────────


@main.group("message")
def message_group():
    """Post and read task threads."""
    pass


@message_group.command("post")
@click.argument("task_id")
@click.argument("content")
@click.option("--from", "sender", default=None, help="Sender agent ID")
def message_post(task_id, content, sender):
    """Post a message to a task's thread. @Name mentions notify agents."""
    with _get_db() as db:
        try:
            message = messages_mod.post_task_message(db, task_id, content, sender_agent_id=sender)
        except MissionControlError as e:
            _fail(f"Error: {e}")
        if not message:
            _fail(f"Task not found: {task_id}")
        mentions = messages_mod.extract_mentions(content)
        click.echo(f"Posted message {message.id}")
        if mentions:
            click.echo(f"  Mentioned: {', '.join('@' + m for m in mentions)}")


@message_group.command("list")
@click.argument("task_id")
def message_list(task_id):
    """Show a task's thread, oldest first."""
    with _get_db() as db:
        messages = messages_mod.list_task_messages(db, task_id)
        if not messages:
            click.echo("No messages.")
            return
        for m in messages:
            click.echo(f"  [{m.created_at}] {m.sender_agent_id or 'human'}: {m.content}")


# ── Activity Commands ─────────────────────────────────────────────────────────


@main.group("activity")
def activity_group():
    """Read the activity log."""
    pass


@activity_group.command("list")
@click.option("--workspace", "-w", default=None, help="Workspace ID")
@click.option("--type", "activity_type", default=None, help="Filter by activity type")
@click.option("--limit", "-n", default=None, type=click.IntRange(min=1), help="Max entries")
def activity_list(workspace, activity_type, limit):
    """Show recent activity, newest first."""
    config = get_config()
    with _get_db() as db:
        try:
            activities = activity_mod.list_activities(
                db, workspace, activity_type,
                limit=limit or config.activity_limit,
            )
        except MissionControlError as e:
            _fail(f"Error: {e}")
        if not activities:
            click.echo("No activity.")
            return
        for a in activities:
            click.echo(f"  [{a.created_at}] {a.type}: {a.message}")


# ── Notification Commands ─────────────────────────────────────────────────────


@main.group("notify")
def notify_group():
    """Agent notifications."""
    pass


@notify_group.command("list")
@click.argument("agent_id")
def notify_list(agent_id):
    """Show an agent's undelivered notifications."""
    with _get_db() as db:
        pending = notifications_mod.list_undelivered(db, agent_id)
        if not pending:
            click.echo("No pending notifications.")
            return
        for n in pending:
            task = f" ({n.task_id})" if n.task_id else ""
            click.echo(f"  #{n.id}{task} {n.content}")


@notify_group.command("ack")
@click.argument("notification_ids", nargs=-1, type=int)
@click.option("--all", "all_for", default=None, help="Acknowledge everything for this agent ID")
def notify_ack(notification_ids, all_for):
    """Mark notifications as delivered."""
    with _get_db() as db:
        if all_for:
            count = notifications_mod.mark_all_delivered(db, all_for)
            click.echo(f"Acknowledged {count} notification(s)")
            return
        if not notification_ids:
            _fail("Give notification IDs or --all AGENT_ID")
        for notification_id in notification_ids:
            notifications_mod.mark_delivered(db, notification_id)
        click.echo(f"Acknowledged {len(notification_ids)} notification(s)")


# ── Document Commands ─────────────────────────────────────────────────────────


@main.group("doc")
def doc_group():
    """Workspace documents."""
    pass


@doc_group.command("add")
@click.argument("title")
@click.option("--content", "-c", default=None, help="Document body (reads stdin if omitted)")
@click.option("--type", "doc_type", default="notes", type=click.Choice(DOCUMENT_TYPES))
@click.option("--task", "task_id", default=None, help="Attach to a task")
@click.option("--by", "created_by", default=None, help="Author agent ID")
@_workspace_option
def doc_add(title, content, doc_type, task_id, created_by, workspace):
    """Store a document."""
    if content is None:
        content = click.get_text_stream("stdin").read()
    with _get_db() as db:
        try:
            document = documents_mod.create_document(
                db, workspace, title, content,
                doc_type=doc_type, task_id=task_id, created_by=created_by,
            )
        except MissionControlError as e:
            _fail(f"Error: {e}")
        click.echo(f"Stored document {document.id}: {document.title} ({document.type})")


@doc_group.command("list")
@_workspace_option
@click.option("--task", "task_id", default=None, help="Only documents for this task")
def doc_list(workspace, task_id):
    """List documents."""
    with _get_db() as db:
        documents = documents_mod.list_documents(db, workspace, task_id=task_id)
        if not documents:
            click.echo("No documents.")
            return
        for d in documents:
            click.echo(f"  #{d.id} [{d.type}] {d.title}")


# ── Search ────────────────────────────────────────────────────────────────────


@main.command("search")
@click.argument("query")
@_workspace_option
def search_command(query, workspace):
    """Find tasks and activity containing QUERY."""
    with _get_db() as db:
        results = search_mod.search(db, workspace, query)
        if not results:
            click.echo("No matches.")
            return
        for r in results:
            click.echo(f"  [{r.kind}] {r.id}: {r.title}")
            click.echo(f"      {r.snippet}")


# ── Servers ───────────────────────────────────────────────────────────────────


@main.command("serve")
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to listen on")
def serve_command(host, port):
    """Run the JSON API."""
    from mission_control.web.app import run_server

    config = get_config()
    host = host or config.host
    port = port or config.port
    click.echo(f"Serving API at http://{host}:{port}")
    run_server(host=host, port=port)


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from mission_control.mcp.server import mcp
    from mission_control.mcp import prompts  # noqa: F401 - registers prompts

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
