"""Conversation threads, messages and @mention fan-out."""

import json
import logging
import re
import sqlite3

from mission_control.core.activity import log_activity
from mission_control.core.agents import find_agents_by_name, get_agent
from mission_control.core.notifications import create_notification
from mission_control.core.workspaces import get_workspace
from mission_control.db.engine import transaction
from mission_control.db.models import CONVERSATION_TYPES, Conversation, Message, parse_dt
from mission_control.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@(\w+)", re.ASCII)

# The ellipsis is appended whether or not the content was actually cut.
MENTION_PREVIEW_CHARS = 100
MENTION_TEMPLATE = "@{name}: {preview}..."


def extract_mentions(content: str) -> list[str]:
    """Names mentioned in ``content``, in order, repeats included."""
    return MENTION_PATTERN.findall(content)


def create_conversation(
    db: sqlite3.Connection,
    workspace_id: str,
    conversation_type: str = "group",
    task_id: str | None = None,
) -> Conversation:
    """Open a direct or group thread. Task threads are created with their task."""
    if conversation_type not in CONVERSATION_TYPES:
        raise ValidationError(f"Invalid conversation type: {conversation_type}")
    if conversation_type == "task" and task_id is None:
        raise ValidationError("Task conversations need a task_id")
    if not get_workspace(db, workspace_id):
        raise NotFoundError(f"Workspace not found: {workspace_id}")

    with transaction(db):
        cur = db.execute(
            "INSERT INTO conversations (workspace_id, type, task_id) VALUES (?, ?, ?)",
            (workspace_id, conversation_type, task_id),
        )
    return get_conversation(db, cur.lastrowid)


def get_conversation(db: sqlite3.Connection, conversation_id: int) -> Conversation | None:
    row = db.execute(
        "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
    ).fetchone()
    if not row:
        return None
    return _row_to_conversation(row)


def get_task_conversation(db: sqlite3.Connection, task_id: str) -> Conversation | None:
    """The thread attached to a task, if any."""
    row = db.execute(
        "SELECT * FROM conversations WHERE task_id = ?", (task_id,)
    ).fetchone()
    if not row:
        return None
    return _row_to_conversation(row)


def post_message(
    db: sqlite3.Connection,
    conversation_id: int,
    content: str,
    sender_agent_id: str | None = None,
    attachments: list[int] | None = None,
    message_type: str = "text",
) -> Message | None:
    """Post a message and notify every agent it mentions.

    Returns None if the conversation does not exist.
    """
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        return None
    if not content or not content.strip():
        raise ValidationError("Message content is required")
    if sender_agent_id is not None and not get_agent(db, sender_agent_id):
        raise ValidationError(f"Agent not found: {sender_agent_id}")

    with transaction(db):
        cur = db.execute(
            """INSERT INTO messages
                   (conversation_id, sender_agent_id, content, message_type, attachments)
               VALUES (?, ?, ?, ?, ?)""",
            (
                conversation_id, sender_agent_id, content, message_type,
                json.dumps(attachments or []),
            ),
        )
        message_id = cur.lastrowid
        db.execute(
            "UPDATE conversations SET updated_at = datetime('now') WHERE id = ?",
            (conversation_id,),
        )
        log_activity(
            db,
            "message_sent",
            "Message posted",
            workspace_id=conversation.workspace_id,
            agent_id=sender_agent_id,
            task_id=conversation.task_id,
        )
        _notify_mentions(db, conversation, content)
    return get_message(db, message_id)


def post_task_message(
    db: sqlite3.Connection,
    task_id: str,
    content: str,
    sender_agent_id: str | None = None,
    attachments: list[int] | None = None,
) -> Message | None:
    """Post to a task's thread. Returns None if the task has no thread."""
    conversation = get_task_conversation(db, task_id)
    if not conversation:
        return None
    return post_message(
        db, conversation.id, content,
        sender_agent_id=sender_agent_id, attachments=attachments,
    )


def get_message(db: sqlite3.Connection, message_id: int) -> Message | None:
    row = db.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
    if not row:
        return None
    return _row_to_message(row)


def list_messages(db: sqlite3.Connection, conversation_id: int) -> list[Message]:
    """Messages in a thread, oldest first."""
    rows = db.execute(
        "SELECT * FROM messages WHERE conversation_id = ? ORDER BY id",
        (conversation_id,),
    ).fetchall()
    return [_row_to_message(r) for r in rows]


def list_task_messages(db: sqlite3.Connection, task_id: str) -> list[Message]:
    conversation = get_task_conversation(db, task_id)
    if not conversation:
        return []
    return list_messages(db, conversation.id)


def _notify_mentions(db: sqlite3.Connection, conversation: Conversation, content: str):
    # One notification per mention per matching agent: repeats and self-mentions count.
    preview = content[:MENTION_PREVIEW_CHARS]
    for name in extract_mentions(content):
        agents = find_agents_by_name(db, name, workspace_id=conversation.workspace_id)
        if not agents:
            logger.warning("Mention @%s matches no agent in %s", name, conversation.workspace_id)
            continue
        for agent in agents:
            create_notification(
                db,
                agent.id,
                MENTION_TEMPLATE.format(name=agent.name, preview=preview),
                task_id=conversation.task_id,
                workspace_id=conversation.workspace_id,
            )
            logger.debug("Mention @%s resolved to %s", name, agent.id)


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        workspace_id=row["workspace_id"],
        type=row["type"],
        task_id=row["task_id"],
        created_at=parse_dt(row["created_at"]),
        updated_at=parse_dt(row["updated_at"]),
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        content=row["content"],
        sender_agent_id=row["sender_agent_id"],
        message_type=row["message_type"],
        attachments=json.loads(row["attachments"] or "[]"),
        created_at=parse_dt(row["created_at"]),
    )
