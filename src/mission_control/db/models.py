"""Data models for mission control."""

from dataclasses import dataclass, field
from datetime import datetime

# Lifecycle order; "blocked" is a side-state reachable from anywhere.
TASK_STATUSES = (
    "planning",
    "inbox",
    "assigned",
    "in_progress",
    "testing",
    "review",
    "done",
    "blocked",
)
TASK_PRIORITIES = ("low", "normal", "high", "urgent")
AGENT_STATUSES = ("standby", "working", "offline")
CONVERSATION_TYPES = ("direct", "group", "task")
DOCUMENT_TYPES = ("deliverable", "research", "protocol", "notes")
ACTIVITY_TYPES = (
    "workspace_created",
    "agent_created",
    "agent_status_changed",
    "agent_heartbeat",
    "task_created",
    "task_assigned",
    "task_status_changed",
    "message_sent",
    "document_created",
)


@dataclass
class Workspace:
    id: str
    name: str
    description: str | None = None
    created_at: datetime | None = None


@dataclass
class Agent:
    id: str
    workspace_id: str
    name: str
    role: str
    session_key: str
    description: str | None = None
    avatar_emoji: str = "🤖"
    status: str = "standby"
    is_master: bool = False
    current_task_id: str | None = None
    last_heartbeat: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Task:
    id: str
    workspace_id: str
    title: str
    description: str = ""
    status: str = "planning"
    priority: str = "normal"
    assignee_ids: list[str] = field(default_factory=list)
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Conversation:
    id: int | None = None
    workspace_id: str = ""
    type: str = "task"
    task_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Message:
    id: int | None = None
    conversation_id: int = 0
    content: str = ""
    sender_agent_id: str | None = None
    message_type: str = "text"
    attachments: list[int] = field(default_factory=list)
    created_at: datetime | None = None


@dataclass
class Activity:
    id: int | None = None
    type: str = ""
    message: str = ""
    workspace_id: str | None = None
    agent_id: str | None = None
    task_id: str | None = None
    created_at: datetime | None = None


@dataclass
class Notification:
    id: int | None = None
    agent_id: str = ""
    content: str = ""
    workspace_id: str | None = None
    task_id: str | None = None
    delivered: bool = False
    created_at: datetime | None = None


@dataclass
class Document:
    id: int | None = None
    workspace_id: str = ""
    title: str = ""
    content: str = ""
    type: str = "notes"
    task_id: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None


def parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    return datetime.fromisoformat(val)
