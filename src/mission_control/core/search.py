"""Substring search across a workspace's tasks and activity log."""

import sqlite3
from dataclasses import dataclass

from mission_control.core.activity import list_activities
from mission_control.core.tasks import list_tasks

SNIPPET_CHARS = 100


@dataclass
class SearchResult:
    kind: str
    id: str
    title: str
    snippet: str


def search(
    db: sqlite3.Connection,
    workspace_id: str,
    query: str,
    limit: int = 5,
) -> list[SearchResult]:
    """Case-insensitive substring match. Up to ``limit`` hits per kind, unranked."""
    needle = query.strip().lower()
    if not needle:
        return []

    results = []
    task_hits = [
        t for t in list_tasks(db, workspace_id)
        if needle in t.title.lower() or needle in (t.description or "").lower()
    ]
    for task in task_hits[:limit]:
        results.append(SearchResult(
            kind="task",
            id=task.id,
            title=task.title,
            snippet=task.description[:SNIPPET_CHARS] if task.description else f"Status: {task.status}",
        ))

    activity_hits = [
        a for a in list_activities(db, workspace_id=workspace_id)
        if needle in a.message.lower()
    ]
    for activity in activity_hits[:limit]:
        results.append(SearchResult(
            kind="activity",
            id=str(activity.id),
            title=activity.message,
            snippet=f"Recorded {activity.created_at:%Y-%m-%d}" if activity.created_at else activity.type,
        ))
    return results
