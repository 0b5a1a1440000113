"""Deliverables, research notes and protocols attached to a workspace or task."""

import sqlite3

from mission_control.core.activity import log_activity
from mission_control.core.workspaces import get_workspace
from mission_control.db.engine import transaction
from mission_control.db.models import DOCUMENT_TYPES, Document, parse_dt
from mission_control.errors import NotFoundError, ValidationError


def create_document(
    db: sqlite3.Connection,
    workspace_id: str,
    title: str,
    content: str,
    doc_type: str = "notes",
    task_id: str | None = None,
    created_by: str | None = None,
) -> Document:
    """Store a document and log its creation."""
    if doc_type not in DOCUMENT_TYPES:
        raise ValidationError(
            f"Invalid document type: {doc_type} (expected one of {', '.join(DOCUMENT_TYPES)})"
        )
    if not title or not title.strip():
        raise ValidationError("Document title is required")
    if not get_workspace(db, workspace_id):
        raise NotFoundError(f"Workspace not found: {workspace_id}")
    if task_id and not db.execute("SELECT 1 FROM tasks WHERE id = ?", (task_id,)).fetchone():
        raise ValidationError(f"Task not found: {task_id}")
    if created_by and not db.execute("SELECT 1 FROM agents WHERE id = ?", (created_by,)).fetchone():
        raise ValidationError(f"Agent not found: {created_by}")

    with transaction(db):
        cur = db.execute(
            """INSERT INTO documents (workspace_id, task_id, title, content, type, created_by)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (workspace_id, task_id, title, content, doc_type, created_by),
        )
        log_activity(
            db,
            "document_created",
            f"Document created: {title}",
            workspace_id=workspace_id,
            agent_id=created_by,
            task_id=task_id,
        )
    return get_document(db, cur.lastrowid)


def get_document(db: sqlite3.Connection, document_id: int) -> Document | None:
    row = db.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
    if not row:
        return None
    return _row_to_document(row)


def list_documents(
    db: sqlite3.Connection,
    workspace_id: str,
    task_id: str | None = None,
    doc_type: str | None = None,
) -> list[Document]:
    query = "SELECT * FROM documents WHERE workspace_id = ?"
    params: list = [workspace_id]
    if task_id:
        query += " AND task_id = ?"
        params.append(task_id)
    if doc_type:
        query += " AND type = ?"
        params.append(doc_type)
    rows = db.execute(query + " ORDER BY id DESC", params).fetchall()
    return [_row_to_document(r) for r in rows]


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        workspace_id=row["workspace_id"],
        title=row["title"],
        content=row["content"],
        type=row["type"],
        task_id=row["task_id"],
        created_by=row["created_by"],
        created_at=parse_dt(row["created_at"]),
    )
