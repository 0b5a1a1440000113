"""Shared fixtures: a throwaway database seeded with one workspace."""

import tempfile
from pathlib import Path

import pytest

from mission_control.core import agents as agents_mod
from mission_control.core import workspaces as workspaces_mod
from mission_control.db.engine import init_db


@pytest.fixture
def db():
    """Create a temporary SQLite database for testing."""
    with tempfile.TemporaryDirectory() as tmp:
        conn = init_db(Path(tmp) / "test.db")
        yield conn
        conn.close()


@pytest.fixture
def workspace(db):
    return workspaces_mod.create_workspace(db, "Squad", "Test squad")


@pytest.fixture
def squad(db, workspace):
    """Two agents: Tej (coder) and Roman (QA)."""
    tej = agents_mod.create_agent(db, workspace.id, "Tej", "Coder", "agent:tej:main")
    roman = agents_mod.create_agent(db, workspace.id, "Roman", "QA", "agent:roman:main")
    return tej, roman


def count_rows(db, table: str, **where) -> int:
    query = f"SELECT COUNT(*) FROM {table}"
    if where:
        query += " WHERE " + " AND ".join(f"{k} = ?" for k in where)
    return db.execute(query, list(where.values())).fetchone()[0]
