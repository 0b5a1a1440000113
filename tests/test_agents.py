"""Tests for the agent registry and heartbeats."""

import time

import pytest

from conftest import count_rows
from mission_control.core import activity as activity_mod
from mission_control.core import agents as agents_mod
from mission_control.errors import NotFoundError, ValidationError


class TestCreateAgent:
    def test_create_agent(self, db, workspace):
        agent = agents_mod.create_agent(
            db, workspace.id, "Tej", "Coder", "agent:tej:main",
            description="Writes the code", avatar_emoji="🦊", is_master=True,
        )
        assert agent.id == "tej"
        assert agent.status == "standby"
        assert agent.is_master is True
        assert agent.avatar_emoji == "🦊"
        assert agent.last_heartbeat is None

    def test_same_name_gets_new_id(self, db, workspace):
        a1 = agents_mod.create_agent(db, workspace.id, "Tej", "Coder", "k1")
        a2 = agents_mod.create_agent(db, workspace.id, "Tej", "QA", "k2")
        assert (a1.id, a2.id) == ("tej", "tej-2")
        assert len(agents_mod.find_agents_by_name(db, "Tej")) == 2

    def test_unknown_workspace(self, db):
        with pytest.raises(NotFoundError):
            agents_mod.create_agent(db, "nowhere", "Tej", "Coder", "k")

    def test_list_masters_first(self, db, workspace):
        agents_mod.create_agent(db, workspace.id, "Worker", "Coder", "k1")
        agents_mod.create_agent(db, workspace.id, "Boss", "Lead", "k2", is_master=True)
        assert [a.id for a in agents_mod.list_agents(db, workspace.id)] == ["boss", "worker"]


class TestAgentStatus:
    def test_update_status(self, db, workspace, squad):
        tej, _ = squad
        agent = agents_mod.update_agent_status(db, tej.id, "offline")
        assert agent.status == "offline"
        [changed] = activity_mod.list_activities(db, workspace.id, "agent_status_changed")
        assert changed.message == "Tej is now offline"

    def test_invalid_status(self, db, squad):
        tej, _ = squad
        with pytest.raises(ValidationError):
            agents_mod.update_agent_status(db, tej.id, "sleeping")

    def test_missing_agent(self, db):
        assert agents_mod.update_agent_status(db, "ghost", "offline") is None


class TestHeartbeat:
    def test_heartbeat_marks_working(self, db, workspace, squad):
        tej, _ = squad
        agents_mod.update_agent_status(db, tej.id, "offline")
        agent = agents_mod.heartbeat(db, tej.id)
        assert agent.status == "working"
        assert agent.last_heartbeat is not None

    def test_heartbeat_logged(self, db, workspace, squad):
        tej, _ = squad
        agents_mod.heartbeat(db, tej.id)
        [beat] = activity_mod.list_activities(db, workspace.id, "agent_heartbeat")
        assert beat.message == "Tej checked in"
        assert beat.agent_id == tej.id

    def test_repeated_heartbeat(self, db, squad):
        tej, _ = squad
        agents_mod.heartbeat(db, tej.id)
        agent = agents_mod.heartbeat(db, tej.id)
        assert agent.status == "working"

    def test_missing_agent_writes_nothing(self, db, workspace):
        before = count_rows(db, "activities")
        assert agents_mod.heartbeat(db, "ghost") is None
        assert count_rows(db, "activities") == before


class TestStaleAgents:
    def test_never_seen_is_stale(self, db, workspace, squad):
        tej, roman = squad
        agents_mod.heartbeat(db, tej.id)
        assert [a.id for a in agents_mod.list_stale_agents(db, workspace.id)] == [roman.id]

    def test_old_heartbeat_is_stale(self, db, workspace, squad):
        tej, _ = squad
        db.execute(
            "UPDATE agents SET last_heartbeat = datetime('now', '-1 hour') WHERE id = ?",
            (tej.id,),
        )
        db.commit()
        stale = agents_mod.list_stale_agents(db, workspace.id, max_age_seconds=60)
        assert tej.id in [a.id for a in stale]


@pytest.fixture
def new_york_tz(monkeypatch):
    """Run with a local clock well away from UTC."""
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestSingleClock:
    def test_heartbeat_matches_updated_at(self, db, squad, new_york_tz):
        tej, _ = squad
        agents_mod.heartbeat(db, tej.id)
        row = db.execute(
            "SELECT last_heartbeat, updated_at FROM agents WHERE id = ?", (tej.id,)
        ).fetchone()
        assert row["last_heartbeat"] == row["updated_at"]

    def test_fresh_heartbeat_not_stale(self, db, workspace, squad, new_york_tz):
        tej, roman = squad
        agents_mod.heartbeat(db, tej.id)
        stale = agents_mod.list_stale_agents(db, workspace.id, max_age_seconds=60)
        assert [a.id for a in stale] == [roman.id]
