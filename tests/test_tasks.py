"""Tests for the task lifecycle."""

from datetime import datetime

import pytest

from conftest import count_rows
from mission_control.core import activity as activity_mod
from mission_control.core import messages as messages_mod
from mission_control.core import notifications as notifications_mod
from mission_control.core import tasks as tasks_mod
from mission_control.errors import NotFoundError, ValidationError


class TestCreateTask:
    def test_create_task(self, db, workspace):
        task = tasks_mod.create_task(db, workspace.id, "Build login page")
        assert task.id == "build-login-page"
        assert task.title == "Build login page"
        assert task.status == "planning"
        assert task.priority == "normal"
        assert task.workspace_id == workspace.id
        assert task.assignee_ids == []

    def test_duplicate_title_gets_suffix(self, db, workspace):
        t1 = tasks_mod.create_task(db, workspace.id, "Build login page")
        t2 = tasks_mod.create_task(db, workspace.id, "Build login page")
        assert t1.id == "build-login-page"
        assert t2.id == "build-login-page-2"

    def test_unsluggable_title(self, db, workspace):
        task = tasks_mod.create_task(db, workspace.id, "🚀🚀")
        assert task.id == "task"

    def test_logs_one_task_created_activity(self, db, workspace):
        task = tasks_mod.create_task(db, workspace.id, "Write docs")
        created = activity_mod.list_activities(db, workspace.id, "task_created")
        assert len(created) == 1
        assert created[0].task_id == task.id
        assert created[0].message == "Task created: Write docs"

    def test_creates_linked_conversation(self, db, workspace):
        task = tasks_mod.create_task(db, workspace.id, "Write docs")
        conversation = messages_mod.get_task_conversation(db, task.id)
        assert conversation is not None
        assert conversation.task_id == task.id
        assert conversation.type == "task"
        assert count_rows(db, "conversations", task_id=task.id) == 1

    def test_round_trip(self, db, workspace, squad):
        tej, roman = squad
        due = datetime(2026, 11, 1, 12, 0)
        created = tasks_mod.create_task(
            db, workspace.id, "Ship it",
            description="Release v1",
            priority="urgent",
            assignee_ids=[roman.id, tej.id],
            due_date=due,
        )
        fetched = tasks_mod.get_task(db, created.id)
        assert fetched.title == "Ship it"
        assert fetched.description == "Release v1"
        assert fetched.priority == "urgent"
        assert fetched.assignee_ids == [roman.id, tej.id]
        assert fetched.due_date == due
        assert fetched.workspace_id == workspace.id

    def test_initial_assignees_not_notified(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Quiet", assignee_ids=[tej.id])
        assert notifications_mod.list_undelivered(db, tej.id) == []

    def test_inbox_initial_status(self, db, workspace):
        task = tasks_mod.create_task(db, workspace.id, "Simple", initial_status="inbox")
        assert task.status == "inbox"

    def test_blank_title_rejected(self, db, workspace):
        with pytest.raises(ValidationError, match="title"):
            tasks_mod.create_task(db, workspace.id, "   ")
        assert count_rows(db, "tasks") == 0

    def test_bad_priority_rejected(self, db, workspace):
        with pytest.raises(ValidationError, match="priority"):
            tasks_mod.create_task(db, workspace.id, "Task", priority="critical")
        assert count_rows(db, "tasks") == 0

    def test_bad_due_date_rejected(self, db, workspace):
        with pytest.raises(ValidationError, match="due date"):
            tasks_mod.create_task(db, workspace.id, "Task", due_date="next tuesday")

    def test_unknown_workspace(self, db):
        with pytest.raises(NotFoundError):
            tasks_mod.create_task(db, "nowhere", "Task")

    def test_unknown_assignee_rejected(self, db, workspace):
        with pytest.raises(ValidationError, match="Agent not found"):
            tasks_mod.create_task(db, workspace.id, "Task", assignee_ids=["ghost"])
        assert count_rows(db, "tasks") == 0
        assert count_rows(db, "conversations") == 0


class TestListTasks:
    def test_get_nonexistent_task(self, db):
        assert tasks_mod.get_task(db, "nonexistent") is None

    def test_list_in_lifecycle_order(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Finished")
        tasks_mod.create_task(db, workspace.id, "Fresh")
        tasks_mod.create_task(db, workspace.id, "Active")
        tasks_mod.update_task_status(db, "finished", "done")
        tasks_mod.update_task_status(db, "active", "in_progress")
        ids = [t.id for t in tasks_mod.list_tasks(db, workspace.id)]
        assert ids == ["fresh", "active", "finished"]

    def test_urgent_first_within_status(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Low", priority="low")
        tasks_mod.create_task(db, workspace.id, "Urgent", priority="urgent")
        tasks_mod.create_task(db, workspace.id, "Normal")
        priorities = [t.priority for t in tasks_mod.list_tasks(db, workspace.id)]
        assert priorities == ["urgent", "normal", "low"]

    def test_filter_by_status(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Task A")
        tasks_mod.create_task(db, workspace.id, "Task B")
        tasks_mod.update_task_status(db, "task-a", "review")
        review = tasks_mod.list_tasks(db, workspace.id, status="review")
        assert [t.id for t in review] == ["task-a"]

    def test_filter_by_assignee(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Mine")
        tasks_mod.create_task(db, workspace.id, "Theirs")
        tasks_mod.assign_task(db, "mine", tej.id)
        assert [t.id for t in tasks_mod.list_tasks(db, workspace.id, assignee_id=tej.id)] == ["mine"]

    def test_filter_by_invalid_status(self, db, workspace):
        with pytest.raises(ValidationError):
            tasks_mod.list_tasks(db, workspace.id, status="todo")


class TestUpdateStatus:
    def test_update_status(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Status test")
        task = tasks_mod.update_task_status(db, "status-test", "in_progress")
        assert task.status == "in_progress"

    def test_logs_one_activity(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Event test")
        before = count_rows(db, "activities")
        tasks_mod.update_task_status(db, "event-test", "testing")
        assert count_rows(db, "activities") == before + 1
        changed = activity_mod.list_activities(db, workspace.id, "task_status_changed")
        assert changed[0].message == "Task status changed to: testing"
        assert changed[0].task_id == "event-test"

    def test_touches_nothing_else(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Isolated", description="keep", priority="high")
        tasks_mod.assign_task(db, "isolated", tej.id)
        counts = {t: count_rows(db, t) for t in ("notifications", "messages", "conversations", "agents")}

        task = tasks_mod.update_task_status(db, "isolated", "review")

        assert task.description == "keep"
        assert task.priority == "high"
        assert task.assignee_ids == [tej.id]
        assert {t: count_rows(db, t) for t in counts} == counts

    def test_backwards_transition_allowed(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Rework")
        tasks_mod.update_task_status(db, "rework", "review")
        task = tasks_mod.update_task_status(db, "rework", "in_progress")
        assert task.status == "in_progress"

    def test_done_changes_only_status_and_updated_at(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Done test")
        db.execute("UPDATE tasks SET updated_at = '2000-01-01 00:00:00' WHERE id = 'done-test'")
        db.commit()
        before = dict(db.execute("SELECT * FROM tasks WHERE id = 'done-test'").fetchone())

        tasks_mod.update_task_status(db, "done-test", "done")

        after = dict(db.execute("SELECT * FROM tasks WHERE id = 'done-test'").fetchone())
        changed = {k for k in before if before[k] != after[k]}
        assert changed == {"status", "updated_at"}

    def test_same_status_still_logged(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Twice")
        tasks_mod.update_task_status(db, "twice", "review")
        tasks_mod.update_task_status(db, "twice", "review")
        changed = activity_mod.list_activities(db, workspace.id, "task_status_changed")
        assert len(changed) == 2

    def test_invalid_status_rejected_before_write(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Strict")
        before = count_rows(db, "activities")
        with pytest.raises(ValidationError, match="Invalid task status"):
            tasks_mod.update_task_status(db, "strict", "todo")
        assert tasks_mod.get_task(db, "strict").status == "planning"
        assert count_rows(db, "activities") == before

    def test_missing_task_is_noop(self, db, workspace):
        before = count_rows(db, "activities")
        assert tasks_mod.update_task_status(db, "ghost", "done") is None
        assert count_rows(db, "activities") == before


class TestAssign:
    def test_assign_many(self, db, workspace, squad):
        tej, roman = squad
        tasks_mod.create_task(db, workspace.id, "Pair up")
        task = tasks_mod.assign_task(db, "pair-up", [tej.id, roman.id])
        assert set(task.assignee_ids) == {tej.id, roman.id}
        assert task.status == "assigned"

    def test_one_notification_per_agent(self, db, workspace, squad):
        tej, roman = squad
        tasks_mod.create_task(db, workspace.id, "Pair up")
        tasks_mod.assign_task(db, "pair-up", [tej.id, roman.id])
        for agent in (tej, roman):
            pending = notifications_mod.list_undelivered(db, agent.id)
            assert len(pending) == 1
            assert pending[0].content == "You've been assigned a task: Pair up"
            assert pending[0].task_id == "pair-up"
            assert pending[0].delivered is False

    def test_single_agent_id(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Solo")
        task = tasks_mod.assign_task(db, "solo", tej.id)
        assert task.assignee_ids == [tej.id]

    def test_forces_assigned_from_any_status(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Late reassignment")
        tasks_mod.update_task_status(db, "late-reassignment", "done")
        task = tasks_mod.assign_task(db, "late-reassignment", tej.id)
        assert task.status == "assigned"

    def test_logs_one_activity(self, db, workspace, squad):
        tej, roman = squad
        tasks_mod.create_task(db, workspace.id, "Logged")
        tasks_mod.assign_task(db, "logged", [tej.id, roman.id])
        assigned = activity_mod.list_activities(db, workspace.id, "task_assigned")
        assert len(assigned) == 1
        assert assigned[0].message == "Task assigned to Tej, Roman"
        assert assigned[0].agent_id == tej.id

    def test_every_call_notifies_whole_set(self, db, workspace, squad):
        tej, roman = squad
        tasks_mod.create_task(db, workspace.id, "Grow team")
        tasks_mod.assign_task(db, "grow-team", tej.id)
        tasks_mod.assign_task(db, "grow-team", [tej.id, roman.id])
        assert len(notifications_mod.list_undelivered(db, tej.id)) == 2
        assert len(notifications_mod.list_undelivered(db, roman.id)) == 1

    def test_create_time_assignee_notified_on_assign(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Quiet", assignee_ids=[tej.id])
        tasks_mod.assign_task(db, "quiet", [tej.id])
        [note] = notifications_mod.list_undelivered(db, tej.id)
        assert note.content == "You've been assigned a task: Quiet"
        assert note.task_id == "quiet"

    def test_reassignment_replaces_set(self, db, workspace, squad):
        tej, roman = squad
        tasks_mod.create_task(db, workspace.id, "Handover")
        tasks_mod.assign_task(db, "handover", tej.id)
        task = tasks_mod.assign_task(db, "handover", roman.id)
        assert task.assignee_ids == [roman.id]

    def test_duplicates_collapsed(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Dupes")
        task = tasks_mod.assign_task(db, "dupes", [tej.id, tej.id])
        assert task.assignee_ids == [tej.id]
        assert len(notifications_mod.list_undelivered(db, tej.id)) == 1

    def test_sets_current_task(self, db, workspace, squad):
        from mission_control.core import agents as agents_mod

        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Focus")
        tasks_mod.assign_task(db, "focus", tej.id)
        assert agents_mod.get_agent(db, tej.id).current_task_id == "focus"

    def test_missing_task_is_noop(self, db, workspace, squad):
        tej, _ = squad
        assert tasks_mod.assign_task(db, "ghost", tej.id) is None
        assert count_rows(db, "notifications") == 0

    def test_unknown_agent_rejected_before_write(self, db, workspace, squad):
        tej, _ = squad
        tasks_mod.create_task(db, workspace.id, "Careful")
        with pytest.raises(ValidationError, match="Agent not found"):
            tasks_mod.assign_task(db, "careful", [tej.id, "ghost"])
        task = tasks_mod.get_task(db, "careful")
        assert task.status == "planning"
        assert task.assignee_ids == []
        assert count_rows(db, "notifications") == 0

    def test_agent_from_other_workspace_rejected(self, db, workspace):
        from mission_control.core import agents as agents_mod
        from mission_control.core import workspaces as workspaces_mod

        other = workspaces_mod.create_workspace(db, "Other")
        outsider = agents_mod.create_agent(db, other.id, "Outsider", "Spy", "agent:outsider:main")
        tasks_mod.create_task(db, workspace.id, "Private")
        with pytest.raises(ValidationError, match="not in workspace"):
            tasks_mod.assign_task(db, "private", outsider.id)

    def test_empty_list_rejected(self, db, workspace):
        tasks_mod.create_task(db, workspace.id, "Nobody")
        with pytest.raises(ValidationError):
            tasks_mod.assign_task(db, "nobody", [])
