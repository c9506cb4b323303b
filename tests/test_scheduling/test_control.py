"""Tests for the task control surface and tenant isolation."""

from datetime import timedelta

import pytest

from taskloom.groups.authorization import AuthContext
from taskloom.groups.types import jid_for_folder
from taskloom.scheduling.control import TOOLS, TaskControl
from taskloom.scheduling.schedule import to_iso
from taskloom.scheduling.task_service import TaskManager


@pytest.fixture
def task_manager(db, clock):
    return TaskManager(db.task_repo, clock=clock)


@pytest.fixture
def control_for(task_manager, groups, sender):
    def make(folder: str, send=None) -> TaskControl:
        return TaskControl(
            task_manager,
            AuthContext(source_group=folder, is_main=folder == "main"),
            jid_for_folder(groups, folder),
            send or sender,
            resolve_jid=lambda f: jid_for_folder(groups, f),
        )

    return make


class TestScheduleTask:
    @pytest.mark.asyncio
    async def test_schedules_for_own_group(self, control_for, task_manager):
        result = await control_for("alpha").schedule_task("Check news", "interval", "60000")
        assert not result.is_error
        assert "Task scheduled successfully" in result.text
        [task] = task_manager.get_all()
        assert task.group_folder == "alpha"
        assert task.chat_jid == "alpha@chat"

    @pytest.mark.asyncio
    async def test_non_main_target_group_ignored(self, control_for, task_manager):
        await control_for("alpha").schedule_task("Sneaky", "interval", "60000", target_group="beta")
        [task] = task_manager.get_all()
        assert task.group_folder == "alpha"

    @pytest.mark.asyncio
    async def test_main_can_target_other_group(self, control_for, task_manager):
        result = await control_for("main").schedule_task("For beta", "interval", "60000", target_group="beta")
        assert not result.is_error
        [task] = task_manager.get_all()
        assert task.group_folder == "beta"
        assert task.chat_jid == "beta@chat"

    @pytest.mark.asyncio
    async def test_main_target_unregistered_group(self, control_for, task_manager):
        result = await control_for("main").schedule_task("Lost", "interval", "60000", target_group="ghost")
        assert result.is_error
        assert "not registered" in result.text
        assert task_manager.get_all() == []

    @pytest.mark.asyncio
    async def test_past_once_is_error_result(self, control_for, task_manager):
        result = await control_for("alpha").schedule_task("Late", "once", "2020-01-01T00:00:00Z")
        assert result.is_error
        assert result.text.startswith("Error:")
        assert task_manager.get_all() == []

    @pytest.mark.asyncio
    async def test_invalid_cron_is_error_result(self, control_for):
        result = await control_for("alpha").schedule_task("Bad", "cron", "not a cron")
        assert result.is_error
        assert "Invalid cron" in result.text

    @pytest.mark.asyncio
    async def test_interval_out_of_range_is_error_result(self, control_for, task_manager):
        result = await control_for("alpha").schedule_task("Huge", "interval", "100000000000000000")
        assert result.is_error
        assert "out of range" in result.text
        assert task_manager.get_all() == []

    @pytest.mark.asyncio
    async def test_unknown_schedule_type_fails_validation(self, control_for, task_manager):
        result = await control_for("alpha").schedule_task("Bad", "weekly", "1")
        assert result.is_error
        assert "invalid arguments for schedule_task" in result.text
        assert task_manager.get_all() == []


class TestListAndGet:
    @pytest.mark.asyncio
    async def test_list_scoped_to_group(self, control_for, task_manager):
        task_manager.create("alpha", "alpha@chat", "Alpha task", "interval", "60000")
        task_manager.create("beta", "beta@chat", "Beta task", "interval", "60000")

        alpha = await control_for("alpha").list_tasks()
        assert "Alpha task" in alpha.text
        assert "Beta task" not in alpha.text

        main = await control_for("main").list_tasks()
        assert "Found 2 task(s)" in main.text

    @pytest.mark.asyncio
    async def test_list_empty(self, control_for):
        result = await control_for("alpha").list_tasks()
        assert result.text == "No scheduled tasks found."

    @pytest.mark.asyncio
    async def test_get_includes_recent_runs(self, control_for, task_manager, clock):
        task = task_manager.create("alpha", "alpha@chat", "Alpha task", "interval", "60000")
        for i in range(7):
            clock.now += timedelta(minutes=1)
            task_manager.complete_run(task, 100, f"run {i}", None)

        result = await control_for("alpha").get_task(task.id)
        assert "--- Recent Runs ---" in result.text
        runs = result.text.split("--- Recent Runs ---\n")[1].splitlines()
        assert len(runs) == 5
        assert runs[0].startswith(to_iso(clock.now))

    @pytest.mark.asyncio
    async def test_get_missing(self, control_for):
        result = await control_for("alpha").get_task("task-missing")
        assert result.is_error
        assert result.text == "Error: Task not found: task-missing"


class TestIsolation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["get_task", "pause_task", "resume_task", "cancel_task"])
    async def test_other_group_denied(self, control_for, task_manager, operation):
        task = task_manager.create("alpha", "alpha@chat", "Alpha task", "interval", "60000")
        result = await getattr(control_for("beta"), operation)(task.id)
        assert result.is_error
        assert "Access denied" in result.text
        stored = task_manager.get_by_id(task.id)
        assert stored is not None
        assert stored.status == "active"

    @pytest.mark.asyncio
    async def test_other_group_update_denied(self, control_for, task_manager):
        task = task_manager.create("alpha", "alpha@chat", "Alpha task", "interval", "60000")
        result = await control_for("beta").update_task(task.id, prompt="hijacked")
        assert result.is_error
        assert task_manager.get_by_id(task.id).prompt == "Alpha task"

    @pytest.mark.asyncio
    async def test_main_can_manage(self, control_for, task_manager):
        task = task_manager.create("alpha", "alpha@chat", "Alpha task", "interval", "60000")
        result = await control_for("main").pause_task(task.id)
        assert not result.is_error
        assert task_manager.get_by_id(task.id).status == "paused"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_pause_resume_cancel(self, control_for, task_manager, clock):
        control = control_for("alpha")
        task = task_manager.create("alpha", "alpha@chat", "Alpha task", "interval", "60000")

        assert (await control.pause_task(task.id)).text == f"Task {task.id} paused."
        clock.now += timedelta(hours=1)
        resumed = await control.resume_task(task.id)
        assert resumed.text == f"Task {task.id} resumed. Next run: {to_iso(clock.now + timedelta(minutes=1))}"

        assert (await control.cancel_task(task.id)).text == f"Task {task.id} cancelled and deleted."
        again = await control.cancel_task(task.id)
        assert again.is_error
        assert "Task not found" in again.text

    @pytest.mark.asyncio
    async def test_update(self, control_for, task_manager):
        task = task_manager.create("alpha", "alpha@chat", "Old", "interval", "60000")
        result = await control_for("alpha").update_task(task.id, prompt="New", schedule_value="120000")
        assert "Task updated!" in result.text
        stored = task_manager.get_by_id(task.id)
        assert stored.prompt == "New"
        assert stored.schedule_value == "120000"


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_sends_to_own_chat(self, control_for, sender):
        result = await control_for("alpha").send_message("hello", target_jid="beta@chat")
        assert result.text == "Message sent successfully."
        assert sender.sent == [("alpha@chat", "hello")]

    @pytest.mark.asyncio
    async def test_main_can_pick_target(self, control_for, sender):
        await control_for("main").send_message("hi beta", target_jid="beta@chat")
        assert sender.sent == [("beta@chat", "hi beta")]

    @pytest.mark.asyncio
    async def test_failure_reported(self, control_for, failing_sender):
        result = await control_for("alpha", send=failing_sender).send_message("hello")
        assert result.is_error
        assert result.text.startswith("Failed to send message:")


class TestToolSurface:
    def test_tool_names(self):
        assert [t.name for t in TOOLS] == [
            "schedule_task", "list_tasks", "get_task", "update_task",
            "pause_task", "resume_task", "cancel_task", "send_message",
        ]

    def test_schema(self):
        schema = TOOLS[0].to_schema()
        assert schema["function"]["name"] == "schedule_task"
        params = schema["function"]["parameters"]
        assert set(params["required"]) == {"prompt", "schedule_type", "schedule_value"}

    @pytest.mark.asyncio
    async def test_call_unknown_tool(self, control_for):
        result = await control_for("alpha").call("drop_tables")
        assert result.is_error

    @pytest.mark.asyncio
    async def test_call_missing_arguments(self, control_for):
        result = await control_for("alpha").call("get_task", {})
        assert result.is_error
        assert "task_id" in result.text
