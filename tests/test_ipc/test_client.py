"""Tests for the sandbox-side IPC client."""

import json

import pytest

from taskloom.ipc.client import IpcClient
from taskloom.ipc.commands import parse_command
from taskloom.ipc.transport import atomic_write_json


@pytest.fixture
def client(tmp_path) -> IpcClient:
    return IpcClient(tmp_path / "alpha", "alpha", "alpha@chat")


@pytest.fixture
def main_client(tmp_path) -> IpcClient:
    return IpcClient(tmp_path / "main", "main", "main@chat", is_main=True)


def _only_command(directory):
    [path] = list(directory.glob("*.json"))
    return parse_command(json.loads(path.read_text()))


class TestFromEnv:
    def test_reads_environment(self, tmp_path):
        client = IpcClient.from_env({
            "TASKLOOM_IPC_DIR": str(tmp_path),
            "TASKLOOM_GROUP_FOLDER": "main",
            "TASKLOOM_CHAT_JID": "main@chat",
            "TASKLOOM_IS_MAIN": "1",
        })
        assert client.ipc_dir == tmp_path
        assert client.is_main is True

    def test_missing_variables(self):
        with pytest.raises(ValueError, match="TASKLOOM_CHAT_JID"):
            IpcClient.from_env({"TASKLOOM_IPC_DIR": "/tmp", "TASKLOOM_GROUP_FOLDER": "alpha"})


class TestWrites:
    def test_schedule_writes_command_with_task_id(self, client):
        result = client.schedule_task("Check", "interval", "60000")
        assert not result.is_error
        command = _only_command(client.tasks_dir)
        assert command.type == "schedule_task"
        assert command.task_id.startswith("task-")
        assert command.task_id in result.text
        assert command.group_folder == "alpha"

    def test_schedule_rejects_bad_cron_locally(self, client):
        result = client.schedule_task("Check", "cron", "nope")
        assert result.is_error
        assert not client.tasks_dir.exists()

    def test_schedule_rejects_past_once_locally(self, client):
        result = client.schedule_task("Check", "once", "2020-01-01T00:00:00Z")
        assert result.is_error
        assert "past" in result.text

    def test_schedule_rejects_out_of_range_interval_locally(self, client):
        result = client.schedule_task("Check", "interval", "100000000000000000")
        assert result.is_error
        assert not client.tasks_dir.exists()

    def test_target_group_only_for_main(self, client, main_client):
        client.schedule_task("Check", "interval", "60000", target_group="beta")
        assert _only_command(client.tasks_dir).target_group is None

        main_client.schedule_task("Check", "interval", "60000", target_group="beta")
        assert _only_command(main_client.tasks_dir).target_group == "beta"

    def test_send_message_bound_to_own_chat(self, client):
        result = client.send_message("hello", target_jid="beta@chat")
        assert result.text.startswith("Message queued for delivery")
        command = _only_command(client.messages_dir)
        assert command.chat_jid == "alpha@chat"
        assert command.text == "hello"

    @pytest.mark.parametrize(
        "method,command_type",
        [("pause_task", "pause_task"), ("resume_task", "resume_task"), ("cancel_task", "cancel_task")],
    )
    def test_lifecycle_commands(self, client, method, command_type):
        result = getattr(client, method)("task-1")
        assert not result.is_error
        command = _only_command(client.tasks_dir)
        assert command.type == command_type
        assert command.task_id == "task-1"

    def test_empty_task_id_rejected(self, client):
        result = client.cancel_task("")
        assert result.is_error
        assert not client.tasks_dir.exists()


class TestReads:
    def test_list_without_snapshot(self, client):
        assert client.list_tasks().text == "No scheduled tasks found."

    def test_list_and_get_from_snapshot(self, client):
        atomic_write_json(client.snapshot_path, [{
            "id": "task-1",
            "groupFolder": "alpha",
            "prompt": "Check the news",
            "schedule_type": "interval",
            "schedule_value": "60000",
            "status": "active",
            "next_run": "2026-01-01T09:01:00.000+00:00",
            "last_run": None,
            "last_result": None,
        }])
        listed = client.list_tasks()
        assert "[task-1]" in listed.text
        assert "Check the news (interval" in listed.text
        assert "next: 2026-01-01T09:01:00.000+00:00" in listed.text

        detail = client.get_task("task-1")
        assert "Last run: Never" in detail.text

        missing = client.get_task("task-2")
        assert missing.is_error

    def test_corrupt_snapshot(self, client):
        client.snapshot_path.parent.mkdir(parents=True)
        client.snapshot_path.write_text("{not json")
        assert client.list_tasks().is_error

    def test_long_prompt_truncated_in_list(self, client):
        atomic_write_json(client.snapshot_path, [{
            "id": "task-1",
            "prompt": "x" * 80,
            "schedule_type": "interval",
            "schedule_value": "60000",
            "status": "active",
        }])
        assert f"[task-1] {'x' * 50}... (interval" in client.list_tasks().text
