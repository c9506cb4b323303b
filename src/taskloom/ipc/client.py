"""Sandbox-side task client.

Runs inside the agent's sandbox, which has no store access. Mutations are
written as command files for the host to apply later; reads come from the
``current_tasks.json`` snapshot the host refreshes, so they can be stale.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from taskloom.ipc.commands import (
    CancelTaskCommand,
    IpcCommand,
    PauseTaskCommand,
    ResumeTaskCommand,
    ScheduleTaskCommand,
    SendMessageCommand,
)
from taskloom.ipc.transport import write_command_file
from taskloom.scheduling.control import ToolResult
from taskloom.scheduling.errors import ScheduleError
from taskloom.scheduling.schedule import next_run, utc_now
from taskloom.scheduling.task_service import generate_task_id


def _preview(prompt: str, limit: int = 50) -> str:
    return prompt if len(prompt) <= limit else f"{prompt[:limit]}..."


class IpcClient:
    def __init__(self, ipc_dir: Path, group_folder: str, chat_jid: str, is_main: bool = False) -> None:
        self.ipc_dir = ipc_dir
        self.group_folder = group_folder
        self.chat_jid = chat_jid
        self.is_main = is_main

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> IpcClient:
        env = os.environ if environ is None else environ
        missing = [k for k in ("TASKLOOM_IPC_DIR", "TASKLOOM_GROUP_FOLDER", "TASKLOOM_CHAT_JID") if not env.get(k)]
        if missing:
            raise ValueError(f"Missing environment: {', '.join(missing)}")
        return cls(
            ipc_dir=Path(env["TASKLOOM_IPC_DIR"]),
            group_folder=env["TASKLOOM_GROUP_FOLDER"],
            chat_jid=env["TASKLOOM_CHAT_JID"],
            is_main=env.get("TASKLOOM_IS_MAIN") == "1",
        )

    @property
    def messages_dir(self) -> Path:
        return self.ipc_dir / "messages"

    @property
    def tasks_dir(self) -> Path:
        return self.ipc_dir / "tasks"

    @property
    def snapshot_path(self) -> Path:
        return self.ipc_dir / "current_tasks.json"

    # --- Writes ---

    def send_message(self, text: str, target_jid: str | None = None) -> ToolResult:
        jid = target_jid if self.is_main and target_jid else self.chat_jid
        return self._enqueue(
            self.messages_dir,
            lambda: SendMessageCommand(group_folder=self.group_folder, chat_jid=jid, text=text),
            lambda filename: f"Message queued for delivery ({filename})",
        )

    def schedule_task(
        self, prompt: str, schedule_type: str, schedule_value: str, target_group: str | None = None
    ) -> ToolResult:
        # Catch bad schedules here; the host would only log the rejection.
        try:
            if next_run(schedule_type, schedule_value, utc_now()) is None:
                return ToolResult("Error: schedule is in the past, task would never run", is_error=True)
        except ScheduleError as err:
            return ToolResult(f"Error: {err}", is_error=True)

        task_id = generate_task_id()
        return self._enqueue(
            self.tasks_dir,
            lambda: ScheduleTaskCommand(
                group_folder=self.group_folder,
                task_id=task_id,
                prompt=prompt,
                schedule_type=schedule_type,  # type: ignore[arg-type]
                schedule_value=schedule_value,
                target_group=target_group if self.is_main else None,
            ),
            lambda filename: f"Task {task_id} scheduled ({filename}): {schedule_type} - {schedule_value}",
        )

    def pause_task(self, task_id: str) -> ToolResult:
        return self._enqueue(
            self.tasks_dir,
            lambda: PauseTaskCommand(group_folder=self.group_folder, task_id=task_id),
            lambda _filename: f"Task {task_id} pause requested.",
        )

    def resume_task(self, task_id: str) -> ToolResult:
        return self._enqueue(
            self.tasks_dir,
            lambda: ResumeTaskCommand(group_folder=self.group_folder, task_id=task_id),
            lambda _filename: f"Task {task_id} resume requested.",
        )

    def cancel_task(self, task_id: str) -> ToolResult:
        return self._enqueue(
            self.tasks_dir,
            lambda: CancelTaskCommand(group_folder=self.group_folder, task_id=task_id),
            lambda _filename: f"Task {task_id} cancellation requested.",
        )

    # --- Best-effort reads ---

    def list_tasks(self) -> ToolResult:
        try:
            tasks = self._read_snapshot()
        except (OSError, json.JSONDecodeError) as err:
            return ToolResult(f"Error reading tasks: {err}", is_error=True)
        if not tasks:
            return ToolResult("No scheduled tasks found.")
        formatted = "\n".join(
            f"- [{t['id']}] {_preview(t['prompt'])} ({t['schedule_type']}: {t['schedule_value']}) - {t['status']}, next: {t.get('next_run') or 'N/A'}"
            for t in tasks
        )
        return ToolResult(f"Scheduled tasks:\n{formatted}")

    def get_task(self, task_id: str) -> ToolResult:
        try:
            tasks = self._read_snapshot()
        except (OSError, json.JSONDecodeError) as err:
            return ToolResult(f"Error reading tasks: {err}", is_error=True)
        task = next((t for t in tasks if t.get("id") == task_id), None)
        if not task:
            return ToolResult(f"Error: Task not found: {task_id}", is_error=True)
        return ToolResult("\n".join([
            f"ID: {task['id']}",
            f"Group: {task.get('groupFolder', '')}",
            f"Prompt: {task['prompt']}",
            f"Schedule: {task['schedule_type']} ({task['schedule_value']})",
            f"Status: {task['status']}",
            f"Next run: {task.get('next_run') or 'N/A'}",
            f"Last run: {task.get('last_run') or 'Never'}",
            f"Last result: {task.get('last_result') or 'N/A'}",
        ]))

    # --- Internal ---

    def _enqueue(
        self, directory: Path, build: Callable[[], IpcCommand], describe: Callable[[str], str]
    ) -> ToolResult:
        try:
            command = build()
        except ValidationError as err:
            return ToolResult(f"Error: invalid request: {err.errors()[0]['msg']}", is_error=True)
        filename = write_command_file(directory, command.to_json_dict())
        return ToolResult(describe(filename))

    def _read_snapshot(self) -> list[dict[str, Any]]:
        if not self.snapshot_path.exists():
            return []
        return json.loads(self.snapshot_path.read_text())
