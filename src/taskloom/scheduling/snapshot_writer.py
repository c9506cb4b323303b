"""Writes the read-only task snapshot that sandboxed agents read."""

from __future__ import annotations

from typing import Any

from taskloom.groups.paths import GroupPaths
from taskloom.infrastructure.config import MAIN_GROUP_FOLDER
from taskloom.ipc.transport import atomic_write_json
from taskloom.scheduling.task_service import TaskManager
from taskloom.scheduling.types import ScheduledTask


def snapshot_entry(task: ScheduledTask) -> dict[str, Any]:
    return {
        "id": task.id,
        "groupFolder": task.group_folder,
        "prompt": task.prompt,
        "schedule_type": task.schedule_type,
        "schedule_value": task.schedule_value,
        "status": task.status,
        "next_run": task.next_run,
        "last_run": task.last_run,
        "last_result": task.last_result,
    }


class SnapshotWriter:
    """Writes ``current_tasks.json`` per group. Only main sees every group's tasks."""

    def __init__(self, task_manager: TaskManager) -> None:
        self._task_manager = task_manager

    def write_tasks(self, group_folder: str, is_main: bool, tasks: list[ScheduledTask]) -> None:
        visible = tasks if is_main else [t for t in tasks if t.group_folder == group_folder]
        atomic_write_json(GroupPaths.tasks_snapshot(group_folder), [snapshot_entry(t) for t in visible])

    def refresh_tasks(self, group_folder: str, is_main: bool) -> None:
        """Refresh one group's snapshot from the database."""
        self.write_tasks(group_folder, is_main, self._task_manager.get_all())

    def refresh_all(self, group_folders: list[str]) -> None:
        """Refresh several groups from a single read of the store."""
        tasks = self._task_manager.get_all()
        for folder in group_folders:
            self.write_tasks(folder, folder == MAIN_GROUP_FOLDER, tasks)
