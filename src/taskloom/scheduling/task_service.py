"""Task manager — centralized task lifecycle."""

from __future__ import annotations

import random
import string
from datetime import datetime
from typing import Callable

from taskloom.groups.authorization import AuthContext, AuthorizationPolicy
from taskloom.infrastructure.config import RESULT_SUMMARY_LENGTH, RUN_LOG_RESULT_LENGTH, TASK_RUN_LOG_LIMIT
from taskloom.infrastructure.logger import logger
from taskloom.scheduling.errors import AccessDeniedError, InvalidScheduleError, TaskNotFoundError
from taskloom.scheduling.repository import TaskRepository
from taskloom.scheduling.schedule import next_run, to_iso, utc_now
from taskloom.scheduling.types import ScheduledTask, TaskRunLog


def generate_task_id(now: datetime | None = None) -> str:
    rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"task-{int((now or utc_now()).timestamp() * 1000)}-{rand}"


def _truncate(text: str | None, limit: int) -> str | None:
    if text is None or len(text) <= limit:
        return text
    return text[:limit]


class TaskManager:
    """Owns every task mutation and all schedule math.

    ``clock`` returns the current time; tests pass a fixed one.
    """

    def __init__(self, task_repo: TaskRepository, clock: Callable[[], datetime] = utc_now) -> None:
        self._task_repo = task_repo
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # --- CRUD ---

    def create(
        self,
        group_folder: str,
        chat_jid: str,
        prompt: str,
        schedule_type: str,
        schedule_value: str,
        task_id: str | None = None,
    ) -> ScheduledTask:
        """Persist a new active task. Nothing is written if the schedule is rejected."""
        now = self._clock()
        first_run = next_run(schedule_type, schedule_value, now)
        if first_run is None:
            raise InvalidScheduleError(f"Invalid schedule: {schedule_type} {schedule_value} would never run")

        task = ScheduledTask(
            id=task_id or generate_task_id(now),
            group_folder=group_folder,
            chat_jid=chat_jid,
            prompt=prompt,
            schedule_type=schedule_type,  # type: ignore[arg-type]
            schedule_value=schedule_value,
            next_run=to_iso(first_run),
            status="active",
            created_at=to_iso(now),
        )
        self._task_repo.create_task(task)
        logger.info("Task created", task_id=task.id, group=group_folder, schedule_type=schedule_type, next_run=task.next_run)
        return task

    def get_by_id(self, id: str) -> ScheduledTask | None:
        return self._task_repo.get_task_by_id(id)

    def get_all(self) -> list[ScheduledTask]:
        return self._task_repo.get_all_tasks()

    def get_for_group(self, group_folder: str) -> list[ScheduledTask]:
        return self._task_repo.get_tasks_for_group(group_folder)

    def get_run_logs(self, id: str, limit: int = TASK_RUN_LOG_LIMIT) -> list[TaskRunLog]:
        return self._task_repo.get_task_run_logs(id, limit)

    def update(
        self,
        id: str,
        prompt: str | None = None,
        schedule_type: str | None = None,
        schedule_value: str | None = None,
    ) -> ScheduledTask:
        task = self._require(id)
        updates: dict[str, str | None] = {}
        if prompt:
            updates["prompt"] = prompt
        if schedule_type:
            updates["schedule_type"] = schedule_type
        if schedule_value:
            updates["schedule_value"] = schedule_value

        if schedule_type or schedule_value:
            merged_type = schedule_type or task.schedule_type
            merged_value = schedule_value or task.schedule_value
            recomputed = next_run(merged_type, merged_value, self._clock())
            if recomputed is None and merged_type != "once":
                raise InvalidScheduleError(f"Invalid schedule: {merged_type} {merged_value} would never run")
            updates["next_run"] = to_iso(recomputed) if recomputed else None

        if not self._task_repo.update_task(id, **updates):
            raise TaskNotFoundError(id)
        return self._require(id)

    # --- Lifecycle ---

    def pause(self, id: str) -> None:
        """Mark paused. next_run is left as is."""
        if not self._task_repo.update_task(id, status="paused"):
            raise TaskNotFoundError(id)

    def resume(self, id: str) -> ScheduledTask:
        """Reactivate, recomputing next_run from the current time.

        A once task whose time passed while paused comes back active with
        next_run None and is never selected as due.
        """
        task = self._require(id)
        recomputed = next_run(task.schedule_type, task.schedule_value, self._clock())
        next_iso = to_iso(recomputed) if recomputed else None
        if not self._task_repo.update_task(id, status="active", next_run=next_iso):
            raise TaskNotFoundError(id)
        return task.model_copy(update={"status": "active", "next_run": next_iso})

    def cancel(self, id: str) -> None:
        if not self._task_repo.delete_task(id):
            raise TaskNotFoundError(id)

    # --- Scheduling ---

    def get_due_tasks(self, now: datetime | None = None) -> list[ScheduledTask]:
        return self._task_repo.get_due_tasks(to_iso(now or self._clock()))

    def complete_run(
        self, task: ScheduledTask, duration_ms: int, result: str | None, error: str | None
    ) -> str | None:
        """Append the run log and reschedule. Returns the new next_run."""
        finished = self._clock()
        self._task_repo.log_task_run(TaskRunLog(
            task_id=task.id,
            run_at=to_iso(finished),
            duration_ms=duration_ms,
            status="error" if error else "success",
            result=_truncate(result, RUN_LOG_RESULT_LENGTH),
            error=_truncate(error, RUN_LOG_RESULT_LENGTH),
        ))

        next_iso = self._next_run_after_execution(task, finished)
        result_summary = f"Error: {error}" if error else (result or "Completed")
        self._task_repo.update_task_after_run(
            task.id, next_iso, to_iso(finished), _truncate(result_summary, RESULT_SUMMARY_LENGTH) or ""
        )
        return next_iso

    # --- Authorization ---

    def get_authorized(self, task_id: str, source_group: str, is_main: bool) -> ScheduledTask:
        task = self._task_repo.get_task_by_id(task_id)
        if not task:
            raise TaskNotFoundError(task_id)
        auth = AuthorizationPolicy(AuthContext(source_group=source_group, is_main=is_main))
        if not auth.can_manage_task(task.group_folder):
            raise AccessDeniedError(task_id, source_group)
        return task

    # --- Internal ---

    def _require(self, id: str) -> ScheduledTask:
        task = self._task_repo.get_task_by_id(id)
        if not task:
            raise TaskNotFoundError(id)
        return task

    def _next_run_after_execution(self, task: ScheduledTask, finished: datetime) -> str | None:
        # Recurring tasks are rescheduled from completion time, not the previous next_run.
        if task.schedule_type == "once":
            return None
        following = next_run(task.schedule_type, task.schedule_value, finished)
        return to_iso(following) if following else None
