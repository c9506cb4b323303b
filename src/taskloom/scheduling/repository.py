"""Scheduled task CRUD, due-task selection, and run logging."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from taskloom.scheduling.errors import StoreError
from taskloom.scheduling.types import ScheduledTask, TaskRunLog

# Columns update_task may touch. id, group_folder and created_at are immutable.
_MUTABLE_COLUMNS = frozenset({
    "chat_jid", "prompt", "schedule_type", "schedule_value",
    "status", "next_run", "last_run", "last_result",
})


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as err:
        raise StoreError(f"{operation} failed: {err}") from err


class TaskRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def create_task(self, task: ScheduledTask) -> None:
        with _store_errors("create_task"):
            self._db.execute(
                """INSERT INTO scheduled_tasks
                   (id, group_folder, chat_jid, prompt, schedule_type, schedule_value, next_run, last_run, last_result, status, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    task.id, task.group_folder, task.chat_jid, task.prompt,
                    task.schedule_type, task.schedule_value, task.next_run,
                    task.last_run, task.last_result, task.status, task.created_at,
                ),
            )
            self._db.commit()

    def get_task_by_id(self, id: str) -> ScheduledTask | None:
        with _store_errors("get_task_by_id"):
            row = self._db.execute("SELECT * FROM scheduled_tasks WHERE id = ?", (id,)).fetchone()
        if not row:
            return None
        return self._row_to_task(row)

    def get_tasks_for_group(self, group_folder: str) -> list[ScheduledTask]:
        with _store_errors("get_tasks_for_group"):
            rows = self._db.execute(
                "SELECT * FROM scheduled_tasks WHERE group_folder = ? ORDER BY created_at DESC", (group_folder,)
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def get_all_tasks(self) -> list[ScheduledTask]:
        with _store_errors("get_all_tasks"):
            rows = self._db.execute("SELECT * FROM scheduled_tasks ORDER BY created_at DESC").fetchall()
        return [self._row_to_task(row) for row in rows]

    def update_task(self, id: str, **updates: str | None) -> bool:
        """Apply the given columns in one UPDATE. ``None`` clears a column.

        Returns False if no row has this id.
        """
        unknown = set(updates) - _MUTABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")
        if not updates:
            return self.get_task_by_id(id) is not None
        assignments = ", ".join(f"{key} = ?" for key in updates)
        with _store_errors("update_task"):
            result = self._db.execute(
                f"UPDATE scheduled_tasks SET {assignments} WHERE id = ?", [*updates.values(), id]
            )
            self._db.commit()
        return result.rowcount > 0

    def delete_task(self, id: str) -> bool:
        with _store_errors("delete_task"):
            result = self._db.execute("DELETE FROM scheduled_tasks WHERE id = ?", (id,))
            self._db.commit()
        return result.rowcount > 0

    def get_due_tasks(self, now: str) -> list[ScheduledTask]:
        with _store_errors("get_due_tasks"):
            rows = self._db.execute(
                """SELECT * FROM scheduled_tasks
                   WHERE status = 'active' AND next_run IS NOT NULL AND next_run <= ?
                   ORDER BY next_run""",
                (now,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def update_task_after_run(self, id: str, next_run: str | None, last_run: str, last_result: str) -> None:
        with _store_errors("update_task_after_run"):
            self._db.execute(
                "UPDATE scheduled_tasks SET next_run = ?, last_run = ?, last_result = ? WHERE id = ?",
                (next_run, last_run, last_result, id),
            )
            self._db.commit()

    def log_task_run(self, log: TaskRunLog) -> None:
        with _store_errors("log_task_run"):
            self._db.execute(
                """INSERT INTO task_run_logs (task_id, run_at, duration_ms, status, result, error)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (log.task_id, log.run_at, log.duration_ms, log.status, log.result, log.error),
            )
            self._db.commit()

    def get_task_run_logs(self, task_id: str, limit: int) -> list[TaskRunLog]:
        """Most recent runs first."""
        with _store_errors("get_task_run_logs"):
            rows = self._db.execute(
                """SELECT * FROM task_run_logs WHERE task_id = ?
                   ORDER BY run_at DESC, id DESC LIMIT ?""",
                (task_id, limit),
            ).fetchall()
        return [
            TaskRunLog(
                task_id=row["task_id"],
                run_at=row["run_at"],
                duration_ms=row["duration_ms"],
                status=row["status"],
                result=row["result"],
                error=row["error"],
            )
            for row in rows
        ]

    def _row_to_task(self, row: sqlite3.Row) -> ScheduledTask:
        return ScheduledTask(
            id=row["id"],
            group_folder=row["group_folder"],
            chat_jid=row["chat_jid"],
            prompt=row["prompt"],
            schedule_type=row["schedule_type"],
            schedule_value=row["schedule_value"],
            next_run=row["next_run"],
            last_run=row["last_run"],
            last_result=row["last_result"],
            status=row["status"],
            created_at=row["created_at"],
        )
