"""Task engine error taxonomy."""

from __future__ import annotations


class TaskloomError(Exception):
    """Base class for errors raised by the task engine."""


class InvalidScheduleError(TaskloomError, ValueError):
    """Schedule is malformed or would never fire."""


class ScheduleError(InvalidScheduleError):
    """Raised by the schedule calculator. ``kind`` says what was wrong."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class TaskNotFoundError(TaskloomError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class AccessDeniedError(TaskloomError, PermissionError):
    def __init__(self, task_id: str, source_group: str) -> None:
        super().__init__(f"Access denied: task {task_id} belongs to another group")
        self.task_id = task_id
        self.source_group = source_group


class AgentRuntimeError(TaskloomError, RuntimeError):
    """The agent runtime failed to produce a result."""


class StoreError(TaskloomError):
    """Persistence I/O failure. Retried on the next poll."""
