"""Task scheduler — polls for due tasks and runs them."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Awaitable, Callable

from taskloom.execution.agent_runtime import AgentRequest, AgentRuntime
from taskloom.groups.authorization import AuthContext
from taskloom.groups.paths import GroupPaths
from taskloom.groups.types import RegisteredGroup, jid_for_folder
from taskloom.infrastructure.config import MAIN_GROUP_FOLDER, SCHEDULER_POLL_INTERVAL
from taskloom.infrastructure.logger import logger
from taskloom.infrastructure.poll_loop import PollLoop, start_poll_loop
from taskloom.scheduling.control import TaskControl
from taskloom.scheduling.snapshot_writer import SnapshotWriter
from taskloom.scheduling.task_service import TaskManager
from taskloom.scheduling.types import ScheduledTask


class SchedulerDependencies:
    def __init__(
        self,
        task_manager: TaskManager,
        agent_runtime: AgentRuntime,
        send_message: Callable[[str, str], Awaitable[None]],
        registered_groups: Callable[[], dict[str, RegisteredGroup]],
        snapshot_writer: SnapshotWriter,
    ) -> None:
        self.task_manager = task_manager
        self.agent_runtime = agent_runtime
        self.send_message = send_message
        self.registered_groups = registered_groups
        self.snapshot_writer = snapshot_writer


def _task_control(task: ScheduledTask, deps: SchedulerDependencies) -> TaskControl:
    # Scheduled runs never get the privileged context, even for main's own tasks.
    return TaskControl(
        deps.task_manager,
        AuthContext(source_group=task.group_folder, is_main=False),
        task.chat_jid,
        deps.send_message,
        resolve_jid=lambda folder: jid_for_folder(deps.registered_groups(), folder),
    )


async def run_task(task: ScheduledTask, deps: SchedulerDependencies) -> str | None:
    """Run a single task and record the outcome. Returns the new next_run."""
    start_time = time.monotonic()
    logger.info("Running scheduled task", task_id=task.id, group=task.group_folder)

    result: str | None = None
    error: str | None = None

    try:
        output = await deps.agent_runtime.run(AgentRequest(
            prompt=task.prompt,
            group_folder=task.group_folder,
            chat_jid=task.chat_jid,
            working_dir=GroupPaths.group_dir(task.group_folder),
            is_main=False,
            tools=_task_control(task, deps),
        ))
        result = output.result
    except Exception as err:
        error = str(err) or type(err).__name__
        logger.error("Task failed", task_id=task.id, error=error)

    duration_ms = int((time.monotonic() - start_time) * 1000)
    next_iso = deps.task_manager.complete_run(task, duration_ms, result, error)
    logger.info("Task completed", task_id=task.id, duration_ms=duration_ms, status="error" if error else "success", next_run=next_iso)

    deps.snapshot_writer.refresh_tasks(task.group_folder, task.group_folder == MAIN_GROUP_FOLDER)
    return next_iso


async def run_due_tasks(deps: SchedulerDependencies, now: datetime | None = None) -> int:
    """One scheduler tick. Returns the number of tasks run."""
    due_tasks = deps.task_manager.get_due_tasks(now)
    if due_tasks:
        logger.info("Found due tasks", count=len(due_tasks))

    ran = 0
    for due in due_tasks:
        # Paused or cancelled since selection
        task = deps.task_manager.get_by_id(due.id)
        if not task or task.status != "active":
            continue
        await run_task(task, deps)
        ran += 1
    return ran


def start_scheduler_loop(deps: SchedulerDependencies) -> PollLoop:
    """Start the scheduler polling loop."""

    async def poll() -> None:
        await run_due_tasks(deps)

    return start_poll_loop("Scheduler", SCHEDULER_POLL_INTERVAL, poll)
