"""Task IPC handlers: schedule, pause, resume, cancel.

Handlers apply commands through the same ``TaskControl`` that in-process
callers use, so isolation rules are identical. Delivery is at-least-once:
a replayed schedule is recognised by its task id, and a replayed
pause/resume/cancel of a missing task is rejected and dropped.
"""

from __future__ import annotations

from taskloom.infrastructure.logger import logger
from taskloom.ipc.commands import CancelTaskCommand, PauseTaskCommand, ResumeTaskCommand, ScheduleTaskCommand
from taskloom.ipc.dispatcher import HandlerContext, IpcCommandHandler, IpcHandlerError
from taskloom.scheduling.control import ToolResult


def _check(result: ToolResult, context: HandlerContext, **details: str) -> None:
    if result.is_error:
        raise IpcHandlerError(result.text, {"sourceGroup": context.source_group, **details})


class ScheduleTaskHandler(IpcCommandHandler):
    command = "schedule_task"

    async def execute(self, payload: ScheduleTaskCommand, context: HandlerContext) -> None:
        if context.deps.task_manager.get_by_id(payload.task_id):
            logger.info("Duplicate schedule_task ignored", task_id=payload.task_id, source_group=context.source_group)
            return
        control = context.deps.control_for(context.source_group, context.is_main)
        result = await control.schedule_task(
            prompt=payload.prompt,
            schedule_type=payload.schedule_type,
            schedule_value=payload.schedule_value,
            target_group=payload.target_group,
            task_id=payload.task_id,
        )
        _check(result, context, taskId=payload.task_id, scheduleType=payload.schedule_type, scheduleValue=payload.schedule_value)
        logger.info("Task created via IPC", task_id=payload.task_id, source_group=context.source_group)


class PauseTaskHandler(IpcCommandHandler):
    command = "pause_task"

    async def execute(self, payload: PauseTaskCommand, context: HandlerContext) -> None:
        control = context.deps.control_for(context.source_group, context.is_main)
        _check(await control.pause_task(payload.task_id), context, taskId=payload.task_id)
        logger.info("Task paused via IPC", task_id=payload.task_id, source_group=context.source_group)


class ResumeTaskHandler(IpcCommandHandler):
    command = "resume_task"

    async def execute(self, payload: ResumeTaskCommand, context: HandlerContext) -> None:
        control = context.deps.control_for(context.source_group, context.is_main)
        _check(await control.resume_task(payload.task_id), context, taskId=payload.task_id)
        logger.info("Task resumed via IPC", task_id=payload.task_id, source_group=context.source_group)


class CancelTaskHandler(IpcCommandHandler):
    command = "cancel_task"

    async def execute(self, payload: CancelTaskCommand, context: HandlerContext) -> None:
        control = context.deps.control_for(context.source_group, context.is_main)
        _check(await control.cancel_task(payload.task_id), context, taskId=payload.task_id)
        logger.info("Task cancelled via IPC", task_id=payload.task_id, source_group=context.source_group)
