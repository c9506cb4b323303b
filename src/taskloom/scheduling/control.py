"""Agent-callable task control surface.

One ``TaskControl`` is built per caller. The privileged ``main`` group sees
and manages every task; any other group is confined to its own. Domain
failures come back as error text for the agent, never as exceptions;
``StoreError`` is the only thing that propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, Field, ValidationError

from taskloom.groups.authorization import AuthContext, AuthorizationPolicy
from taskloom.infrastructure.config import TASK_RUN_LOG_LIMIT
from taskloom.infrastructure.logger import logger
from taskloom.scheduling.errors import AccessDeniedError, InvalidScheduleError, TaskNotFoundError
from taskloom.scheduling.task_service import TaskManager
from taskloom.scheduling.types import ScheduledTask, TaskRunLog

SendMessageFn = Callable[[str, str], Awaitable[None]]
ResolveJidFn = Callable[[str], str | None]


# --- Request schemas ---


class ScheduleTaskRequest(BaseModel):
    prompt: str = Field(min_length=1, description="What the agent should do when the task runs")
    schedule_type: Literal["cron", "interval", "once"] = Field(
        description="cron=recurring at specific times, interval=recurring every N ms, once=run once at a specific time"
    )
    schedule_value: str = Field(
        min_length=1,
        description='cron: "*/5 * * * *" | interval: milliseconds like "300000" | once: ISO timestamp like "2026-02-01T15:30:00Z"',
    )
    target_group: str | None = Field(default=None, description="(Main only) Target group folder. Defaults to the current group.")


class ListTasksRequest(BaseModel):
    pass


class TaskIdRequest(BaseModel):
    task_id: str = Field(min_length=1, description="The task ID")


class UpdateTaskRequest(TaskIdRequest):
    prompt: str | None = Field(default=None, description="New prompt for the task")
    schedule_type: Literal["cron", "interval", "once"] | None = Field(default=None, description="New schedule type")
    schedule_value: str | None = Field(default=None, description="New schedule value")


class SendMessageRequest(BaseModel):
    text: str = Field(min_length=1, description="The message text to send")
    target_jid: str | None = Field(default=None, description="(Main only) Target chat. Defaults to the current group.")


# --- Results and tool descriptors ---


@dataclass
class ToolResult:
    text: str
    is_error: bool = False


@dataclass
class Tool:
    name: str
    description: str
    input_model: type[BaseModel]

    @property
    def parameters(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    def to_schema(self) -> dict[str, Any]:
        """Function-calling schema for the agent runtime."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


TOOLS: list[Tool] = [
    Tool("schedule_task", "Schedule a recurring or one-time task. The task runs as an agent in the group's context.", ScheduleTaskRequest),
    Tool("list_tasks", "List scheduled tasks. Shows this group's tasks, or all tasks from the main group.", ListTasksRequest),
    Tool("get_task", "Get details about a task including its recent run history.", TaskIdRequest),
    Tool("update_task", "Update a task's prompt or schedule.", UpdateTaskRequest),
    Tool("pause_task", "Pause a scheduled task. It will not run until resumed.", TaskIdRequest),
    Tool("resume_task", "Resume a paused task.", TaskIdRequest),
    Tool("cancel_task", "Cancel and delete a scheduled task.", TaskIdRequest),
    Tool("send_message", "Send a message to the group's chat, e.g. to report task results.", SendMessageRequest),
]


def format_task(task: ScheduledTask) -> str:
    return "\n".join([
        f"ID: {task.id}",
        f"Group: {task.group_folder}",
        f"Prompt: {task.prompt}",
        f"Schedule: {task.schedule_type} ({task.schedule_value})",
        f"Status: {task.status}",
        f"Next run: {task.next_run or 'N/A'}",
        f"Last run: {task.last_run or 'Never'}",
        f"Last result: {task.last_result or 'N/A'}",
    ])


def format_run_log(log: TaskRunLog) -> str:
    line = f"{log.run_at}: {log.status} ({log.duration_ms}ms)"
    return f"{line} - {log.error}" if log.error else line


def _format_validation_error(err: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'arguments'}: {e['msg']}" for e in err.errors()
    )


class TaskControl:
    """Task operations scoped to one caller."""

    def __init__(
        self,
        task_manager: TaskManager,
        context: AuthContext,
        chat_jid: str,
        send_message: SendMessageFn,
        resolve_jid: ResolveJidFn | None = None,
    ) -> None:
        self._tasks = task_manager
        self._auth = AuthorizationPolicy(context)
        self._chat_jid = chat_jid
        self._send_message = send_message
        self._resolve_jid = resolve_jid or (lambda _folder: None)
        self._handlers: dict[str, Callable[..., Awaitable[ToolResult]]] = {
            "schedule_task": self._schedule_task,
            "list_tasks": self._list_tasks,
            "get_task": self._get_task,
            "update_task": self._update_task,
            "pause_task": self._pause_task,
            "resume_task": self._resume_task,
            "cancel_task": self._cancel_task,
            "send_message": self._send,
        }
        self._tools = {tool.name: tool for tool in TOOLS}

    @property
    def source_group(self) -> str:
        return self._auth.source_group

    @property
    def is_main(self) -> bool:
        return self._auth.is_main

    def tools(self) -> list[Tool]:
        return list(TOOLS)

    async def call(self, name: str, arguments: dict[str, Any] | None = None, **extra: Any) -> ToolResult:
        """Validate raw arguments against the tool's schema and run it."""
        tool = self._tools.get(name)
        if not tool:
            return ToolResult(f"Error: unknown tool '{name}'", is_error=True)
        try:
            request = tool.input_model.model_validate(arguments or {})
        except ValidationError as err:
            return ToolResult(f"Error: invalid arguments for {name}: {_format_validation_error(err)}", is_error=True)
        try:
            return await self._handlers[name](request, **extra)
        except (InvalidScheduleError, TaskNotFoundError, AccessDeniedError) as err:
            logger.debug("Task control call rejected", tool=name, group=self.source_group, reason=str(err))
            return ToolResult(f"Error: {err}", is_error=True)

    # --- Typed entry points ---

    async def schedule_task(
        self,
        prompt: str,
        schedule_type: str,
        schedule_value: str,
        target_group: str | None = None,
        task_id: str | None = None,
    ) -> ToolResult:
        arguments = {"prompt": prompt, "schedule_type": schedule_type, "schedule_value": schedule_value, "target_group": target_group}
        return await self.call("schedule_task", arguments, task_id=task_id)

    async def list_tasks(self) -> ToolResult:
        return await self.call("list_tasks")

    async def get_task(self, task_id: str) -> ToolResult:
        return await self.call("get_task", {"task_id": task_id})

    async def update_task(
        self,
        task_id: str,
        prompt: str | None = None,
        schedule_type: str | None = None,
        schedule_value: str | None = None,
    ) -> ToolResult:
        arguments = {"task_id": task_id, "prompt": prompt, "schedule_type": schedule_type, "schedule_value": schedule_value}
        return await self.call("update_task", arguments)

    async def pause_task(self, task_id: str) -> ToolResult:
        return await self.call("pause_task", {"task_id": task_id})

    async def resume_task(self, task_id: str) -> ToolResult:
        return await self.call("resume_task", {"task_id": task_id})

    async def cancel_task(self, task_id: str) -> ToolResult:
        return await self.call("cancel_task", {"task_id": task_id})

    async def send_message(self, text: str, target_jid: str | None = None) -> ToolResult:
        return await self.call("send_message", {"text": text, "target_jid": target_jid})

    # --- Handlers ---

    async def _schedule_task(self, request: ScheduleTaskRequest, task_id: str | None = None) -> ToolResult:
        target_folder = self._auth.owning_group(request.target_group)
        if target_folder == self.source_group:
            target_jid = self._chat_jid
        else:
            target_jid = self._resolve_jid(target_folder)
            if not target_jid:
                return ToolResult(f"Error: target group not registered: {target_folder}", is_error=True)

        task = self._tasks.create(
            group_folder=target_folder,
            chat_jid=target_jid,
            prompt=request.prompt,
            schedule_type=request.schedule_type,
            schedule_value=request.schedule_value,
            task_id=task_id,
        )
        return ToolResult(f"Task scheduled successfully!\n\n{format_task(task)}")

    async def _list_tasks(self, _request: ListTasksRequest) -> ToolResult:
        tasks = self._tasks.get_all() if self.is_main else self._tasks.get_for_group(self.source_group)
        if not tasks:
            return ToolResult("No scheduled tasks found.")
        formatted = "\n\n".join(f"--- Task {i} ---\n{format_task(t)}" for i, t in enumerate(tasks, start=1))
        return ToolResult(f"Found {len(tasks)} task(s):\n\n{formatted}")

    async def _get_task(self, request: TaskIdRequest) -> ToolResult:
        task = self._authorized(request.task_id)
        output = format_task(task)
        logs = self._tasks.get_run_logs(task.id, TASK_RUN_LOG_LIMIT)
        if logs:
            output += "\n\n--- Recent Runs ---\n" + "\n".join(format_run_log(log) for log in logs)
        return ToolResult(output)

    async def _update_task(self, request: UpdateTaskRequest) -> ToolResult:
        self._authorized(request.task_id)
        updated = self._tasks.update(
            request.task_id,
            prompt=request.prompt,
            schedule_type=request.schedule_type,
            schedule_value=request.schedule_value,
        )
        return ToolResult(f"Task updated!\n\n{format_task(updated)}")

    async def _pause_task(self, request: TaskIdRequest) -> ToolResult:
        self._authorized(request.task_id)
        self._tasks.pause(request.task_id)
        return ToolResult(f"Task {request.task_id} paused.")

    async def _resume_task(self, request: TaskIdRequest) -> ToolResult:
        self._authorized(request.task_id)
        task = self._tasks.resume(request.task_id)
        return ToolResult(f"Task {request.task_id} resumed. Next run: {task.next_run or 'N/A'}")

    async def _cancel_task(self, request: TaskIdRequest) -> ToolResult:
        self._authorized(request.task_id)
        self._tasks.cancel(request.task_id)
        return ToolResult(f"Task {request.task_id} cancelled and deleted.")

    async def _send(self, request: SendMessageRequest) -> ToolResult:
        target_jid = request.target_jid if self.is_main and request.target_jid else self._chat_jid
        try:
            await self._send_message(target_jid, request.text)
        except Exception as err:
            logger.warning("Outbound message failed", jid=target_jid, group=self.source_group, error=str(err))
            return ToolResult(f"Failed to send message: {err}", is_error=True)
        return ToolResult("Message sent successfully.")

    def _authorized(self, task_id: str) -> ScheduledTask:
        return self._tasks.get_authorized(task_id, self.source_group, self.is_main)
