"""Wire schema for IPC command files.

Each file holds one JSON object with a ``type`` discriminator, the
originating ``groupFolder``, a ``timestamp`` and the type's payload. Keys
are camelCase on disk.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from taskloom.scheduling.schedule import to_iso, utc_now


class IpcCommand(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    group_folder: str
    timestamp: str = Field(default_factory=lambda: to_iso(utc_now()))

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SendMessageCommand(IpcCommand):
    type: Literal["send_message"] = "send_message"
    chat_jid: str = Field(min_length=1)
    text: str = Field(min_length=1)


class ScheduleTaskCommand(IpcCommand):
    type: Literal["schedule_task"] = "schedule_task"
    # Chosen by the writer so a replayed file maps to the same task.
    task_id: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    schedule_type: Literal["cron", "interval", "once"]
    schedule_value: str = Field(min_length=1)
    target_group: str | None = None


class PauseTaskCommand(IpcCommand):
    type: Literal["pause_task"] = "pause_task"
    task_id: str = Field(min_length=1)


class ResumeTaskCommand(IpcCommand):
    type: Literal["resume_task"] = "resume_task"
    task_id: str = Field(min_length=1)


class CancelTaskCommand(IpcCommand):
    type: Literal["cancel_task"] = "cancel_task"
    task_id: str = Field(min_length=1)


Command = Annotated[
    Union[SendMessageCommand, ScheduleTaskCommand, PauseTaskCommand, ResumeTaskCommand, CancelTaskCommand],
    Field(discriminator="type"),
]

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(data: Any) -> Command:
    """Validate a decoded command file. Raises pydantic.ValidationError."""
    return _command_adapter.validate_python(data)
