"""Interface to the agent runtime that executes a task's prompt."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from taskloom.scheduling.control import TaskControl


@dataclass
class AgentRequest:
    prompt: str
    group_folder: str
    chat_jid: str
    working_dir: Path
    is_main: bool = False
    # Task operations the agent may call, already scoped to group_folder.
    tools: TaskControl | None = None
    session_id: str | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class AgentResult:
    result: str | None
    new_session_id: str | None = None


@runtime_checkable
class AgentRuntime(Protocol):
    async def run(self, request: AgentRequest) -> AgentResult:
        """Run the prompt to completion. Raises AgentRuntimeError on failure."""
        ...
