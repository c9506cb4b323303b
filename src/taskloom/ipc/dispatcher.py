"""IPC command dispatcher and base handler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from pydantic import ValidationError

from taskloom.infrastructure.logger import logger
from taskloom.ipc.commands import parse_command

if TYPE_CHECKING:
    from taskloom.ipc.watcher import IpcDeps


class IpcHandlerError(Exception):
    """Expected failure: the command is rejected, logged and not retried."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


@dataclass
class HandlerContext:
    source_group: str
    is_main: bool
    deps: IpcDeps


class IpcCommandHandler(ABC):
    """Base class for IPC command handlers."""

    @property
    @abstractmethod
    def command(self) -> str: ...

    async def validate(self, data: dict[str, Any]) -> Any:
        try:
            return parse_command(data)
        except ValidationError as err:
            raise IpcHandlerError("Invalid command payload", {"errors": err.error_count()})

    @abstractmethod
    async def execute(self, payload: Any, context: HandlerContext) -> None: ...

    async def handle(self, data: dict[str, Any], source_group: str, is_main: bool, deps: IpcDeps) -> None:
        context = HandlerContext(source_group=source_group, is_main=is_main, deps=deps)
        validated = await self.validate(data)
        await self.execute(validated, context)


class IpcCommandDispatcher:
    """Routes IPC commands to registered handlers.

    Returns True if the command was consumed (applied or rejected). Any other
    exception propagates so the caller can retry or dead-letter the file.
    """

    def __init__(self, handlers: list[IpcCommandHandler]) -> None:
        self._handlers: dict[str, IpcCommandHandler] = {h.command: h for h in handlers}

    async def dispatch(self, data: dict[str, Any], source_group: str, is_main: bool, deps: IpcDeps) -> bool:
        command_type = data.get("type") if isinstance(data, dict) else None
        handler = self._handlers.get(command_type)  # type: ignore[arg-type]
        if not handler:
            logger.warning("Unknown IPC command type", type=command_type, source_group=source_group)
            return False
        try:
            await handler.handle(data, source_group, is_main, deps)
        except IpcHandlerError as err:
            logger.warning(err.args[0], command=command_type, source_group=source_group, **err.details)
        return True
