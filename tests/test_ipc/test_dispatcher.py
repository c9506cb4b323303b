"""Tests for IPC dispatcher."""

from typing import Any

import pytest

from taskloom.ipc.dispatcher import HandlerContext, IpcCommandDispatcher, IpcCommandHandler, IpcHandlerError
from taskloom.scheduling.errors import StoreError


class MockHandler(IpcCommandHandler):
    def __init__(self, cmd: str):
        self._command = cmd
        self.called_with = None

    @property
    def command(self) -> str:
        return self._command

    async def validate(self, data: dict[str, Any]) -> Any:
        return data

    async def execute(self, payload: Any, context: HandlerContext) -> None:
        self.called_with = (payload, context)


class ErrorHandler(IpcCommandHandler):
    def __init__(self, error: Exception):
        self._error = error

    @property
    def command(self) -> str:
        return "error_cmd"

    async def validate(self, data: dict[str, Any]) -> Any:
        return data

    async def execute(self, payload: Any, context: HandlerContext) -> None:
        raise self._error


class SchemaHandler(IpcCommandHandler):
    command = "cancel_task"

    async def execute(self, payload: Any, context: HandlerContext) -> None:
        raise AssertionError("should not run")


class TestIpcDispatcher:
    @pytest.mark.asyncio
    async def test_dispatches_to_correct_handler(self):
        handler_a = MockHandler("cmd_a")
        handler_b = MockHandler("cmd_b")
        dispatcher = IpcCommandDispatcher([handler_a, handler_b])

        assert await dispatcher.dispatch({"type": "cmd_a", "data": "test"}, "main", True, None) is True
        assert handler_a.called_with is not None
        assert handler_b.called_with is None

    @pytest.mark.asyncio
    async def test_unknown_command_not_consumed(self):
        dispatcher = IpcCommandDispatcher([MockHandler("known")])
        assert await dispatcher.dispatch({"type": "unknown"}, "main", True, None) is False

    @pytest.mark.asyncio
    async def test_non_object_payload_not_consumed(self):
        dispatcher = IpcCommandDispatcher([MockHandler("known")])
        assert await dispatcher.dispatch(["known"], "main", True, None) is False

    @pytest.mark.asyncio
    async def test_handler_error_consumed(self):
        dispatcher = IpcCommandDispatcher([ErrorHandler(IpcHandlerError("Test error", {"detail": "test"}))])
        # IpcHandlerError is a rejection: logged, file consumed
        assert await dispatcher.dispatch({"type": "error_cmd"}, "main", True, None) is True

    @pytest.mark.asyncio
    async def test_store_error_propagates(self):
        dispatcher = IpcCommandDispatcher([ErrorHandler(StoreError("locked"))])
        with pytest.raises(StoreError):
            await dispatcher.dispatch({"type": "error_cmd"}, "main", True, None)

    @pytest.mark.asyncio
    async def test_invalid_payload_rejected(self):
        dispatcher = IpcCommandDispatcher([SchemaHandler()])
        assert await dispatcher.dispatch({"type": "cancel_task", "groupFolder": "alpha"}, "alpha", False, None) is True

    @pytest.mark.asyncio
    async def test_handler_context(self):
        handler = MockHandler("test")
        dispatcher = IpcCommandDispatcher([handler])

        await dispatcher.dispatch({"type": "test"}, "project-a", False, None)
        assert handler.called_with is not None
        _, context = handler.called_with
        assert context.source_group == "project-a"
        assert context.is_main is False
