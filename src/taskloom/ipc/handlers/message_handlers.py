"""Outbound message IPC handler."""

from __future__ import annotations

from taskloom.groups.authorization import AuthContext, AuthorizationPolicy
from taskloom.infrastructure.logger import logger
from taskloom.ipc.commands import SendMessageCommand
from taskloom.ipc.dispatcher import HandlerContext, IpcCommandHandler, IpcHandlerError


class SendMessageHandler(IpcCommandHandler):
    """Delivers a queued message. A transport failure propagates so the file is dead-lettered."""

    command = "send_message"

    async def execute(self, payload: SendMessageCommand, context: HandlerContext) -> None:
        target_group = context.deps.registered_groups().get(payload.chat_jid)
        auth = AuthorizationPolicy(AuthContext(source_group=context.source_group, is_main=context.is_main))
        if not auth.can_send_message(target_group.folder if target_group else ""):
            raise IpcHandlerError(
                "Unauthorized IPC message attempt blocked",
                {"chatJid": payload.chat_jid, "sourceGroup": context.source_group},
            )
        await context.deps.send_message(payload.chat_jid, payload.text)
        logger.info("IPC message sent", chat_jid=payload.chat_jid, source_group=context.source_group)
