"""Fallback channel that writes outbound messages to the log."""

from __future__ import annotations

from taskloom.infrastructure.logger import logger


class LogChannel:
    """Owns every JID. Used when no real transport is configured."""

    name = "log"

    def __init__(self) -> None:
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def owns_jid(self, jid: str) -> bool:
        return True

    async def send_message(self, jid: str, text: str) -> None:
        logger.info("Outbound message", jid=jid, text=text)
