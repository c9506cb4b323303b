"""Registry pattern for multiple channels."""

from __future__ import annotations

from taskloom.infrastructure.logger import logger
from taskloom.messaging.types import Channel


class ChannelRegistry:
    """Manages registered channels and routes JIDs to the correct channel."""

    def __init__(self) -> None:
        self._channels: list[Channel] = []

    def register(self, channel: Channel) -> None:
        if any(c.name == channel.name for c in self._channels):
            raise ValueError(f'Channel "{channel.name}" is already registered')
        self._channels.append(channel)

    def find_connected_by_jid(self, jid: str) -> Channel | None:
        return next((c for c in self._channels if c.owns_jid(jid) and c.is_connected()), None)

    async def send_message(self, jid: str, text: str) -> None:
        """Deliver through the owning channel. Raises LookupError if none is connected."""
        channel = self.find_connected_by_jid(jid)
        if not channel:
            raise LookupError(f"No connected channel for {jid}")
        await channel.send_message(jid, text)

    async def connect_all(self) -> None:
        for channel in self._channels:
            await channel.connect()

    async def disconnect_all(self) -> None:
        for channel in self._channels:
            try:
                await channel.disconnect()
            except Exception:
                logger.exception("Error disconnecting channel", channel=channel.name)
