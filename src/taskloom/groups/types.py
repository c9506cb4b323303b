"""Group domain types."""

from __future__ import annotations

from pydantic import BaseModel


class RegisteredGroup(BaseModel):
    jid: str  # destination for outbound notifications
    name: str
    folder: str  # tenant id; tasks and IPC directories are keyed by it
    added_at: str


def jid_for_folder(groups: dict[str, RegisteredGroup], folder: str) -> str | None:
    """Destination JID of the group registered under ``folder``."""
    return next((jid for jid, g in groups.items() if g.folder == folder), None)
