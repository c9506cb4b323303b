"""Tenant isolation policy."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthContext:
    source_group: str
    is_main: bool


class AuthorizationPolicy:
    """Encapsulates authorization checks for a single source context."""

    def __init__(self, ctx: AuthContext) -> None:
        self._ctx = ctx

    @property
    def source_group(self) -> str:
        return self._ctx.source_group

    @property
    def is_main(self) -> bool:
        return self._ctx.is_main

    def can_send_message(self, target_group_folder: str) -> bool:
        """Non-main groups can only send messages to their own group."""
        return self._ctx.is_main or target_group_folder == self._ctx.source_group

    def can_manage_task(self, task_group_folder: str) -> bool:
        """Non-main groups can only see and manage their own tasks."""
        return self._ctx.is_main or task_group_folder == self._ctx.source_group

    def owning_group(self, requested_group: str | None) -> str:
        """Group a new task belongs to. Only main may pick another group."""
        if self._ctx.is_main and requested_group:
            return requested_group
        return self._ctx.source_group
