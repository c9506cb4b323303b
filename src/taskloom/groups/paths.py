"""Centralized path construction for group-related directories and files."""

from __future__ import annotations

from pathlib import Path

from taskloom.infrastructure import config


class GroupPaths:
    """Centralized path construction for group-related directories.

    Reads the base directories from config at call time so tests can
    monkeypatch ``config.DATA_DIR`` / ``config.GROUPS_DIR``.
    """

    @staticmethod
    def group_dir(folder: str) -> Path:
        """Working directory for a group: groups/{folder}"""
        return config.GROUPS_DIR / folder

    @staticmethod
    def ipc_root() -> Path:
        """IPC base directory: data/ipc"""
        return config.DATA_DIR / "ipc"

    @staticmethod
    def ipc_dir(folder: str) -> Path:
        """IPC root directory: data/ipc/{folder}"""
        return config.DATA_DIR / "ipc" / folder

    @staticmethod
    def ipc_messages_dir(folder: str) -> Path:
        """Outbound message commands: data/ipc/{folder}/messages"""
        return config.DATA_DIR / "ipc" / folder / "messages"

    @staticmethod
    def ipc_tasks_dir(folder: str) -> Path:
        """Task-control commands: data/ipc/{folder}/tasks"""
        return config.DATA_DIR / "ipc" / folder / "tasks"

    @staticmethod
    def ipc_errors_dir() -> Path:
        """Dead-letter directory: data/ipc/errors"""
        return config.DATA_DIR / "ipc" / "errors"

    @staticmethod
    def tasks_snapshot(folder: str) -> Path:
        """Read-only task list for the sandbox: data/ipc/{folder}/current_tasks.json"""
        return config.DATA_DIR / "ipc" / folder / "current_tasks.json"
