"""Registered group persistence."""

from __future__ import annotations

import sqlite3

from taskloom.groups.types import RegisteredGroup
from taskloom.scheduling.errors import StoreError


class GroupRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def get_registered_group(self, jid: str) -> RegisteredGroup | None:
        try:
            row = self._db.execute("SELECT * FROM registered_groups WHERE jid = ?", (jid,)).fetchone()
        except sqlite3.Error as err:
            raise StoreError(f"get_registered_group failed: {err}") from err
        if not row:
            return None
        return self._row_to_group(row)

    def set_registered_group(self, group: RegisteredGroup) -> None:
        """Insert or replace. Registering a folder under a new jid replaces the old row."""
        try:
            self._db.execute(
                """INSERT OR REPLACE INTO registered_groups (jid, name, folder, added_at)
                   VALUES (?, ?, ?, ?)""",
                (group.jid, group.name, group.folder, group.added_at),
            )
            self._db.commit()
        except sqlite3.Error as err:
            raise StoreError(f"set_registered_group failed: {err}") from err

    def get_all_registered_groups(self) -> dict[str, RegisteredGroup]:
        try:
            rows = self._db.execute("SELECT * FROM registered_groups").fetchall()
        except sqlite3.Error as err:
            raise StoreError(f"get_all_registered_groups failed: {err}") from err
        return {row["jid"]: self._row_to_group(row) for row in rows}

    def _row_to_group(self, row: sqlite3.Row) -> RegisteredGroup:
        return RegisteredGroup(
            jid=row["jid"],
            name=row["name"],
            folder=row["folder"],
            added_at=row["added_at"],
        )
