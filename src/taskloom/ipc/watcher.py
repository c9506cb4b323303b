"""IPC watcher — drains command files written by sandboxed agents.

Layout per source group: ``data/ipc/{group}/messages/*.json`` and
``data/ipc/{group}/tasks/*.json``. The source group is the directory name,
never a field in the payload. Privilege is never inferred from that name:
a queue acts for main only when the host lists it in ``privileged_groups``.
Scheduled runs are never listed, whichever group owns them.

Files are applied oldest first (by filename) and removed once consumed. A
file that cannot be applied, or that comes from an unregistered group, is
moved to ``data/ipc/errors``; a store failure leaves it in place for the
next pass.
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Awaitable, Callable

from watchfiles import awatch

from taskloom.groups.authorization import AuthContext
from taskloom.groups.paths import GroupPaths
from taskloom.groups.types import RegisteredGroup, jid_for_folder
from taskloom.infrastructure.config import IPC_POLL_INTERVAL, IPC_STALE_TEMP_AGE
from taskloom.infrastructure.logger import logger
from taskloom.ipc.dispatcher import IpcCommandDispatcher
from taskloom.ipc.handlers.message_handlers import SendMessageHandler
from taskloom.ipc.handlers.task_handlers import (
    CancelTaskHandler,
    PauseTaskHandler,
    ResumeTaskHandler,
    ScheduleTaskHandler,
)
from taskloom.ipc.transport import TEMP_SUFFIX
from taskloom.scheduling.control import TaskControl
from taskloom.scheduling.errors import StoreError
from taskloom.scheduling.snapshot_writer import SnapshotWriter
from taskloom.scheduling.task_service import TaskManager


class IpcDeps:
    """Dependencies for IPC handlers, passed as a context object."""

    def __init__(
        self,
        task_manager: TaskManager,
        send_message: Callable[[str, str], Awaitable[None]],
        registered_groups: Callable[[], dict[str, RegisteredGroup]],
        snapshot_writer: SnapshotWriter,
        privileged_groups: Callable[[], set[str]] | None = None,
    ) -> None:
        self.task_manager = task_manager
        self.send_message = send_message
        self.registered_groups = registered_groups
        self.snapshot_writer = snapshot_writer
        self.privileged_groups = privileged_groups or set

    def is_privileged(self, source_group: str) -> bool:
        return source_group in self.privileged_groups()

    def control_for(self, source_group: str, is_main: bool) -> TaskControl:
        chat_jid = jid_for_folder(self.registered_groups(), source_group)
        if not chat_jid:
            raise LookupError(f"Source group not registered: {source_group}")
        return TaskControl(
            self.task_manager,
            AuthContext(source_group=source_group, is_main=is_main),
            chat_jid,
            self.send_message,
            resolve_jid=lambda folder: jid_for_folder(self.registered_groups(), folder),
        )


# Fallback poll interval: slower since watchfiles handles the fast path
FALLBACK_POLL_INTERVAL = IPC_POLL_INTERVAL * 10


class IpcWatcher:
    """Watches the IPC directory tree for commands from sandboxed agents."""

    def __init__(self, ipc_base_dir: Path | None = None) -> None:
        self._dispatcher = IpcCommandDispatcher([
            SendMessageHandler(),
            ScheduleTaskHandler(),
            PauseTaskHandler(),
            ResumeTaskHandler(),
            CancelTaskHandler(),
        ])
        self._ipc_base_dir = ipc_base_dir or GroupPaths.ipc_root()
        self._errors_dir = self._ipc_base_dir / "errors"
        self._processing = False
        self._running = False
        self._watch_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None

    def start(self, deps: IpcDeps) -> None:
        if self._running:
            logger.debug("IPC watcher already running, skipping duplicate start")
            return
        self._running = True
        self._ipc_base_dir.mkdir(parents=True, exist_ok=True)
        self._watch_task = asyncio.create_task(self._watch_loop(deps))
        self._poll_task = asyncio.create_task(self._fallback_poll_loop(deps))
        logger.info("IPC watcher started (watchfiles + fallback poll)", path=str(self._ipc_base_dir))

    def stop(self) -> None:
        self._running = False
        if self._watch_task:
            self._watch_task.cancel()
            self._watch_task = None
        if self._poll_task:
            self._poll_task.cancel()
            self._poll_task = None

    def group_folders(self) -> list[str]:
        if not self._ipc_base_dir.exists():
            return []
        return sorted(e.name for e in self._ipc_base_dir.iterdir() if e.is_dir() and e.name != "errors")

    async def process_ipc_files(self, deps: IpcDeps) -> int:
        """One pass over every group's queues. Returns the number of task commands consumed."""
        if self._processing:
            return 0
        self._processing = True
        applied = 0

        try:
            folders = self.group_folders()
            registered = {g.folder for g in deps.registered_groups().values()}
            for source_group in folders:
                group_dir = self._ipc_base_dir / source_group
                if source_group not in registered:
                    self._reject_unregistered(group_dir, source_group)
                    continue
                is_main = deps.is_privileged(source_group)
                await self._process_dir(group_dir / "messages", source_group, is_main, deps)
                applied += await self._process_dir(group_dir / "tasks", source_group, is_main, deps)

            if applied:
                deps.snapshot_writer.refresh_all(folders)
        finally:
            self._processing = False
        return applied

    async def _watch_loop(self, deps: IpcDeps) -> None:
        """Use watchfiles to react to IPC file changes."""
        try:
            async for _changes in awatch(str(self._ipc_base_dir)):
                if not self._running:
                    break
                await self._safe_process(deps)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("watchfiles error, continuing with fallback poll only")

    async def _fallback_poll_loop(self, deps: IpcDeps) -> None:
        """Slow fallback poll; also keeps the task snapshots fresh."""
        while self._running:
            try:
                await self._safe_process(deps)
                deps.snapshot_writer.refresh_all(self.group_folders())
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in IPC fallback poll")
            await asyncio.sleep(FALLBACK_POLL_INTERVAL)

    async def _safe_process(self, deps: IpcDeps) -> None:
        try:
            await self.process_ipc_files(deps)
        except Exception:
            logger.exception("Error in IPC processing")

    async def _process_dir(self, directory: Path, source_group: str, is_main: bool, deps: IpcDeps) -> int:
        if not directory.exists():
            return 0

        self._remove_stale_temp_files(directory)
        consumed = 0

        for file_path in sorted(f for f in directory.iterdir() if f.suffix == ".json"):
            try:
                data = json.loads(file_path.read_text())
                if not await self._dispatcher.dispatch(data, source_group, is_main, deps):
                    self._dead_letter(file_path, source_group)
                    continue
                file_path.unlink()
                consumed += 1
            except StoreError as err:
                # Leave this and later files in place so order is kept on retry.
                logger.error("Store unavailable, IPC file left for retry", file=file_path.name, source_group=source_group, error=str(err))
                break
            except Exception:
                logger.exception("Error processing IPC file", file=file_path.name, source_group=source_group)
                self._dead_letter(file_path, source_group)

        return consumed

    def _reject_unregistered(self, group_dir: Path, source_group: str) -> None:
        for kind in ("messages", "tasks"):
            directory = group_dir / kind
            if not directory.exists():
                continue
            for file_path in sorted(f for f in directory.iterdir() if f.suffix == ".json"):
                logger.warning("IPC file from unregistered group", file=file_path.name, source_group=source_group)
                self._dead_letter(file_path, source_group)

    def _dead_letter(self, file_path: Path, source_group: str) -> None:
        self._errors_dir.mkdir(parents=True, exist_ok=True)
        target = self._errors_dir / f"{source_group}-{file_path.name}"
        try:
            file_path.rename(target)
        except OSError as err:
            logger.error("Could not move IPC file to errors", file=file_path.name, error=str(err))
            return
        logger.warning("IPC file moved to errors", file=target.name)

    def _remove_stale_temp_files(self, directory: Path) -> None:
        cutoff = time.time() - IPC_STALE_TEMP_AGE
        for temp in directory.glob(f"*{TEMP_SUFFIX}"):
            try:
                if temp.stat().st_mtime < cutoff:
                    temp.unlink()
                    logger.info("Removed abandoned IPC temp file", file=temp.name)
            except FileNotFoundError:
                continue
