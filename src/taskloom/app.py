"""Orchestrator class — composes services, wires subsystems."""

from __future__ import annotations

from taskloom.execution.agent_runtime import AgentRuntime
from taskloom.execution.subprocess_runtime import SubprocessAgentRuntime
from taskloom.groups.paths import GroupPaths
from taskloom.groups.types import RegisteredGroup
from taskloom.infrastructure.database import AppDatabase, database
from taskloom.infrastructure.logger import logger
from taskloom.infrastructure.poll_loop import PollLoop
from taskloom.ipc.watcher import IpcDeps, IpcWatcher
from taskloom.messaging.channel_registry import ChannelRegistry
from taskloom.messaging.log_channel import LogChannel
from taskloom.scheduling.scheduler import SchedulerDependencies, start_scheduler_loop
from taskloom.scheduling.schedule import to_iso, utc_now
from taskloom.scheduling.snapshot_writer import SnapshotWriter
from taskloom.scheduling.task_service import TaskManager


class Orchestrator:
    """Composes all services and manages the application lifecycle."""

    def __init__(self, db: AppDatabase | None = None, agent_runtime: AgentRuntime | None = None) -> None:
        self._db: AppDatabase = db or database
        self._agent_runtime: AgentRuntime = agent_runtime or SubprocessAgentRuntime()
        self._channel_registry = ChannelRegistry()
        self._ipc_watcher = IpcWatcher()
        self._running = False
        self._registered_groups: dict[str, RegisteredGroup] = {}
        self._scheduler_handle: PollLoop | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Initialize all services and start the background loops.

        The database is opened first; a StoreError here propagates and the
        process exits.
        """
        logger.info("Starting taskloom...")

        if self._db.task_repo is None:
            self._db.init()

        self._registered_groups = self._db.group_repo.get_all_registered_groups()
        logger.info("Loaded registered groups", count=len(self._registered_groups))

        task_manager = TaskManager(self._db.task_repo)
        snapshot_writer = SnapshotWriter(task_manager)

        # Real transports register here; the log channel catches everything else.
        self._channel_registry.register(LogChannel())
        await self._channel_registry.connect_all()

        for group in self._registered_groups.values():
            GroupPaths.ipc_tasks_dir(group.folder).mkdir(parents=True, exist_ok=True)
            GroupPaths.ipc_messages_dir(group.folder).mkdir(parents=True, exist_ok=True)
        snapshot_writer.refresh_all([g.folder for g in self._registered_groups.values()])

        # Every queue is fed by scheduled runs, so no queue is privileged.
        ipc_deps = IpcDeps(
            task_manager=task_manager,
            send_message=self._channel_registry.send_message,
            registered_groups=self._current_groups,
            snapshot_writer=snapshot_writer,
        )
        self._ipc_watcher.start(ipc_deps)

        scheduler_deps = SchedulerDependencies(
            task_manager=task_manager,
            agent_runtime=self._agent_runtime,
            send_message=self._channel_registry.send_message,
            registered_groups=self._current_groups,
            snapshot_writer=snapshot_writer,
        )
        self._scheduler_handle = start_scheduler_loop(scheduler_deps)

        self._running = True
        logger.info("taskloom started successfully")

    def _current_groups(self) -> dict[str, RegisteredGroup]:
        """Re-read so groups registered by another process are seen."""
        self._registered_groups = self._db.group_repo.get_all_registered_groups()
        return self._registered_groups

    def register_group(self, jid: str, folder: str, name: str | None = None) -> RegisteredGroup:
        group = RegisteredGroup(jid=jid, name=name or folder, folder=folder, added_at=to_iso(utc_now()))
        self._db.group_repo.set_registered_group(group)
        # The store replaced any older row for this folder
        for old_jid in [j for j, g in self._registered_groups.items() if g.folder == folder]:
            del self._registered_groups[old_jid]
        self._registered_groups[jid] = group
        GroupPaths.group_dir(folder).mkdir(parents=True, exist_ok=True)
        GroupPaths.ipc_tasks_dir(folder).mkdir(parents=True, exist_ok=True)
        GroupPaths.ipc_messages_dir(folder).mkdir(parents=True, exist_ok=True)
        logger.info("Group registered", jid=jid, folder=folder)
        return group

    async def shutdown(self) -> None:
        """Gracefully shut down all services."""
        logger.info("Shutting down taskloom...")
        self._running = False

        if self._scheduler_handle:
            self._scheduler_handle.stop()
            self._scheduler_handle = None

        self._ipc_watcher.stop()
        await self._channel_registry.disconnect_all()
        self._db.close()

        logger.info("taskloom shut down complete")
