"""Entry point: python -m taskloom"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from taskloom.infrastructure.logger import logger
from taskloom.scheduling.errors import StoreError


async def main() -> None:
    from taskloom.app import Orchestrator

    orchestrator = Orchestrator()

    # Handle graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await orchestrator.start()

        # Wait for shutdown signal
        await shutdown_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await orchestrator.shutdown()


def run_register_group(argv: list[str]) -> None:
    """Register a group so its tasks and IPC directory are recognised."""
    from taskloom.app import Orchestrator
    from taskloom.infrastructure.database import database

    parser = argparse.ArgumentParser(prog="taskloom register-group", description="Register a group")
    parser.add_argument("jid", help="Chat destination for the group's notifications")
    parser.add_argument("folder", help="Group folder name (tenant id)")
    parser.add_argument("--name", help="Display name (defaults to the folder)")
    args = parser.parse_args(argv)

    database.init()
    try:
        group = Orchestrator(db=database).register_group(args.jid, args.folder, args.name)
    finally:
        database.close()
    print(f"Registered {group.folder} -> {group.jid}")


def run() -> None:
    if len(sys.argv) > 1 and sys.argv[1] == "register-group":
        try:
            run_register_group(sys.argv[2:])
        except StoreError as err:
            print(f"Error: {err}", file=sys.stderr)
            sys.exit(1)
        return

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except StoreError:
        logger.exception("Task store unavailable at startup")
        sys.exit(1)


if __name__ == "__main__":
    run()
