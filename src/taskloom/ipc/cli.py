"""``taskloom-ipc``: command-line front end for IpcClient inside the sandbox."""

from __future__ import annotations

import argparse
import sys

from taskloom.ipc.client import IpcClient
from taskloom.scheduling.control import ToolResult


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskloom-ipc", description="Queue task commands for the host")
    sub = parser.add_subparsers(dest="action", required=True)

    send = sub.add_parser("send-message", help="Send a message to the group's chat")
    send.add_argument("text")
    send.add_argument("--target-jid", help="Destination chat (main group only)")

    schedule = sub.add_parser("schedule", help="Schedule a new task")
    schedule.add_argument("schedule_type", choices=["cron", "interval", "once"])
    schedule.add_argument("schedule_value", help="Cron expression, milliseconds, or ISO timestamp")
    schedule.add_argument("prompt")
    schedule.add_argument("--target-group", help="Group folder to schedule for (main group only)")

    sub.add_parser("list", help="List visible tasks")

    for action, help_text in (
        ("get", "Show one task"),
        ("pause", "Pause a task"),
        ("resume", "Resume a paused task"),
        ("cancel", "Cancel and delete a task"),
    ):
        sub.add_parser(action, help=help_text).add_argument("task_id")

    return parser


def run_action(client: IpcClient, args: argparse.Namespace) -> ToolResult:
    if args.action == "send-message":
        return client.send_message(args.text, args.target_jid)
    if args.action == "schedule":
        return client.schedule_task(args.prompt, args.schedule_type, args.schedule_value, args.target_group)
    if args.action == "list":
        return client.list_tasks()
    if args.action == "get":
        return client.get_task(args.task_id)
    if args.action == "pause":
        return client.pause_task(args.task_id)
    if args.action == "resume":
        return client.resume_task(args.task_id)
    return client.cancel_task(args.task_id)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        client = IpcClient.from_env()
    except ValueError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    result = run_action(client, args)
    print(result.text, file=sys.stderr if result.is_error else sys.stdout)
    return 1 if result.is_error else 0


if __name__ == "__main__":
    sys.exit(main())
