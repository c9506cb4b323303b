"""Configuration constants and .env parsing."""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ — callers decide what to do with values.
    This keeps secrets out of the process environment so they don't leak
    to agent subprocesses.
    """
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


# Read config values from .env (os.environ wins).
_env_config = read_env_file(["AGENT_COMMAND", "TZ", "LOG_LEVEL"])

AGENT_COMMAND: str = os.environ.get("AGENT_COMMAND") or _env_config.get(
    "AGENT_COMMAND", "claude --print --dangerously-skip-permissions"
)
LOG_LEVEL: str = (os.environ.get("LOG_LEVEL") or _env_config.get("LOG_LEVEL", "INFO")).upper()

SCHEDULER_POLL_INTERVAL: float = 60.0  # seconds
IPC_POLL_INTERVAL: float = 1.0
IPC_STALE_TEMP_AGE: float = 300.0

# Absolute paths
PROJECT_ROOT: Path = Path.cwd()

STORE_DIR: Path = (PROJECT_ROOT / "store").resolve()
GROUPS_DIR: Path = (PROJECT_ROOT / "groups").resolve()
DATA_DIR: Path = (PROJECT_ROOT / "data").resolve()
MAIN_GROUP_FOLDER: str = "main"

TASK_RUN_LOG_LIMIT: int = 5
RESULT_SUMMARY_LENGTH: int = 200
RUN_LOG_RESULT_LENGTH: int = 2000


def resolve_timezone(name: str | None) -> str:
    """Return name if it is a known IANA zone, else UTC."""
    if not name:
        return "UTC"
    try:
        ZoneInfo(name)
        return name
    except (ZoneInfoNotFoundError, ValueError):
        return "UTC"


TIMEZONE: str = resolve_timezone(os.environ.get("TZ") or _env_config.get("TZ"))
