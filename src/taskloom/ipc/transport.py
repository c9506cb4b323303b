"""File-based IPC write operations.

Every file becomes visible only through an atomic rename of a fully written
temp file in the same directory, so readers never see partial JSON. Command
filenames are ``{ms}-{suffix}.json``: the millisecond part never goes
backwards within a process and the random suffix keeps concurrent writers
apart.
"""

from __future__ import annotations

import json
import os
import random
import string
import threading
import time
from pathlib import Path
from typing import Any

TEMP_SUFFIX = ".tmp"

_clock_lock = threading.Lock()
_last_ms = 0


def _monotonic_ms() -> int:
    global _last_ms
    with _clock_lock:
        _last_ms = max(_last_ms, int(time.time() * 1000))
        return _last_ms


def command_filename() -> str:
    rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{_monotonic_ms()}-{rand}.json"


def atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON to ``path`` via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + TEMP_SUFFIX)
    try:
        with open(temp_path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def write_command_file(directory: Path, data: dict[str, Any]) -> str:
    """Enqueue one command in ``directory``. Returns the final filename."""
    while True:
        filename = command_filename()
        if not (directory / filename).exists():
            break
    atomic_write_json(directory / filename, data)
    return filename
