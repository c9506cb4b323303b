"""Stateful parser for the OUTPUT_START/END marker protocol."""

from __future__ import annotations

import json
from dataclasses import dataclass

OUTPUT_START_MARKER = "---TASKLOOM_OUTPUT_START---"
OUTPUT_END_MARKER = "---TASKLOOM_OUTPUT_END---"


@dataclass
class AgentOutput:
    status: str = "success"
    result: str | None = None
    new_session_id: str | None = None
    error: str | None = None


class OutputParser:
    """Accumulates agent stdout lines and yields marker-delimited JSON blocks.

    Lines outside any block are kept as plain text so agents that do not
    speak the marker protocol still produce a result.
    """

    def __init__(self) -> None:
        self._collecting = False
        self._buffer: list[str] = []
        self._plain: list[str] = []
        self.saw_marker = False

    def feed(self, line: str) -> AgentOutput | None:
        """Feed a line of stdout. Returns an AgentOutput if a complete block was parsed."""
        stripped = line.rstrip("\n").rstrip("\r")

        if stripped == OUTPUT_START_MARKER:
            self._collecting = True
            self.saw_marker = True
            self._buffer = []
            return None

        if stripped == OUTPUT_END_MARKER:
            self._collecting = False
            raw = "\n".join(self._buffer)
            self._buffer = []
            return self._parse_output(raw)

        if self._collecting:
            self._buffer.append(stripped)
        else:
            self._plain.append(stripped)

        return None

    def plain_text(self) -> str | None:
        text = "\n".join(self._plain).strip()
        return text or None

    def _parse_output(self, raw: str) -> AgentOutput:
        try:
            data = json.loads(raw)
            return AgentOutput(
                status=data.get("status", "success"),
                result=data.get("result"),
                new_session_id=data.get("newSessionId"),
                error=data.get("error"),
            )
        except (json.JSONDecodeError, TypeError, AttributeError):
            return AgentOutput(status="error", error=f"Failed to parse output: {raw[:200]}")
