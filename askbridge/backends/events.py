"""
Newline-delimited JSON event decoding for streaming CLIs.

The codex CLI (`exec --json`) prints one JSON object per line. Only
completed agent messages carry answer text; everything else is either an
error report or noise we ignore. A malformed line never aborts the stream:
it decodes to Unrecognized and the collector records a warning.

Shapes understood:
    {"type": "item.completed", "item": {"type": "agent_message", "text": "..."}}
    {"type": "agent_message", "text": "..."}
    {"msg": {"type": "agent_message", "message": "..."}}
    {"type": "error", "message": "..."}
    {"type": "turn.failed", "error": {"message": "..."}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Iterator, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentMessage:
    text: str


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class Unrecognized:
    line: str
    reason: str = ""


StreamEvent = Union[AgentMessage, ErrorEvent, Unrecognized]


class LineSplitter:
    """Buffers raw chunks and yields only complete lines."""

    def __init__(self, encoding: str = "utf-8"):
        self._buffer = b""
        self._encoding = encoding

    def feed(self, chunk: bytes) -> Iterator[str]:
        self._buffer += chunk
        while b"\n" in self._buffer:
            line, self._buffer = self._buffer.split(b"\n", 1)
            yield line.decode(self._encoding, errors="replace").rstrip("\r")

    def flush(self) -> Iterator[str]:
        """Emit whatever is left once the stream has closed."""
        if self._buffer:
            line, self._buffer = self._buffer, b""
            yield line.decode(self._encoding, errors="replace").rstrip("\r")


def _error_message(payload: dict) -> str:
    err = payload.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or json.dumps(err, ensure_ascii=False))
    if isinstance(err, str) and err:
        return err
    return str(payload.get("message") or "unknown error")


def decode_event(line: str) -> StreamEvent:
    """Decode one line into a tagged event. Never raises."""
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as e:
        return Unrecognized(line=line, reason=f"invalid JSON: {e.msg}")

    if not isinstance(payload, dict):
        return Unrecognized(line=line, reason="not a JSON object")

    event_type = payload.get("type")

    if event_type == "item.completed":
        item = payload.get("item")
        if isinstance(item, dict) and item.get("type") == "agent_message":
            return AgentMessage(text=str(item.get("text") or ""))
        return Unrecognized(line=line)

    if event_type == "agent_message":
        return AgentMessage(text=str(payload.get("text") or payload.get("message") or ""))

    msg = payload.get("msg")
    if isinstance(msg, dict) and msg.get("type") == "agent_message":
        return AgentMessage(text=str(msg.get("message") or msg.get("text") or ""))

    if event_type in ("error", "turn.failed"):
        return ErrorEvent(message=_error_message(payload))

    return Unrecognized(line=line)


@dataclass
class EventCollector:
    """Accumulates agent messages in arrival order plus diagnostics."""
    messages: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_line(self, line: str) -> StreamEvent | None:
        if not line.strip():
            return None

        event = decode_event(line)
        if isinstance(event, AgentMessage):
            if event.text.strip():
                self.messages.append(event.text.strip())
        elif isinstance(event, ErrorEvent):
            self.errors.append(event.message)
        elif event.reason:
            warning = f"Skipped malformed stream line ({event.reason}): {line[:200]}"
            self.warnings.append(warning)
            logger.warning(warning)
        return event

    @property
    def text(self) -> str:
        return "\n\n".join(self.messages)
