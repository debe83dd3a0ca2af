"""
Base chat client abstraction.
All backends implement this interface so the router can treat them uniformly.
"""

from __future__ import annotations

import abc
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from askbridge.config import DEFAULT_TIMEOUT_MS
from askbridge.models import AskOptions, ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class ChatResult:
    """Standardized answer from any backend."""
    content: str
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_fallback(self) -> bool:
        return bool(self.raw.get("fallback"))


class ChatClient(abc.ABC):
    """
    Abstract base for chat backends.
    A client declares which tool it serves and answers a message list.
    """

    tool: str = ""

    def __init__(self, name: str, timeout_ms: float = DEFAULT_TIMEOUT_MS):
        self.name = name
        self.timeout_ms = timeout_ms

    def supports(self, tool: str) -> bool:
        return tool == self.tool

    @abc.abstractmethod
    async def chat(self, messages: list[ChatMessage], options: AskOptions | None = None) -> ChatResult:
        """Send the conversation, return the answer text plus diagnostics."""
        ...

    def resolve_timeout_ms(self, options: AskOptions | None) -> float:
        """Per-call override when it's a positive finite number, else the client default."""
        if options is not None and options.timeout_ms is not None:
            value = options.timeout_ms
            if math.isfinite(value) and value > 0:
                return value
        return self.timeout_ms

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} tool={self.tool!r}>"
