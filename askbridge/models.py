"""
Data models for the ask pipeline.
These define the shape of data flowing between the HTTP edge, the
orchestrator, the prompt builders and the backend clients.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from askbridge.errors import InvalidRequestError, UnsupportedToolError

Role = Literal["system", "user", "assistant"]
Tool = Literal["codex", "claude"]

SUPPORTED_TOOLS: tuple[str, ...] = ("codex", "claude")


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a conversation. Immutable; order lives in the list."""
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role="assistant", content=content)


@dataclass(frozen=True)
class AskOptions:
    timeout_ms: float | None = None

    def to_dict(self) -> dict:
        return {} if self.timeout_ms is None else {"timeoutMs": self.timeout_ms}


@dataclass(frozen=True)
class AskRequest:
    """A validated /ask request. Only built by parse_ask_request or tests."""
    tool: Tool
    model: str
    user_input: str
    design_context: str | None = None
    conversation_id: str | None = None
    options: AskOptions | None = None


@dataclass
class AskResult:
    content: str
    conversation_id: str
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "conversationId": self.conversation_id,
            "raw": self.raw,
        }


# ---------------------------------------------------------------------------
# Edge validation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParsedRequest:
    request: AskRequest
    ok: Literal[True] = True


@dataclass(frozen=True)
class RejectedRequest:
    error: InvalidRequestError | UnsupportedToolError
    ok: Literal[False] = False


ParseResult = Union[ParsedRequest, RejectedRequest]


def _is_number(value) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int beyond float range
        return False


def _parse_options(value) -> AskOptions | None:
    if not isinstance(value, dict):
        return None
    timeout = value.get("timeoutMs")
    if not _is_number(timeout):
        return None
    return AskOptions(timeout_ms=timeout)


def parse_ask_request(body: Any) -> ParseResult:
    """
    Validate a decoded JSON body once, at the edge.
    Returns ParsedRequest or RejectedRequest; never raises for bad input.
    """
    if not isinstance(body, dict):
        return RejectedRequest(InvalidRequestError("Request body must be a JSON object."))

    tool = body.get("tool")
    if tool not in SUPPORTED_TOOLS:
        return RejectedRequest(UnsupportedToolError("" if tool is None else str(tool)))

    model = body.get("model")
    if not isinstance(model, str) or not model:
        return RejectedRequest(InvalidRequestError("`model` is required."))

    user_input = body.get("userInput")
    if not isinstance(user_input, str) or not user_input.strip():
        return RejectedRequest(InvalidRequestError("`userInput` is required."))

    design_context = body.get("designContext")
    conversation_id = body.get("conversationId")

    return ParsedRequest(AskRequest(
        tool=tool,
        model=model,
        user_input=user_input,
        design_context=design_context if isinstance(design_context, str) else None,
        conversation_id=conversation_id if isinstance(conversation_id, str) and conversation_id else None,
        options=_parse_options(body.get("options")),
    ))
