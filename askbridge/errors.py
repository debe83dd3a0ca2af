"""
Error taxonomy for askbridge.

Every error carries the wire `code` and HTTP `status_code` the transport
layer should answer with. Validation errors are 400s; anything that means
the server itself misbehaved (missing conversation, no client, dead CLI)
maps to INTERNAL_ERROR / 500.
"""

from __future__ import annotations

INVALID_REQUEST = "INVALID_REQUEST"
UNSUPPORTED_TOOL = "UNSUPPORTED_TOOL"
INTERNAL_ERROR = "INTERNAL_ERROR"


class AskBridgeError(Exception):
    """Base class for all askbridge errors."""
    code = INTERNAL_ERROR
    status_code = 500


class InvalidRequestError(AskBridgeError):
    """Malformed or incomplete input. Never retried."""
    code = INVALID_REQUEST
    status_code = 400


class UnsupportedToolError(AskBridgeError):
    code = UNSUPPORTED_TOOL
    status_code = 400

    def __init__(self, tool: str):
        super().__init__(f"Unsupported tool: {tool}")
        self.tool = tool


class UnknownConversationError(AskBridgeError):
    """A store operation referenced an id that does not exist."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Unknown conversation: {conversation_id}")
        self.conversation_id = conversation_id


class NoClientForToolError(AskBridgeError):
    def __init__(self, tool: str):
        super().__init__(f"No client for tool: {tool}")
        self.tool = tool


# ---------------------------------------------------------------------------
# Backend process failures
# ---------------------------------------------------------------------------

class CLIError(AskBridgeError):
    """Base for failures of an external backend CLI process."""


class CLISpawnError(CLIError):
    """The process could not be started (missing binary, permissions, ...)."""

    def __init__(self, command: str, reason: str):
        super().__init__(f"Failed to start {command}: {reason}")
        self.command = command


class CLITimeoutError(CLIError):
    def __init__(self, command: str, timeout_ms: float):
        super().__init__(f"{command} did not respond within {timeout_ms:.0f}ms (timeout)")
        self.command = command
        self.timeout_ms = timeout_ms


class CLINonZeroExitError(CLIError):
    """Process exited non-zero without producing any usable output."""

    def __init__(self, command: str, exit_code: int | None, stderr: str = ""):
        message = stderr.strip() or f"{command} exited with code {exit_code}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


def error_body(code: str, message: str) -> dict:
    """Failure payload shape shared by every endpoint."""
    return {"error": {"code": code, "message": message}}
