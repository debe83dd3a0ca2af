"""
Claude backend: `claude -p [--model X] <prompt>`, plain-text stdout.
The CLI takes a single prompt, so only the last system and last user
messages are sent.
"""

from __future__ import annotations

from askbridge.backends.cli_runner import CLIChatClient
from askbridge.config import DEFAULT_TIMEOUT_MS
from askbridge.models import ChatMessage


def _last_content(messages: list[ChatMessage], role: str) -> str:
    for msg in reversed(messages):
        if msg.role == role:
            return msg.content
    return ""


class ClaudeClient(CLIChatClient):
    """Backend for the claude CLI. Errors propagate unless fallback is enabled."""

    tool = "claude"
    display_name = "Claude CLI"

    def __init__(
        self,
        command: str = "claude",
        model: str | None = None,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
        fallback: bool = False,
    ):
        super().__init__(command=command, timeout_ms=timeout_ms, fallback=fallback)
        self.model = (model or "").strip() or None

    def build_prompt(self, messages: list[ChatMessage]) -> str:
        system = _last_content(messages, "system")
        user = _last_content(messages, "user")
        return f"{system}\n\n{user}" if system else user

    def build_args(self, prompt: str) -> list[str]:
        args = ["-p"]
        if self.model:
            args += ["--model", self.model]
        args.append(prompt)
        return args

    def base_raw(self) -> dict:
        return {**super().base_raw(), "model": self.model}
