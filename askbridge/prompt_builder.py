"""
Prompt builders: one per backend.

Each builder seeds the message list with its backend's system instruction,
then accumulates design context, prior history and the user turn:

    messages = (
        registry.resolve("codex")
        .with_design_context(ctx)
        .with_history(history)
        .with_user("...")
        .build()
    )
"""

from __future__ import annotations

from typing import Iterable

from askbridge.errors import UnsupportedToolError
from askbridge.models import ChatMessage

DESIGN_CONTEXT_LABEL = "【Figma構成】"


class PromptBuilder:
    """Accumulates an ordered message list. `build()` returns a copy."""

    system_prompt: str = ""

    def __init__(self):
        self._messages: list[ChatMessage] = []
        if self.system_prompt:
            self._messages.append(ChatMessage.system(self.system_prompt))

    def with_design_context(self, text: str | None = None) -> "PromptBuilder":
        """Add one labelled system message. Blank/None is ignored."""
        trimmed = (text or "").strip()
        if trimmed:
            self._messages.append(ChatMessage.system(f"{DESIGN_CONTEXT_LABEL}\n{trimmed}"))
        return self

    def with_history(self, history: Iterable[ChatMessage] | None = None) -> "PromptBuilder":
        if history:
            self._messages.extend(history)
        return self

    def with_user(self, user_input: str) -> "PromptBuilder":
        self._messages.append(ChatMessage.user(user_input))
        return self

    def build(self) -> list[ChatMessage]:
        return list(self._messages)


class CodexPromptBuilder(PromptBuilder):
    system_prompt = "あなたはFigmaのUI/UXデザイナーです。簡潔かつ実践的に提案してください。"


class ClaudePromptBuilder(PromptBuilder):
    system_prompt = "あなたはUI/UXパートナー。箇条書きで「改善→理由→次アクション」を簡潔に出力。"


# Tool name → builder class
BUILDERS: dict[str, type[PromptBuilder]] = {
    "codex": CodexPromptBuilder,
    "claude": ClaudePromptBuilder,
}


class PromptBuilderRegistry:
    """Hands out a fresh builder per request."""

    def __init__(self, builders: dict[str, type[PromptBuilder]] | None = None):
        self.builders = dict(BUILDERS if builders is None else builders)

    def resolve(self, tool: str) -> PromptBuilder:
        cls = self.builders.get(tool)
        if cls is None:
            raise UnsupportedToolError(tool)
        return cls()
