"""
Ask orchestrator: one request/response cycle.

    store.get_or_create → builder (context, history, user) → router.chat
    → formatter.format → store.append(user, raw answer) → store.trim

History keeps the model's raw answer, not the formatted rendering, so the
next turn sees what the model actually said.

No lock is held across the backend call. Two concurrent requests on the
same conversation id both build from the same history snapshot and both
append afterwards; the last one to finish decides the final order.
"""

from __future__ import annotations

import logging
from typing import Protocol

from askbridge.backends.base import ChatResult
from askbridge.config import DEFAULT_MAX_HISTORY
from askbridge.formatter import FormatContext, StructuredResponseFormatter
from askbridge.models import AskOptions, AskRequest, AskResult, ChatMessage
from askbridge.prompt_builder import PromptBuilder
from askbridge.storage.conversation_store import ConversationSnapshot

logger = logging.getLogger(__name__)


class ConversationPort(Protocol):
    async def get_or_create(self, conversation_id: str | None = None) -> ConversationSnapshot: ...
    async def append(self, conversation_id: str, *messages: ChatMessage) -> None: ...
    async def trim(self, conversation_id: str, max_messages: int) -> None: ...


class BuilderPort(Protocol):
    def resolve(self, tool: str) -> PromptBuilder: ...


class ChatPort(Protocol):
    async def chat(self, tool: str, messages: list[ChatMessage], options: AskOptions | None = None) -> ChatResult: ...


class AskOrchestrator:
    """Composes store, prompt builders, backend router and formatter."""

    def __init__(
        self,
        chat_service: ChatPort,
        prompt_builders: BuilderPort,
        conversations: ConversationPort,
        max_history: int = DEFAULT_MAX_HISTORY,
        formatter: StructuredResponseFormatter | None = None,
    ):
        self.chat_service = chat_service
        self.prompt_builders = prompt_builders
        self.conversations = conversations
        self.max_history = max_history
        self.formatter = formatter or StructuredResponseFormatter()

    async def execute(self, request: AskRequest) -> AskResult:
        conversation = await self.conversations.get_or_create(request.conversation_id)

        builder = self.prompt_builders.resolve(request.tool)
        design_context = (request.design_context or "").strip() or None

        if design_context:
            builder.with_design_context(design_context)
        messages = (
            builder
            .with_history(conversation.history)
            .with_user(request.user_input)
            .build()
        )

        logger.info(
            "Ask conv=%s tool=%s model=%s history=%d context=%s",
            conversation.id, request.tool, request.model,
            len(conversation.history), "yes" if design_context else "no",
        )

        ai_result = await self.chat_service.chat(request.tool, messages, request.options)

        formatted = self.formatter.format(FormatContext(
            tool=request.tool,
            user_input=request.user_input,
            design_context=design_context,
            original_content=ai_result.content,
            history=conversation.history,
        ))

        await self.conversations.append(
            conversation.id,
            ChatMessage.user(request.user_input),
            ChatMessage.assistant(ai_result.content),
        )
        await self.conversations.trim(conversation.id, self.max_history)

        return AskResult(
            content=formatted.text,
            conversation_id=conversation.id,
            raw={
                **ai_result.raw,
                "formatter": {
                    "version": self.formatter.version,
                    "summary": formatted.summary,
                    "improvements": [entry.to_dict() for entry in formatted.improvements],
                    "nextActions": formatted.next_actions,
                    "designContextNote": formatted.design_context_note,
                    "originalContent": ai_result.content,
                },
            },
        )
