"""
Client router: capability-based dispatch.

The first registered client whose supports(tool) is true serves the request.
There is no fallback across clients: degraded answers are each client's own
policy (see CLIChatClient.fallback).
"""

from __future__ import annotations

import logging

from askbridge.backends.base import ChatClient, ChatResult
from askbridge.backends.claude import ClaudeClient
from askbridge.backends.codex import CodexClient
from askbridge.config import ServerConfig
from askbridge.errors import NoClientForToolError
from askbridge.models import AskOptions, ChatMessage

logger = logging.getLogger(__name__)


class ClientRouter:
    """Routes a tool name to the client that can serve it."""

    def __init__(self, clients: list[ChatClient]):
        self.clients: list[ChatClient] = list(clients)
        names = [f"{c.name}({c.tool})" for c in self.clients]
        logger.info("Client router initialized: %s", ", ".join(names) or "no clients")

    @classmethod
    def from_config(cls, config: ServerConfig) -> "ClientRouter":
        return cls([
            CodexClient(
                command=config.codex_command,
                disabled_mcp_servers=config.codex_disabled_mcp_servers,
                timeout_ms=config.timeout_ms,
                fallback=config.codex_fallback,
            ),
            ClaudeClient(
                command=config.claude_command,
                model=config.claude_model,
                timeout_ms=config.timeout_ms,
                fallback=config.claude_fallback,
            ),
        ])

    def resolve(self, tool: str) -> ChatClient:
        for client in self.clients:
            if client.supports(tool):
                return client
        raise NoClientForToolError(tool)

    async def chat(
        self,
        tool: str,
        messages: list[ChatMessage],
        options: AskOptions | None = None,
    ) -> ChatResult:
        """Delegate to the resolved client. Client errors propagate unchanged."""
        client = self.resolve(tool)
        logger.debug("Dispatching %d message(s) to '%s'", len(messages), client.name)
        result = await client.chat(messages, options)
        if result.is_fallback:
            logger.info("Client '%s' answered in fallback mode", client.name)
        return result
