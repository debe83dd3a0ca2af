"""
Chat backends for askbridge.
Each backend is an external CLI (codex, claude) wrapped as a ChatClient;
the router picks the client by tool name.
"""
from askbridge.backends.base import ChatClient, ChatResult
from askbridge.backends.claude import ClaudeClient
from askbridge.backends.cli_runner import CLIChatClient, run_cli
from askbridge.backends.codex import CodexClient
from askbridge.backends.router import ClientRouter

__all__ = [
    "ChatClient",
    "ChatResult",
    "CLIChatClient",
    "ClaudeClient",
    "CodexClient",
    "ClientRouter",
    "run_cli",
]
