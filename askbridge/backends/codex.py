"""
Codex backend: `codex exec --json` with newline-delimited JSON events.
Auxiliary MCP servers listed in config are switched off per invocation so
the CLI starts faster and doesn't wander off into tools.
"""

from __future__ import annotations

import logging

from askbridge.backends.cli_runner import CLIChatClient, CLIOutput, ParsedOutput
from askbridge.backends.events import EventCollector
from askbridge.config import DEFAULT_TIMEOUT_MS
from askbridge.models import ChatMessage

logger = logging.getLogger(__name__)


def compose_prompt(messages: list[ChatMessage]) -> str:
    """Flatten the conversation into `ROLE: content` lines."""
    return "\n".join(f"{m.role.upper()}: {m.content}" for m in messages)


class CodexClient(CLIChatClient):
    """Backend for the codex CLI. Fallback answers are on by default."""

    tool = "codex"
    display_name = "Codex CLI"

    def __init__(
        self,
        command: str = "codex",
        disabled_mcp_servers: list[str] | tuple[str, ...] = (),
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
        fallback: bool = True,
    ):
        super().__init__(command=command, timeout_ms=timeout_ms, fallback=fallback)
        self.disabled_mcp_servers = tuple(disabled_mcp_servers)

    def build_prompt(self, messages: list[ChatMessage]) -> str:
        return compose_prompt(messages)

    def build_args(self, prompt: str) -> list[str]:
        args = ["exec", "--json"]
        for server in self.disabled_mcp_servers:
            args += ["-c", f"mcp_servers.{server}.enabled=false"]
        args.append(prompt)
        return args

    def new_line_handler(self):
        collector = EventCollector()

        def parse(output: CLIOutput) -> ParsedOutput:
            diagnostics = {}
            if collector.warnings:
                diagnostics["warnings"] = list(collector.warnings)
            if collector.errors:
                diagnostics["errors"] = list(collector.errors)
            return ParsedOutput(
                content=collector.text,
                diagnostics=diagnostics,
                error_text="\n".join(collector.errors),
            )

        return collector.add_line, parse
