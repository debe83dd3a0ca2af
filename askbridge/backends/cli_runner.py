"""
CLI-process backends.

run_cli() owns the subprocess lifecycle: spawn, read stdout/stderr
incrementally, enforce the timeout, and make sure the child is gone on
every exit path (success, error, timeout, or the caller being cancelled).

CLIChatClient layers the shared exit-code policy and the optional
fallback answer on top; subclasses only decide how to serialize the
prompt, which arguments to pass and how to read stdout.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

from askbridge.backends.base import ChatClient, ChatResult
from askbridge.backends.events import LineSplitter
from askbridge.backends.fallback import build_fallback_answer, describe_error
from askbridge.config import DEFAULT_TIMEOUT_MS
from askbridge.errors import CLIError, CLINonZeroExitError, CLISpawnError, CLITimeoutError
from askbridge.models import AskOptions, ChatMessage

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096
_TERMINATE_GRACE_SECONDS = 5.0


@dataclass
class CLIOutput:
    command: str
    stdout: str
    stderr: str
    exit_code: int | None
    latency_ms: float = 0.0


async def _terminate(proc: asyncio.subprocess.Process, grace: float = _TERMINATE_GRACE_SECONDS) -> None:
    """SIGTERM, then SIGKILL if the child ignores it."""
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=grace)
    except asyncio.TimeoutError:
        logger.warning("Process %s ignored SIGTERM, killing", proc.pid)
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()


async def run_cli(
    command: str,
    args: list[str],
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    on_stdout_line: Callable[[str], object] | None = None,
    env: Mapping[str, str] | None = None,
) -> CLIOutput:
    """
    Run `command *args` to completion and capture its output.

    Raises CLISpawnError if the process can't start and CLITimeoutError if
    it outlives `timeout_ms`. Exit codes are reported, not judged.
    """
    t0 = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            command, *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(os.environ if env is None else env),
        )
    except OSError as e:
        raise CLISpawnError(command, str(e)) from e

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []

    async def _pump_stdout():
        splitter = LineSplitter()
        while True:
            chunk = await proc.stdout.read(_READ_CHUNK)
            if not chunk:
                break
            stdout_chunks.append(chunk)
            if on_stdout_line is not None:
                for line in splitter.feed(chunk):
                    on_stdout_line(line)
        if on_stdout_line is not None:
            for line in splitter.flush():
                on_stdout_line(line)

    async def _pump_stderr():
        while True:
            chunk = await proc.stderr.read(_READ_CHUNK)
            if not chunk:
                break
            stderr_chunks.append(chunk)

    try:
        await asyncio.wait_for(
            asyncio.gather(_pump_stdout(), _pump_stderr(), proc.wait()),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.0fms, terminating pid %s", command, timeout_ms, proc.pid)
        raise CLITimeoutError(command, timeout_ms) from None
    finally:
        await _terminate(proc)

    return CLIOutput(
        command=command,
        stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
        stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
        exit_code=proc.returncode,
        latency_ms=(time.monotonic() - t0) * 1000,
    )


# ---------------------------------------------------------------------------
# Client base
# ---------------------------------------------------------------------------

@dataclass
class ParsedOutput:
    """What a subclass extracted from stdout."""
    content: str
    diagnostics: dict = field(default_factory=dict)
    error_text: str = ""


class CLIChatClient(ChatClient):
    """
    A ChatClient backed by an external command.

    With `fallback=True`, any CLIError becomes a labelled degraded answer
    (raw.fallback = True) instead of an exception.
    """

    display_name: str = "CLI"

    def __init__(
        self,
        command: str,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
        fallback: bool = False,
        name: str | None = None,
    ):
        super().__init__(name=name or self.tool or command, timeout_ms=timeout_ms)
        self.command = command
        self.fallback = fallback

    @abc.abstractmethod
    def build_prompt(self, messages: list[ChatMessage]) -> str:
        ...

    @abc.abstractmethod
    def build_args(self, prompt: str) -> list[str]:
        ...

    def new_line_handler(self) -> tuple[Callable[[str], object] | None, Callable[[CLIOutput], ParsedOutput]]:
        """
        Return (per-line callback, final parser). The default reads stdout
        as plain text once the process has exited.
        """
        return None, lambda output: ParsedOutput(content=output.stdout.strip())

    def base_raw(self) -> dict:
        return {"source": f"{self.tool}-cli", "command": self.command}

    async def run(self, messages: list[ChatMessage], options: AskOptions | None = None) -> ChatResult:
        """Run the CLI once and apply the exit-code policy. Raises CLIError."""
        prompt = self.build_prompt(messages)
        args = self.build_args(prompt)
        timeout_ms = self.resolve_timeout_ms(options)
        on_line, parse = self.new_line_handler()

        output = await run_cli(self.command, args, timeout_ms=timeout_ms, on_stdout_line=on_line)
        parsed = parse(output)

        raw = {
            **self.base_raw(),
            "exit_code": output.exit_code,
            "latency_ms": round(output.latency_ms, 1),
            **parsed.diagnostics,
        }

        if output.exit_code == 0:
            return ChatResult(content=parsed.content, raw=raw)

        if parsed.content:
            logger.warning(
                "%s exited with code %s but produced output; using it",
                self.command, output.exit_code,
            )
            if output.stderr.strip():
                raw["stderr"] = output.stderr.strip()[:2000]
            return ChatResult(content=parsed.content, raw=raw)

        stderr = output.stderr.strip() or parsed.error_text
        raise CLINonZeroExitError(self.command, output.exit_code, stderr)

    async def chat(self, messages: list[ChatMessage], options: AskOptions | None = None) -> ChatResult:
        try:
            return await self.run(messages, options)
        except CLIError as e:
            if not self.fallback:
                raise
            logger.warning("%s failed, returning fallback answer: %s", self.display_name, e)
            return ChatResult(
                content=build_fallback_answer(messages, e, self.tool),
                raw={
                    "source": f"{self.tool}-fallback",
                    "fallback": True,
                    "command": self.command,
                    "error": describe_error(e),
                },
            )
