"""
Tests for fallback answer synthesis.
"""

import pytest

from askbridge.backends.fallback import (
    FALLBACK_HEADER,
    TROUBLESHOOTING,
    build_fallback_answer,
    classify_error,
    describe_error,
    troubleshooting_steps,
)
from askbridge.errors import CLITimeoutError
from askbridge.models import ChatMessage
from askbridge.prompt_builder import CodexPromptBuilder


@pytest.mark.parametrize("message,expected", [
    ("Error: 401 Unauthorized", ["auth"]),
    ("Please run codex login", ["auth"]),
    ("codex did not respond within 1000ms (timeout)", ["timeout"]),
    ("getaddrinfo ENOTFOUND api.openai.com", ["network"]),
    ("429 Too Many Requests", ["rate_limit"]),
    ("segfault", []),
])
def test_classify_error(message, expected):
    assert classify_error(message) == expected


def test_generic_steps_when_nothing_matches():
    assert troubleshooting_steps("weird", "claude") == list(TROUBLESHOOTING["claude"]["generic"])


def test_backend_specific_wording():
    codex = troubleshooting_steps("unauthorized", "codex")
    claude = troubleshooting_steps("unauthorized", "claude")
    assert codex != claude
    assert any("codex login" in s for s in codex)


def test_describe_error():
    assert describe_error(None) is None
    assert describe_error(ValueError("x")) == {"message": "x", "type": "ValueError"}
    assert describe_error("plain") == {"message": "plain"}


def test_fallback_answer_contents():
    messages = (
        CodexPromptBuilder()
        .with_design_context("Frame: Landing / Hero")
        .with_history([ChatMessage.user("old question")])
        .with_user("ヒーローを改善したい")
        .build()
    )
    error = CLITimeoutError("codex", 1000)

    text = build_fallback_answer(messages, error, "codex")

    assert text.startswith(FALLBACK_HEADER)
    assert "ヒーローを改善したい" in text
    assert "old question" not in text
    assert "Frame: Landing / Hero" in text
    assert "【Figma構成】" not in text
    assert "CLITimeoutError" in text
    assert "options.timeoutMs" in text


def test_fallback_answer_without_error_or_context():
    text = build_fallback_answer([ChatMessage.user("q")], None, "claude")
    assert "**診断情報**" not in text
    assert "**観察したデザインの状況**" not in text
    assert "**改善のヒント**" in text
