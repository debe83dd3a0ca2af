"""
Degraded-mode answers.

When a backend CLI can't produce an answer, a client with the fallback
policy enabled returns this text instead of raising. It is clearly marked as
automatic, repeats what was asked, gives generic UI improvement hints, and
lists troubleshooting steps picked from the error message.
"""

from __future__ import annotations

from askbridge.models import ChatMessage
from askbridge.prompt_builder import DESIGN_CONTEXT_LABEL

FALLBACK_HEADER = "⚠️ AI バックエンドに接続できなかったため、自動生成のヒントを表示しています。"

GENERIC_HINTS = (
    "ファーストビューでは主要メッセージとCTAをスクロール前に収め、視認性を高める余白とタイポグラフィを確保する。",
    "セクションごとに背景トーンや見出しレベルを変え、縦長レイアウトでも情報の塊を把握しやすくする。",
    "ツールバーとフッターはアクセシブルなコントラストを維持し、主要な行動導線を常に提示する。",
    "ボタンエリアはプライマリCTAと補足リンクを整理し、必要に応じてスクロール追従表示で離脱を防ぐ。",
    "カラーパレットやタイポグラフィスタイルはコンポーネント化し、再利用と一貫性を促進する。",
)

FALLBACK_FOOTER = "※ この回答は自動補完されたヒントであり、最終提案時には文脈に合わせてブラッシュアップしてください。"

# Category → lowercase substrings that identify it in an error message
ERROR_PATTERNS: dict[str, tuple[str, ...]] = {
    "auth": ("auth", "login", "401", "api key", "unauthorized", "認証"),
    "timeout": ("timeout", "timed out", "タイムアウト"),
    "network": ("network", "econn", "enotfound", "connection", "dns", "ネットワーク"),
    "rate_limit": ("rate limit", "rate_limit", "429", "quota", "too many requests"),
}

# Backend → category → steps. "generic" is used when nothing matched.
TROUBLESHOOTING: dict[str, dict[str, tuple[str, ...]]] = {
    "codex": {
        "auth": (
            "`codex login` を実行して認証状態を確認してください。",
            "OPENAI_API_KEY を使っている場合は値と有効期限を確認してください。",
        ),
        "timeout": (
            "リクエストの `options.timeoutMs` を延ばすか、質問を短くして再試行してください。",
            "無効化する MCP サーバー (CODEX_DISABLED_MCP_SERVERS) を増やすと起動が速くなります。",
        ),
        "network": (
            "ネットワーク接続とプロキシ設定を確認してください。",
        ),
        "rate_limit": (
            "レート制限に達しました。しばらく待ってから再試行してください。",
        ),
        "generic": (
            "`codex --version` が実行できるか (PATH / CODEX_CMD) を確認してください。",
            "サーバーログの標準エラー出力を確認してください。",
        ),
    },
    "claude": {
        "auth": (
            "`claude` を一度対話モードで起動し、ログイン状態を確認してください。",
            "ANTHROPIC_API_KEY を使っている場合は値を確認してください。",
        ),
        "timeout": (
            "リクエストの `options.timeoutMs` を延ばすか、質問を短くして再試行してください。",
        ),
        "network": (
            "ネットワーク接続とプロキシ設定を確認してください。",
        ),
        "rate_limit": (
            "利用上限に達しました。しばらく待ってから再試行してください。",
        ),
        "generic": (
            "`claude --version` が実行できるか (PATH / CLAUDE_CMD) を確認してください。",
            "CLAUDE_MODEL に指定したモデル名が有効か確認してください。",
        ),
    },
}


def describe_error(error: BaseException | str | None) -> dict | None:
    """JSON-safe summary of an error for raw diagnostics."""
    if error is None:
        return None
    if isinstance(error, BaseException):
        return {"message": str(error), "type": type(error).__name__}
    return {"message": str(error)}


def classify_error(message: str) -> list[str]:
    """Categories whose patterns occur in `message`, in table order."""
    lowered = (message or "").lower()
    return [
        category for category, patterns in ERROR_PATTERNS.items()
        if any(p in lowered for p in patterns)
    ]


def troubleshooting_steps(message: str, tool: str) -> list[str]:
    table = TROUBLESHOOTING.get(tool) or TROUBLESHOOTING["codex"]
    categories = classify_error(message) or ["generic"]
    steps: list[str] = []
    for category in categories:
        for step in table.get(category, ()):
            if step not in steps:
                steps.append(step)
    return steps


def _last_user_message(messages: list[ChatMessage]) -> str:
    for msg in reversed(messages):
        if msg.role == "user":
            return msg.content
    return ""


def _design_context(messages: list[ChatMessage]) -> str:
    return "\n".join(
        msg.content.replace(DESIGN_CONTEXT_LABEL, "", 1).strip()
        for msg in messages
        if msg.role == "system" and DESIGN_CONTEXT_LABEL in msg.content
    )


def build_fallback_answer(messages: list[ChatMessage], error: BaseException | str | None, tool: str) -> str:
    sections: list[str] = [FALLBACK_HEADER, ""]

    user_message = _last_user_message(messages).strip()
    if user_message:
        sections += ["**ユーザーからの要望**", user_message, ""]

    design_context = _design_context(messages)
    if design_context:
        sections += ["**観察したデザインの状況**", design_context, ""]

    sections.append("**改善のヒント**")
    sections += [f"{i}. {hint}" for i, hint in enumerate(GENERIC_HINTS, start=1)]
    sections.append("")

    message = str(error) if error is not None else ""
    if message:
        sections += ["**診断情報**", f"- {type(error).__name__ if isinstance(error, BaseException) else 'Error'}: {message}", ""]

    sections.append("**トラブルシューティング**")
    sections += [f"- {step}" for step in troubleshooting_steps(message, tool)]
    sections += ["", FALLBACK_FOOTER]

    return "\n".join(sections)
