"""
Structured response formatter.

Turns a free-text model answer into summary / improvement points / next
actions using plain text heuristics (no second model call):

  1. strip markdown, collapse whitespace
  2. split into sentences (。！？ always end one; . ? ! only before whitespace)
  3. pull list items (-, *, •, ・, 1., 1)) from the text outside code fences
  4. summary     = first 3 unique items, list items before sentences
  5. improvements = sentences ranked by improvement vocabulary hits,
                    each with the next sentence as rationale if it is short
  6. next actions = sentences ranked by action vocabulary hits
  7. design context note, truncated to 120 chars

Pure and deterministic: same input, same output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from askbridge.models import ChatMessage

FORMATTER_VERSION = "structured-response.v1"

MAX_ITEMS = 3
MAX_RATIONALE_LENGTH = 140
MAX_DESIGN_CONTEXT_NOTE = 120
ELLIPSIS = "…"

SUMMARY_FALLBACK = "AI からの回答を要約できませんでした。原文をご確認ください。"
IMPROVEMENT_FALLBACK_POINT = "特に明確な改善提案は検出できませんでした。"
IMPROVEMENT_FALLBACK_RATIONALE = "必要に応じて AI の原文回答を参照してください。"
NEXT_ACTION_FALLBACK = "{user_input} に基づいて次のアクションを検討してください。"

IMPROVEMENT_KEYWORDS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"改善", r"見直", r"修正", r"調整", r"最適化",
    r"\bshould\b", r"recommend", r"suggest", r"\bimprove",
))

ACTION_KEYWORDS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"次", r"\baction", r"進め", r"試[すし]", r"着手",
    r"follow\s*up", r"implement", r"進行", r"確認", r"\bnext\b",
))

_CODE_FENCE = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE = re.compile(r"`([^`]*)`")
_BOLD_STARS = re.compile(r"\*\*([^*]+)\*\*")
_BOLD_UNDERSCORES = re.compile(r"__([^_]+)__")
_ITALIC_STAR = re.compile(r"\*([^*]+)\*")
_ITALIC_UNDERSCORE = re.compile(r"(?<!\w)_([^_]+)_(?!\w)")
_BLOCKQUOTE = re.compile(r"^>\s?", re.MULTILINE)
_HEADING = re.compile(r"^#+\s*", re.MULTILINE)
_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")

_BULLET = re.compile(r"^(?:[-*]\s+|[•・]\s*|\d+[.)](?!\d)\s*)")
_LIST_MARKER = re.compile(r"^[ \t]*(?:[-*][ \t]+|[•・][ \t]*|\d+[.)](?!\d)[ \t]*)", re.MULTILINE)

_CJK_TERMINAL = re.compile(r"([。！？])\s*")
_LATIN_TERMINAL = re.compile(r"([.?!])(?:\s+|$)")
_BREAK = "\x00"


@dataclass(frozen=True)
class ImprovementEntry:
    point: str
    rationale: str | None = None

    def to_dict(self) -> dict:
        data = {"point": self.point}
        if self.rationale is not None:
            data["rationale"] = self.rationale
        return data


@dataclass(frozen=True)
class FormatContext:
    tool: str
    user_input: str
    original_content: str
    design_context: str | None = None
    history: list[ChatMessage] = field(default_factory=list)


@dataclass(frozen=True)
class FormattedResponse:
    text: str
    summary: list[str]
    improvements: list[ImprovementEntry]
    next_actions: list[str]
    design_context_note: str | None = None


@dataclass(frozen=True)
class _Sentence:
    value: str
    index: int


# ---------------------------------------------------------------------------
# Text cleanup
# ---------------------------------------------------------------------------

def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("　", " ")).strip()


def strip_markdown(text: str) -> str:
    text = _CODE_FENCE.sub("", text)
    text = _LIST_MARKER.sub("", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = _BOLD_STARS.sub(r"\1", text)
    text = _BOLD_UNDERSCORES.sub(r"\1", text)
    text = _ITALIC_STAR.sub(r"\1", text)
    text = _ITALIC_UNDERSCORE.sub(r"\1", text)
    text = _BLOCKQUOTE.sub("", text)
    text = _HEADING.sub("", text)
    text = _IMAGE.sub(r"\1", text)
    return _LINK.sub(r"\1", text)


def normalize(text: str) -> str:
    return normalize_whitespace(strip_markdown(text))


def split_sentences(text: str) -> list[_Sentence]:
    if not text:
        return []
    marked = _CJK_TERMINAL.sub(r"\1" + _BREAK, text)
    marked = _LATIN_TERMINAL.sub(r"\1" + _BREAK, marked)
    values = [part.strip() for part in marked.split(_BREAK)]
    return [_Sentence(value, i) for i, value in enumerate(v for v in values if v)]


def extract_bullets(text: str) -> list[_Sentence]:
    bullets = []
    text = _CODE_FENCE.sub("", text)
    for index, line in enumerate(l.strip() for l in text.splitlines()):
        match = _BULLET.match(line)
        if not match:
            continue
        value = normalize(line[match.end():])
        if value:
            bullets.append(_Sentence(value, index))
    return bullets


def _dedupe(items: list[_Sentence]) -> list[_Sentence]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item.value in seen:
            continue
        seen.add(item.value)
        result.append(item)
    return result


def _rank(sentences: list[_Sentence], keywords) -> list[_Sentence]:
    """Every sentence, most keyword hits first, ties in text order."""
    scored = [
        (sum(1 for k in keywords if k.search(s.value)), s)
        for s in sentences
    ]
    scored.sort(key=lambda pair: (-pair[0], pair[1].index))
    return [s for _, s in scored]


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def build_summary(sentences: list[_Sentence], bullets: list[_Sentence]) -> list[str]:
    selected = [item.value for item in _dedupe([*bullets, *sentences])[:MAX_ITEMS]]
    return selected or [SUMMARY_FALLBACK]


def build_improvements(sentences: list[_Sentence]) -> list[ImprovementEntry]:
    by_index = {s.index: s for s in sentences}
    entries = []
    for sentence in _rank(sentences, IMPROVEMENT_KEYWORDS)[:MAX_ITEMS]:
        following = by_index.get(sentence.index + 1)
        rationale = None
        if following is not None and len(following.value) <= MAX_RATIONALE_LENGTH:
            rationale = following.value
        entries.append(ImprovementEntry(point=sentence.value, rationale=rationale))

    return entries or [
        ImprovementEntry(point=IMPROVEMENT_FALLBACK_POINT, rationale=IMPROVEMENT_FALLBACK_RATIONALE)
    ]


def build_next_actions(sentences: list[_Sentence], user_input: str) -> list[str]:
    selected = [s.value for s in _rank(sentences, ACTION_KEYWORDS)[:MAX_ITEMS]]
    return selected or [NEXT_ACTION_FALLBACK.format(user_input=user_input.strip())]


def design_context_note(design_context: str | None) -> str | None:
    if not design_context:
        return None
    normalized = normalize_whitespace(design_context)
    if not normalized:
        return None
    if len(normalized) <= MAX_DESIGN_CONTEXT_NOTE:
        return normalized
    return normalized[:MAX_DESIGN_CONTEXT_NOTE] + ELLIPSIS


def compose_text(
    summary: list[str],
    improvements: list[ImprovementEntry],
    next_actions: list[str],
    note: str | None = None,
) -> str:
    lines: list[str] = []

    if note:
        lines += [f"🎯 デザイン文脈: {note}", ""]

    lines.append("✅ 要約")
    lines += [f"- {entry}" for entry in summary]
    lines.append("")

    lines.append("🛠 改善ポイント")
    for i, entry in enumerate(improvements, start=1):
        lines.append(f"{i}. {entry.point}")
        if entry.rationale:
            lines.append(f"   └ 根拠: {entry.rationale}")
    lines.append("")

    lines.append("🚀 次の一歩")
    lines += [f"- {action}" for action in next_actions]

    return "\n".join(lines)


class StructuredResponseFormatter:
    version = FORMATTER_VERSION

    def format(self, context: FormatContext) -> FormattedResponse:
        sentences = split_sentences(normalize(context.original_content))
        bullets = extract_bullets(context.original_content)

        summary = build_summary(sentences, bullets)
        improvements = build_improvements(sentences)
        next_actions = build_next_actions(sentences, context.user_input)
        note = design_context_note(context.design_context)

        return FormattedResponse(
            text=compose_text(summary, improvements, next_actions, note),
            summary=summary,
            improvements=improvements,
            next_actions=next_actions,
            design_context_note=note,
        )
