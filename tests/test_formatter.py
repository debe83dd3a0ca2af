"""
Tests for the structured response formatter.
"""

import pytest

from askbridge.formatter import (
    ELLIPSIS,
    IMPROVEMENT_FALLBACK_POINT,
    SUMMARY_FALLBACK,
    FormatContext,
    ImprovementEntry,
    StructuredResponseFormatter,
    design_context_note,
    extract_bullets,
    normalize,
    split_sentences,
)

EXAMPLE = "レイアウトを見直すべきです。余白が狭いです。次に配色を試してください。"


def _format(content: str, user_input: str = "改善ポイントを教えて", design_context=None):
    return StructuredResponseFormatter().format(FormatContext(
        tool="codex",
        user_input=user_input,
        original_content=content,
        design_context=design_context,
    ))


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def test_normalize_strips_markdown():
    text = (
        "# 見出し\n"
        "> 引用です\n"
        "**太字**と*斜体*と`code`と[リンク](http://x)と![画像](http://y.png)\n"
        "```python\nprint('gone')\n```\n"
        "最後　です"
    )
    result = normalize(text)
    assert result == "見出し 引用です 太字と斜体とcodeとリンクと画像 最後 です"


def test_split_sentences_cjk_and_latin():
    sentences = split_sentences("これは一文目。これは二文目！ This is three. Version 1.5 is four? Done")
    assert [s.value for s in sentences] == [
        "これは一文目。",
        "これは二文目！",
        "This is three.",
        "Version 1.5 is four?",
        "Done",
    ]
    assert [s.index for s in sentences] == [0, 1, 2, 3, 4]


def test_split_sentences_empty():
    assert split_sentences("") == []


def test_extract_bullets_markers():
    text = "intro\n- dash item\n* star item\n• dot item\n・中黒\n1. numbered\n2) paren\n**not a bullet**\n3.5 ratio"
    assert [b.value for b in extract_bullets(text)] == [
        "dash item", "star item", "dot item", "中黒", "numbered", "paren",
    ]


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def test_example_answer_structure():
    result = _format(EXAMPLE)
    assert ImprovementEntry(point="レイアウトを見直すべきです。", rationale="余白が狭いです。") in result.improvements
    assert "次に配色を試してください。" in result.next_actions
    assert result.summary == ["レイアウトを見直すべきです。", "余白が狭いです。", "次に配色を試してください。"]


def test_bullets_come_first_in_summary_and_dedupe():
    content = "前置きです。\n- 余白を広げる\n- 余白を広げる\n- 色を統一する\n最後に確認します。"
    result = _format(content)
    assert result.summary[:2] == ["余白を広げる", "色を統一する"]
    assert len(result.summary) == 3
    assert len(set(result.summary)) == 3


def test_summary_fallback_for_empty_answer():
    result = _format("   ")
    assert result.summary == [SUMMARY_FALLBACK]
    assert result.improvements[0].point == IMPROVEMENT_FALLBACK_POINT
    assert result.next_actions == ["改善ポイントを教えて に基づいて次のアクションを検討してください。"]


def test_improvements_ranked_by_keyword_hits():
    content = (
        "You should adjust spacing. "
        "Colors look fine. "
        "We recommend you improve and 最適化 the hero, and should 修正 the CTA. "
        "Typography needs 調整."
    )
    result = _format(content)
    points = [e.point for e in result.improvements]
    assert points[0].startswith("We recommend")
    assert points[1:] == ["You should adjust spacing.", "Typography needs 調整."]


def test_rationale_only_when_short():
    long_reason = "理由" * 80 + "。"
    content = f"配置を改善しましょう。{long_reason}ボタンを修正します。"
    result = _format(content)
    first = result.improvements[0]
    assert first.point == "配置を改善しましょう。"
    assert first.rationale is None


def test_at_most_three_items_each():
    content = "".join(f"項目{i}を改善して次に確認。" for i in range(6))
    result = _format(content)
    assert len(result.summary) == 3
    assert len(result.improvements) == 3
    assert len(result.next_actions) == 3


def test_next_actions_fallback_quotes_user_input():
    result = _format("```\ncode only\n```", user_input="  ヘッダーを見て  ")
    assert result.next_actions == ["ヘッダーを見て に基づいて次のアクションを検討してください。"]


def test_sentences_without_keywords_still_ranked():
    result = _format("余白が狭いです。配色が暗いです。フォントが小さいです。")
    assert result.improvements == [
        ImprovementEntry(point="余白が狭いです。", rationale="配色が暗いです。"),
        ImprovementEntry(point="配色が暗いです。", rationale="フォントが小さいです。"),
        ImprovementEntry(point="フォントが小さいです。", rationale=None),
    ]
    assert result.next_actions == ["余白が狭いです。", "配色が暗いです。", "フォントが小さいです。"]


def test_keyword_sentence_ranked_before_plain_ones():
    result = _format("余白が狭いです。配色が暗いです。レイアウトを見直すべきです。", user_input="q")
    assert [e.point for e in result.improvements] == [
        "レイアウトを見直すべきです。", "余白が狭いです。", "配色が暗いです。",
    ]
    assert result.improvements[0].rationale is None
    assert result.next_actions == ["余白が狭いです。", "配色が暗いです。", "レイアウトを見直すべきです。"]


def test_single_plain_sentence_is_used():
    result = _format("余白が狭いです。")
    assert result.improvements == [ImprovementEntry(point="余白が狭いです。", rationale=None)]
    assert result.next_actions == ["余白が狭いです。"]


def test_list_lines_inside_code_fence_ignored():
    content = "```\n- not a bullet\n```\n- real item.\n説明です。"
    result = _format(content)
    assert result.summary == ["real item.", "説明です。"]
    assert [b.value for b in extract_bullets(content)] == ["real item."]


# ---------------------------------------------------------------------------
# Design context note + rendering
# ---------------------------------------------------------------------------

def test_design_context_note_truncates():
    context = "あ" * 130
    note = design_context_note(context)
    assert note == "あ" * 120 + ELLIPSIS


def test_design_context_note_short_and_blank():
    assert design_context_note("  Frame   A \n B ") == "Frame A B"
    assert design_context_note("   ") is None
    assert design_context_note(None) is None


def test_rendered_text_sections_in_order():
    result = _format(EXAMPLE, design_context="Frame: Hero")
    text = result.text
    assert text.startswith("🎯 デザイン文脈: Frame: Hero\n\n✅ 要約\n")
    assert text.index("✅ 要約") < text.index("🛠 改善ポイント") < text.index("🚀 次の一歩")
    assert "1. レイアウトを見直すべきです。\n   └ 根拠: 余白が狭いです。" in text
    assert "🚀 次の一歩\n- 次に配色を試してください。\n" in text


def test_rendered_text_without_context():
    assert _format(EXAMPLE).text.startswith("✅ 要約")


@pytest.mark.parametrize("content", [EXAMPLE, "- a\n- b\n\n**bold** text. Should we?", ""])
def test_deterministic(content):
    assert _format(content) == _format(content)
