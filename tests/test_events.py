"""
Tests for streaming JSON event decoding.
"""

import json

from askbridge.backends.events import (
    AgentMessage,
    ErrorEvent,
    EventCollector,
    LineSplitter,
    Unrecognized,
    decode_event,
)


def _line(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)


# ---------------------------------------------------------------------------
# LineSplitter
# ---------------------------------------------------------------------------

def test_splitter_joins_partial_chunks():
    splitter = LineSplitter()
    assert list(splitter.feed(b'{"a":')) == []
    assert list(splitter.feed(b' 1}\n{"b"')) == ['{"a": 1}']
    assert list(splitter.feed(b": 2}\r\n")) == ['{"b": 2}']
    assert list(splitter.flush()) == []


def test_splitter_flushes_unterminated_tail():
    splitter = LineSplitter()
    assert list(splitter.feed(b"one\ntwo")) == ["one"]
    assert list(splitter.flush()) == ["two"]
    assert list(splitter.flush()) == []


def test_splitter_multibyte_across_chunks():
    data = "改善\n".encode("utf-8")
    splitter = LineSplitter()
    out = list(splitter.feed(data[:2])) + list(splitter.feed(data[2:]))
    assert out == ["改善"]


# ---------------------------------------------------------------------------
# decode_event
# ---------------------------------------------------------------------------

def test_decode_item_completed_agent_message():
    event = decode_event(_line({"type": "item.completed", "item": {"type": "agent_message", "text": "hello"}}))
    assert event == AgentMessage(text="hello")


def test_decode_legacy_msg_shape():
    event = decode_event(_line({"id": "0", "msg": {"type": "agent_message", "message": "legacy"}}))
    assert event == AgentMessage(text="legacy")


def test_decode_other_item_types_unrecognized():
    event = decode_event(_line({"type": "item.completed", "item": {"type": "reasoning", "text": "thinking"}}))
    assert isinstance(event, Unrecognized)
    assert event.reason == ""


def test_decode_error_events():
    assert decode_event(_line({"type": "error", "message": "401 Unauthorized"})) == ErrorEvent("401 Unauthorized")
    failed = decode_event(_line({"type": "turn.failed", "error": {"message": "rate limit"}}))
    assert failed == ErrorEvent("rate limit")


def test_decode_malformed_line():
    event = decode_event("{not json")
    assert isinstance(event, Unrecognized)
    assert "invalid JSON" in event.reason


def test_decode_non_object():
    event = decode_event("[1, 2]")
    assert isinstance(event, Unrecognized)
    assert event.reason == "not a JSON object"


# ---------------------------------------------------------------------------
# EventCollector
# ---------------------------------------------------------------------------

def test_collector_concatenates_agent_messages_in_order():
    collector = EventCollector()
    lines = [
        _line({"type": "thread.started", "thread_id": "t"}),
        _line({"type": "item.completed", "item": {"type": "agent_message", "text": "first"}}),
        "garbage line",
        "",
        _line({"type": "item.completed", "item": {"type": "agent_message", "text": "second"}}),
    ]
    for line in lines:
        collector.add_line(line)

    assert collector.text == "first\n\nsecond"
    assert len(collector.warnings) == 1
    assert "garbage line" in collector.warnings[0]


def test_collector_records_errors():
    collector = EventCollector()
    collector.add_line(_line({"type": "error", "message": "boom"}))
    assert collector.text == ""
    assert collector.errors == ["boom"]


def test_collector_skips_empty_agent_text():
    collector = EventCollector()
    collector.add_line(_line({"type": "agent_message", "text": "   "}))
    assert collector.messages == []
