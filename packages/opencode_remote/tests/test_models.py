"""Tests for wire models and the derived client views."""

from opencode_remote.models.api import MessageEnvelope, SessionDto, SessionStatusDto
from opencode_remote.models.domain import build_transcript, effective_status, join_sessions


def _envelope(message_id: str, parts: list[dict]) -> MessageEnvelope:
    return MessageEnvelope.model_validate(
        {"info": {"id": message_id, "role": "assistant", "time": {"created": 5}}, "parts": parts}
    )


def test_transcript_keeps_only_text_envelopes() -> None:
    envelopes = [
        _envelope("m1", [{"type": "text", "text": "first"}, {"type": "text", "text": "  "}]),
        _envelope("m2", [{"type": "tool", "tool": "bash"}]),
        _envelope("m3", [{"type": "reasoning", "text": "hidden"}, {"type": "text", "text": "b"}]),
        _envelope("m4", [{"type": "text", "text": "a\n"}, {"type": "text", "text": "c"}]),
    ]
    transcript = build_transcript(envelopes)

    assert [message.id for message in transcript] == ["m1", "m3", "m4"]
    assert transcript[1].text == "b"
    assert transcript[2].text == "a\n\nc"
    assert transcript[0].created_at == 5
    assert transcript[0].completed_at is None


def test_effective_status() -> None:
    assert effective_status(None) == "idle"
    assert effective_status(SessionStatusDto(type="busy")) == "busy"
    assert effective_status(SessionStatusDto(type="retry", attempt=2)) == "retry"
    assert effective_status(SessionStatusDto(type="paused")) == "unknown"


def test_join_orders_by_update_time() -> None:
    sessions = [
        SessionDto.model_validate({"id": "old", "time": {"created": 1, "updated": 10}}),
        SessionDto.model_validate({"id": "new", "time": {"created": 2, "updated": 30}}),
        SessionDto.model_validate({"id": "mid", "updated": 20}),
    ]
    joined = join_sessions(sessions, {})
    assert [session.id for session in joined] == ["new", "mid", "old"]
    assert all(session.status == "idle" for session in joined)


def test_unknown_fields_are_ignored() -> None:
    dto = SessionDto.model_validate({"id": "s1", "version": "0.3", "share": {"url": "x"}})
    assert dto.id == "s1"
    assert dto.summary is None
