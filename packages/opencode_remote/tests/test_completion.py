"""Tests for the completion detector."""

from unittest.mock import MagicMock

from opencode_remote.completion import CompletionDetector
from opencode_remote.models.domain import Session


def _session(status: str) -> Session:
    return Session(id="s1", title="work", directory="", created_at=0, updated_at=0, status=status)


def test_busy_then_idle_emits_once() -> None:
    sink = MagicMock()
    detector = CompletionDetector(sink)

    assert detector.observe(_session("busy")) is False
    assert detector.observe(_session("busy")) is False
    assert detector.observe(_session("idle")) is True
    assert detector.observe(_session("idle")) is False

    sink.notify_completed.assert_called_once()
    assert detector.signals == 1


def test_retry_counts_as_running() -> None:
    detector = CompletionDetector()
    detector.observe(_session("retry"))
    assert detector.was_running is True
    assert detector.observe(_session("unknown")) is True


def test_reset_suppresses_signal() -> None:
    sink = MagicMock()
    detector = CompletionDetector(sink)
    detector.observe(_session("busy"))

    detector.reset()

    assert detector.observe(_session("idle")) is False
    sink.notify_completed.assert_not_called()


def test_missing_session_resets_without_signal() -> None:
    sink = MagicMock()
    detector = CompletionDetector(sink)
    detector.observe(_session("busy"))

    assert detector.observe(None) is False
    assert detector.was_running is False
    assert detector.observe(_session("idle")) is False
    sink.notify_completed.assert_not_called()


def test_sink_failure_is_contained() -> None:
    sink = MagicMock()
    sink.notify_completed.side_effect = RuntimeError("no audio device")
    detector = CompletionDetector(sink)
    detector.observe(_session("busy"))

    assert detector.observe(_session("idle")) is True
    assert detector.was_running is False
