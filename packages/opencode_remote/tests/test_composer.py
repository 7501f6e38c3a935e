import pytest
from opencode_remote.composer import filter_sessions, parse_composer
from opencode_remote.models.domain import Session


@pytest.mark.parametrize("text", ["", "   ", "/", " / "])
def test_blank_input_is_ignored(text: str) -> None:
    assert parse_composer(text) is None


def test_plain_text_is_prompt() -> None:
    parsed = parse_composer("  explain this diff \n")
    assert parsed is not None
    assert parsed.kind == "prompt"
    assert parsed.text == "explain this diff"


def test_slash_text_is_command() -> None:
    parsed = parse_composer("/review  src/app.py  carefully")
    assert parsed is not None
    assert parsed.kind == "command"
    assert parsed.command == "review"
    assert parsed.arguments == "src/app.py  carefully"


def test_command_without_arguments() -> None:
    parsed = parse_composer("/init")
    assert parsed is not None
    assert (parsed.command, parsed.arguments) == ("init", "")


def test_filter_sessions_matches_title_or_directory() -> None:
    sessions = [
        Session(id="a", title="Fix Login", directory="/srv/web", created_at=0, updated_at=0),
        Session(id="b", title="Docs", directory="/srv/API", created_at=0, updated_at=0),
    ]
    assert [s.id for s in filter_sessions(sessions, "login")] == ["a"]
    assert [s.id for s in filter_sessions(sessions, "api")] == ["b"]
    assert [s.id for s in filter_sessions(sessions, "  ")] == ["a", "b"]
    assert filter_sessions(sessions, "nothing") == []
