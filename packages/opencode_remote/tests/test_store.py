from opencode_remote.models.domain import Session
from opencode_remote.store import StateStore, SyncState


def _session(session_id: str, status: str = "idle") -> Session:
    return Session(
        id=session_id, title=session_id, directory="", created_at=0, updated_at=0, status=status
    )


def test_update_replaces_snapshot_and_notifies() -> None:
    store = StateStore()
    calls: list[tuple[SyncState, SyncState]] = []
    store.subscribe(lambda previous, current: calls.append((previous, current)))
    first = store.state

    store.update(sessions=(_session("s1"),), selected_session_id="s1")

    assert store.state is not first
    assert first.sessions == ()
    assert len(calls) == 1
    previous, current = calls[0]
    assert previous is first
    assert current.selected_session is not None
    assert current.selected_session.id == "s1"


def test_noop_update_does_not_notify() -> None:
    store = StateStore()
    calls: list[object] = []
    store.subscribe(lambda previous, current: calls.append(current))
    store.update(last_error=None)
    assert calls == []


def test_unsubscribe_and_failing_listener() -> None:
    store = StateStore()
    seen: list[str | None] = []

    def broken(previous: SyncState, current: SyncState) -> None:
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    unsubscribe = store.subscribe(lambda previous, current: seen.append(current.last_error))

    store.set_error("boom")
    unsubscribe()
    store.clear_error()

    assert seen == ["boom"]
    assert store.state.last_error is None


def test_error_slot_keeps_newest() -> None:
    store = StateStore()
    store.set_error("first")
    store.set_error("second")
    assert store.state.last_error == "second"


def test_selected_session_missing_from_list() -> None:
    state = SyncState(sessions=(_session("s1"),), selected_session_id="gone")
    assert state.selected_session is None
    assert state.find_session("s1") is not None
    assert state.find_session("gone") is None
