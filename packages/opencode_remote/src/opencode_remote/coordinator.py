"""Sync engine: merges polling, pushed events and user actions into one state.

Two refresh scopes exist, the session list and the selected session's detail
(messages, todos, diff). Each scope is either idle or running. A trigger that
arrives while its scope is running is coalesced: it is not queued, it only
marks the scope dirty, and exactly one catch-up pass runs when the current
pass ends. So there is never more than one fetch in flight per scope and an
event storm costs at most one extra round-trip.

Every commit checks a generation counter. ``stop()`` (and a config change)
bumps it, so responses that land after the engine was torn down are dropped
instead of resurrecting stale state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from opencode_remote.api import OpencodeApi
from opencode_remote.completion import CompletionDetector
from opencode_remote.composer import parse_composer
from opencode_remote.errors import OpencodeRemoteError, TransportError, UnhealthyServerError
from opencode_remote.events import EventStreamClient
from opencode_remote.logging_utils import set_server_context
from opencode_remote.models.domain import build_transcript
from opencode_remote.models.settings import Settings
from opencode_remote.store import StateStore, SyncState
from opencode_remote.transport import HttpxTransport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine
    from typing import Any

    from opencode_remote.completion import NotificationSink
    from opencode_remote.config_store import ConfigStore
    from opencode_remote.errors import StreamError
    from opencode_remote.events import ServerEvent
    from opencode_remote.models.api import MessageEnvelope, SessionDto
    from opencode_remote.models.config import ServerConfig
    from opencode_remote.transport import Transport

logger = logging.getLogger(__name__)


class RefreshScope:
    """At-most-one-in-flight refresh with a single coalesced catch-up pass."""

    def __init__(
        self,
        name: str,
        runner: Callable[[], Awaitable[None]],
        *,
        on_running: Callable[[bool], None] | None = None,
        on_failure: Callable[[Exception], None] | None = None,
        should_continue: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the scope.

        Args:
            name: Label used in logs and task names.
            runner: Coroutine function performing one refresh pass.
            on_running: Called with True when the scope starts and False when it idles.
            on_failure: Called with any exception the runner lets escape.
            should_continue: Checked before a catch-up pass; False skips it.
        """
        self.name = name
        self._runner = runner
        self._on_running = on_running
        self._on_failure = on_failure
        self._should_continue = should_continue
        self._running = False
        self._pending = False
        self._task: asyncio.Task[None] | None = None
        self.passes = 0
        self.coalesced = 0

    @property
    def running(self) -> bool:
        """Return True while a pass (or its catch-up) is in flight."""
        return self._running

    def request(self) -> bool:
        """Ask for a refresh.

        Returns:
            True if a new pass was started, False if the trigger was coalesced.
        """
        if self._running:
            self._pending = True
            self.coalesced += 1
            return False
        self._running = True
        self._pending = False
        self._task = asyncio.create_task(self._drive(), name=f"refresh-{self.name}")
        return True

    async def _drive(self) -> None:
        self._notify(True)
        try:
            while True:
                self._pending = False
                self.passes += 1
                try:
                    await self._runner()
                except Exception as exc:
                    logger.exception("Unexpected failure in %s refresh", self.name)
                    if self._on_failure is not None:
                        self._on_failure(exc)
                if not self._pending:
                    break
                if self._should_continue is not None and not self._should_continue():
                    logger.debug("Skipping catch-up %s refresh", self.name)
                    break
                logger.debug("Running catch-up %s refresh", self.name)
        finally:
            self._running = False
            self._pending = False
            self._notify(False)

    def _notify(self, running: bool) -> None:
        if self._on_running is not None:
            self._on_running(running)

    async def wait(self) -> None:
        """Wait until the scope is idle."""
        while self._running and self._task is not None:
            await asyncio.wait({self._task})


class SyncCoordinator:
    """Owns the poll timer and event subscription and commits to the store."""

    def __init__(
        self,
        api: OpencodeApi,
        store: StateStore | None = None,
        *,
        detector: CompletionDetector | None = None,
        events: EventStreamClient | None = None,
        config_store: ConfigStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Wire the engine together.

        Args:
            api: REST client; its ``config`` is replaced on ``save_config``.
            store: State store; created from ``api.config`` when omitted.
            detector: Completion detector fed after each session list commit.
            events: Event stream client; polling alone is used when omitted.
            config_store: Where ``save_config`` persists the new config.
            settings: Poll interval, timeouts and delays.
        """
        self._api = api
        self._store = store or StateStore(SyncState(config=api.config))
        self._detector = detector or CompletionDetector()
        self._events = events
        self._config_store = config_store
        self._settings = settings or Settings()
        self._generation = 0
        self._active = False
        self._wanted = False
        self._loops: list[asyncio.Task[None]] = []
        self._retired: list[asyncio.Task[None]] = []
        self._background: set[asyncio.Task[None]] = set()
        self.sessions_scope = RefreshScope(
            "sessions",
            self._refresh_sessions,
            on_running=lambda running: self._store.update(refreshing_sessions=running),
            on_failure=self._report_unexpected_error,
            should_continue=lambda: self._active,
        )
        self.detail_scope = RefreshScope(
            "detail",
            self._refresh_detail,
            on_running=lambda running: self._store.update(refreshing_detail=running),
            on_failure=self._report_unexpected_error,
            should_continue=lambda: self._active,
        )

    @property
    def api(self) -> OpencodeApi:
        """Return the REST client."""
        return self._api

    @property
    def store(self) -> StateStore:
        """Return the state store."""
        return self._store

    @property
    def state(self) -> SyncState:
        """Return the current snapshot."""
        return self._store.state

    @property
    def active(self) -> bool:
        """Return True while the poll and stream loops are running."""
        return self._active

    @property
    def generation(self) -> int:
        """Return the current generation counter."""
        return self._generation

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start polling and streaming; a no-op if already started."""
        self._wanted = True
        self._activate()

    def stop(self) -> None:
        """Cancel both loops and drop any result still in flight. Idempotent."""
        self._wanted = False
        self._deactivate()

    async def shutdown(self) -> None:
        """Stop and wait for the cancelled loops to unwind."""
        self.stop()
        retired, self._retired = self._retired, []
        if retired:
            await asyncio.gather(*retired, return_exceptions=True)

    async def __aenter__(self) -> SyncCoordinator:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    def _activate(self) -> None:
        if self._active:
            return
        config = self._api.config
        if not config.is_valid:
            logger.warning("Not starting sync: server configuration is incomplete")
            self._store.set_error("Server configuration is incomplete")
            return
        self._generation += 1
        self._active = True
        set_server_context(config.base_url)
        logger.info("Starting sync with %s (generation %d)", config.redacted(), self._generation)
        self._loops = [asyncio.create_task(self._poll_loop(), name="sync-poll")]
        if self._events is not None:
            self._loops.append(
                asyncio.create_task(
                    self._events.run(self.handle_event, self._report_stream_error),
                    name="sync-events",
                )
            )
        self._spawn(self._load_commands_quietly())
        self.refresh_all()

    def _deactivate(self) -> None:
        if not self._active:
            return
        self._active = False
        self._generation += 1
        if self._events is not None:
            self._events.stop()
        for task in self._loops:
            task.cancel()
        self._retired.extend(self._loops)
        self._loops = []
        logger.info("Sync stopped (generation %d)", self._generation)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _is_current(self, generation: int) -> bool:
        return self._active and generation == self._generation

    async def wait_idle(self) -> None:
        """Wait until no refresh and no background load is in flight."""
        while self.sessions_scope.running or self.detail_scope.running or self._background:
            await self.sessions_scope.wait()
            await self.detail_scope.wait()
            if self._background:
                await asyncio.wait(set(self._background))

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.poll_interval)
            self.refresh_all()

    def refresh_all(self) -> None:
        """Request both scopes (detail only when a session is selected)."""
        self.request_sessions_refresh()
        self.request_detail_refresh()

    def request_sessions_refresh(self) -> bool:
        """Request a session list refresh; returns False if inactive or coalesced."""
        if not self._active:
            return False
        return self.sessions_scope.request()

    def request_detail_refresh(self) -> bool:
        """Request a detail refresh; returns False if inactive, unselected or coalesced."""
        if not self._active or self._store.state.selected_session_id is None:
            return False
        return self.detail_scope.request()

    def handle_event(self, event: ServerEvent) -> None:
        """React to a pushed event; irrelevant types are ignored."""
        if not event.triggers_sync:
            return
        logger.debug("Event %s (session=%s) triggers refresh", event.type, event.session_id)
        self.request_sessions_refresh()
        selected = self._store.state.selected_session_id
        if selected is not None and event.session_id in (None, selected):
            self.request_detail_refresh()

    def _report_stream_error(self, error: StreamError) -> None:
        if self._active:
            self._store.set_error(str(error))

    def _report_unexpected_error(self, exc: Exception) -> None:
        if self._active:
            self._store.set_error(str(exc) or type(exc).__name__)

    def _record_background_error(self, generation: int, what: str, exc: Exception) -> None:
        logger.warning("Refreshing %s failed: %s", what, exc)
        if self._is_current(generation):
            self._store.set_error(str(exc))

    # -------------------------------------------------------------------------
    # Refresh passes
    # -------------------------------------------------------------------------

    async def _refresh_sessions(self) -> None:
        generation = self._generation
        try:
            sessions = await self._api.fetch_sessions()
        except OpencodeRemoteError as exc:
            self._record_background_error(generation, "session list", exc)
            return
        if not self._is_current(generation):
            logger.debug("Dropping session list from stale generation %d", generation)
            return
        state = self._store.update(sessions=tuple(sessions))
        self._detector.observe(state.selected_session)

    async def _refresh_detail(self) -> None:
        generation = self._generation
        state = self._store.state
        session_id = state.selected_session_id
        if session_id is None:
            return
        session = state.selected_session
        directory = session.directory if session is not None else None
        try:
            envelopes, todos, diff = await asyncio.gather(
                self._api.load_messages(session_id, directory=directory),
                self._api.load_todo(session_id),
                self._api.load_diff(session_id),
            )
        except OpencodeRemoteError as exc:
            self._record_background_error(generation, f"session {session_id}", exc)
            return
        if not self._is_current(generation):
            logger.debug("Dropping detail of %s from stale generation %d", session_id, generation)
            return
        if self._store.state.selected_session_id != session_id:
            logger.debug("Dropping detail of %s: selection changed", session_id)
            return
        self._store.update(
            messages=tuple(build_transcript(envelopes)),
            todos=tuple(todos),
            diff_files=len(diff),
        )

    async def _load_commands_quietly(self) -> None:
        generation = self._generation
        try:
            commands = await self._api.list_commands()
        except OpencodeRemoteError as exc:
            logger.debug("Command list unavailable: %s", exc)
            commands = []
        if self._is_current(generation):
            self._store.update(commands=tuple(commands))

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_session(self, session_id: str | None) -> None:
        """Change the selected session and load its detail.

        The completion tracker is reset without emitting a signal.
        """
        if self._store.state.selected_session_id != session_id:
            self._detector.reset()
            self._store.update(
                selected_session_id=session_id,
                messages=(),
                todos=(),
                diff_files=0,
            )
        self.request_detail_refresh()

    def clear_error(self) -> None:
        """Clear the last error."""
        self._store.clear_error()

    # -------------------------------------------------------------------------
    # User actions: errors propagate to the caller and are never retried.
    # -------------------------------------------------------------------------

    def _after_action(self) -> None:
        self.refresh_all()

    def _target(self, session_id: str | None) -> str:
        target = session_id or self._store.state.selected_session_id
        if not target:
            msg = "No session selected"
            raise ValueError(msg)
        return target

    def _directory_of(self, session_id: str) -> str | None:
        session = self._store.state.find_session(session_id)
        return session.directory if session is not None else None

    async def test_connection(self) -> str:
        """Check server health and return its version.

        Raises:
            TransportError: If the server is unreachable or too slow to answer.
            UnhealthyServerError: If the server reports itself unhealthy.
        """
        timeout = self._settings.health_timeout
        try:
            health = await asyncio.wait_for(self._api.health(), timeout=timeout)
        except TimeoutError:
            msg = f"Connection timed out after {timeout:g}s"
            raise TransportError(msg) from None
        if not health.healthy:
            msg = "Server unhealthy"
            raise UnhealthyServerError(msg)
        self._store.update(server_version=health.version)
        return health.version

    def save_config(self, config: ServerConfig) -> None:
        """Persist and apply a new server configuration.

        Switching servers discards everything loaded from the old one and
        restarts the loops under a new generation.
        """
        if self._config_store is not None:
            self._config_store.save(config)
        if config == self._api.config:
            self._store.update(config=config, last_error=None)
            return
        self._deactivate()
        self._api.config = config
        self._detector.reset()
        self._store.update(
            config=config,
            sessions=(),
            selected_session_id=None,
            messages=(),
            todos=(),
            diff_files=0,
            commands=(),
            server_version=None,
            last_error=None,
        )
        if self._wanted:
            self._activate()

    async def load_commands(self) -> None:
        """Reload the advertised slash commands."""
        commands = await self._api.list_commands()
        self._store.update(commands=tuple(commands))

    async def create_session(self, title: str | None = None, *, select: bool = True) -> SessionDto:
        """Create a session and, by default, select it."""
        created = await self._api.create_session(title)
        logger.info("Created session %s", created.id)
        if select:
            self.select_session(created.id)
        self._after_action()
        return created

    async def rename_session(self, session_id: str, title: str) -> SessionDto:
        """Rename a session."""
        if not title.strip():
            msg = "Session title must not be blank"
            raise ValueError(msg)
        renamed = await self._api.rename_session(session_id, title.strip())
        self._after_action()
        return renamed

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session, clearing the selection if it was selected."""
        deleted = await self._api.delete_session(session_id)
        if self._store.state.selected_session_id == session_id:
            self.select_session(None)
        self._after_action()
        return deleted

    async def send_prompt(
        self,
        text: str,
        *,
        session_id: str | None = None,
        wait: bool = False,
    ) -> MessageEnvelope | None:
        """Send a prompt to a session (the selected one by default)."""
        target = self._target(session_id)
        envelope = await self._api.send_prompt(
            target, text, self._directory_of(target), wait=wait
        )
        if not wait and self._settings.prompt_settle_delay > 0:
            await asyncio.sleep(self._settings.prompt_settle_delay)
        self._after_action()
        return envelope

    async def send_command(
        self,
        command: str,
        arguments: str = "",
        *,
        session_id: str | None = None,
    ) -> MessageEnvelope | None:
        """Run a slash command in a session (the selected one by default)."""
        target = self._target(session_id)
        envelope = await self._api.send_command(
            target, command, arguments, self._directory_of(target)
        )
        self._after_action()
        return envelope

    async def submit(self, text: str, *, session_id: str | None = None) -> bool:
        """Send composer text: ``/name args`` runs a command, anything else is a prompt.

        Returns:
            False when the text was blank and nothing was sent.
        """
        parsed = parse_composer(text)
        if parsed is None:
            return False
        if parsed.kind == "command":
            await self.send_command(parsed.command, parsed.arguments, session_id=session_id)
        else:
            await self.send_prompt(parsed.text, session_id=session_id)
        return True

    async def abort(self, session_id: str | None = None) -> bool:
        """Abort the running work of a session (the selected one by default)."""
        target = self._target(session_id)
        aborted = await self._api.abort(target)
        self._after_action()
        return aborted


def build_coordinator(
    settings: Settings,
    config_store: ConfigStore,
    *,
    config: ServerConfig | None = None,
    sink: NotificationSink | None = None,
    transport: Transport | None = None,
) -> SyncCoordinator:
    """Assemble a coordinator from settings and a config store.

    ``config`` overrides the stored configuration without persisting it.
    """
    config = config or config_store.load()
    api = OpencodeApi(
        config,
        transport
        or HttpxTransport(
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
        ),
        message_limit=settings.message_limit,
    )
    events = EventStreamClient(api, reconnect_delay=settings.reconnect_delay)
    return SyncCoordinator(
        api,
        StateStore(SyncState(config=config)),
        detector=CompletionDetector(sink),
        events=events,
        config_store=config_store,
        settings=settings,
    )
