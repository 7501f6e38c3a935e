"""Command line front end: one-shot REST commands and a live ``watch`` view."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from opencode_remote.api import OpencodeApi
from opencode_remote.composer import filter_sessions, parse_composer
from opencode_remote.config_store import JsonConfigStore
from opencode_remote.coordinator import build_coordinator
from opencode_remote.errors import OpencodeRemoteError
from opencode_remote.logging_utils import configure_logging, set_server_context
from opencode_remote.models.domain import build_transcript
from opencode_remote.models.settings import load_settings
from opencode_remote.transport import HttpxTransport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from opencode_remote.models.config import ServerConfig
    from opencode_remote.models.domain import Session
    from opencode_remote.models.settings import Settings
    from opencode_remote.store import SyncState
    from opencode_remote.transport import Transport

logger = logging.getLogger(__name__)

TODO_PREVIEW = 5


def _write_line(message: str) -> None:
    sys.stdout.write(f"{message}\n")
    sys.stdout.flush()


def _format_session(session: Session) -> str:
    title = session.title or "(untitled)"
    line = f"{session.id}  [{session.status}]  {title}"
    if session.directory:
        line += f"  {session.directory}"
    if session.files:
        line += f"  +{session.additions}/-{session.deletions} in {session.files} file(s)"
    return line


class TerminalBellSink:
    """Rings the terminal bell when the watched session finishes."""

    def notify_completed(self, session: Session) -> None:
        sys.stdout.write("\a")
        _write_line(f"[done] {session.title or session.id}")


class WatchPrinter:
    """Store listener that prints what changed between two snapshots."""

    def __call__(self, previous: SyncState, current: SyncState) -> None:
        if current.last_error and current.last_error != previous.last_error:
            _write_line(f"[error] {current.last_error}")
        if current.sessions != previous.sessions:
            before = {session.id: session.status for session in previous.sessions}
            for session in current.sessions:
                if before.get(session.id) != session.status:
                    _write_line(f"[session] {_format_session(session)}")
        if current.messages != previous.messages:
            seen = {message.id: message.text for message in previous.messages}
            for message in current.messages:
                if seen.get(message.id) != message.text:
                    _write_line(f"[{message.role}] {message.text}")
        if current.todos != previous.todos and current.todos:
            for todo in current.todos[:TODO_PREVIEW]:
                _write_line(f"[todo] [{todo.status or ' '}] {todo.content}")


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="opencode-remote",
        description="Companion client for a remote coding-assistant server.",
    )
    parser.add_argument("--config", default=None, help="Path of the JSON config file.")
    parser.add_argument("--host", default=None, help="Server host (overrides the config file).")
    parser.add_argument("--port", type=int, default=None, help="Server port.")
    parser.add_argument("--username", default=None, help="Basic-Auth username.")
    parser.add_argument("--password", default=None, help="Basic-Auth password.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("configure", help="Save --host/--port/--username/--password.")
    commands.add_parser("health", help="Check server health.")
    sessions = commands.add_parser("sessions", help="List sessions, newest first.")
    sessions.add_argument("--query", default="", help="Filter by title or directory.")
    create = commands.add_parser("create", help="Create a session.")
    create.add_argument("--title", default=None)
    rename = commands.add_parser("rename", help="Rename a session.")
    rename.add_argument("session_id")
    rename.add_argument("title")
    delete = commands.add_parser("delete", help="Delete a session.")
    delete.add_argument("session_id")
    messages = commands.add_parser("messages", help="Print a session transcript.")
    messages.add_argument("session_id")
    messages.add_argument("--directory", default=None)
    todo = commands.add_parser("todo", help="Print a session's todo list.")
    todo.add_argument("session_id")
    send = commands.add_parser("send", help="Send a prompt, or a /command.")
    send.add_argument("session_id")
    send.add_argument("text", nargs="+")
    send.add_argument("--directory", default=None)
    send.add_argument("--wait", action="store_true", help="Block until the reply is ready.")
    abort = commands.add_parser("abort", help="Abort a running session.")
    abort.add_argument("session_id")
    commands.add_parser("commands", help="List available slash commands.")
    watch = commands.add_parser("watch", help="Follow the server live.")
    watch.add_argument("--session", default=None, help="Session to follow in detail.")
    return parser


def resolve_config(args: argparse.Namespace, store: JsonConfigStore) -> ServerConfig:
    """Merge command line overrides onto the stored config."""
    overrides = {
        name: value
        for name in ("host", "port", "username", "password")
        if (value := getattr(args, name)) is not None
    }
    return store.load().model_copy(update=overrides)


async def _run_command(args: argparse.Namespace, api: OpencodeApi) -> int:
    command = args.command
    if command == "health":
        health = await api.health()
        _write_line(f"healthy={str(health.healthy).lower()} version={health.version or '?'}")
        return 0 if health.healthy else 1
    if command == "sessions":
        for session in filter_sessions(await api.fetch_sessions(), args.query):
            _write_line(_format_session(session))
        return 0
    if command == "create":
        created = await api.create_session(args.title)
        _write_line(created.id)
        return 0
    if command == "rename":
        renamed = await api.rename_session(args.session_id, args.title)
        _write_line(f"{renamed.id}  {renamed.title}")
        return 0
    if command == "delete":
        deleted = await api.delete_session(args.session_id)
        _write_line("deleted" if deleted else "not deleted")
        return 0 if deleted else 1
    if command == "messages":
        envelopes = await api.load_messages(args.session_id, directory=args.directory)
        for message in build_transcript(envelopes):
            _write_line(f"[{message.role}] {message.text}")
        return 0
    if command == "todo":
        todos = await api.load_todo(args.session_id)
        for item in todos[:TODO_PREVIEW]:
            _write_line(f"[{item.status or ' '}] {item.content}")
        if len(todos) > TODO_PREVIEW:
            _write_line(f"... and {len(todos) - TODO_PREVIEW} more")
        return 0
    if command == "send":
        parsed = parse_composer(" ".join(args.text))
        if parsed is None:
            _write_line("error: nothing to send")
            return 2
        if parsed.kind == "command":
            reply = await api.send_command(
                args.session_id, parsed.command, parsed.arguments, args.directory
            )
        else:
            reply = await api.send_prompt(
                args.session_id, parsed.text, args.directory, wait=args.wait
            )
        _write_line(reply.text() if reply is not None and reply.text() else "sent")
        return 0
    if command == "abort":
        aborted = await api.abort(args.session_id)
        _write_line("aborted" if aborted else "not aborted")
        return 0 if aborted else 1
    if command == "commands":
        for info in await api.list_commands():
            suffix = f"  {info.description}" if info.description else ""
            _write_line(f"/{info.name}{suffix}")
        return 0
    msg = f"Unknown command: {command}"
    raise ValueError(msg)


async def _watch(
    args: argparse.Namespace,
    settings: Settings,
    store: JsonConfigStore,
    transport: Transport | None,
) -> int:
    coordinator = build_coordinator(
        settings,
        store,
        config=resolve_config(args, store),
        sink=TerminalBellSink(),
        transport=transport,
    )
    coordinator.store.subscribe(WatchPrinter())
    try:
        version = await coordinator.test_connection()
        _write_line(f"connected to {coordinator.api.config.redacted()} (version {version or '?'})")
        async with coordinator:
            if args.session:
                coordinator.select_session(args.session)
            await asyncio.Event().wait()
    finally:
        await coordinator.api.aclose()
    return 0


async def run(args: argparse.Namespace, *, transport: Transport | None = None) -> int:
    """Execute parsed arguments; returns the process exit code."""
    settings = load_settings()
    configure_logging("DEBUG" if args.verbose else settings.log_level)
    store = JsonConfigStore(args.config or settings.config_file)
    config = resolve_config(args, store)

    if args.command == "configure":
        if not config.is_valid:
            _write_line("error: host, port, username and password are all required")
            return 2
        store.save(config)
        _write_line(f"saved {config.redacted()} to {store.path}")
        return 0

    if not config.is_valid:
        _write_line("error: server is not configured; run 'opencode-remote configure' first")
        return 2
    set_server_context(config.base_url)

    try:
        if args.command == "watch":
            return await _watch(args, settings, store, transport)
        api = OpencodeApi(
            config,
            transport
            or HttpxTransport(
                connect_timeout=settings.connect_timeout,
                read_timeout=settings.read_timeout,
            ),
            message_limit=settings.message_limit,
        )
        try:
            return await _run_command(args, api)
        finally:
            await api.aclose()
    except OpencodeRemoteError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        _write_line(f"error: {exc}")
        return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Console script entry point."""
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
