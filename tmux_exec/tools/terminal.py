"""Terminal tools — exec, continue, peek, interrupt.

Each tool targets one tmux session (optionally on a host) and returns the
captured text. Busy sessions and transport failures come back as errors;
a timeout is a normal result ending in a [TIMEOUT after Ns] line, after
which continue() resumes watching.
"""

from __future__ import annotations

from typing import Any

from claude_agent_sdk import tool

from ..api import run_continue, run_execute, run_interrupt, run_peek
from ..config import ENV_SESSION, Settings, load_settings
from ..types import ExecResult, Session

_TARGET_PROPERTIES = {
    "session": {"type": "string", "description": "tmux session name"},
    "host": {"type": "string", "description": "ssh destination or podman:CONTAINER; omit for local"},
}


def _settings(args: dict[str, Any]) -> Settings:
    return load_settings(
        session=args.get("session"),
        host=args.get("host"),
        timeout=args.get("timeout"),
        truncate=args.get("truncate"),
    )


def _session(settings: Settings) -> Session | None:
    if not settings.session:
        return None
    return Session(settings.session, settings.host or None)


def _respond(result: ExecResult) -> dict[str, Any]:
    if result.fatal:
        return _error(result.error or result.status.value)
    return _text(result.output or "(no output)")


@tool(
    "exec",
    """Run a shell command in a tmux session and return exactly its output.

The session keeps its state between calls (cwd, env, running servers).
Multi-line commands run as one bash script. Output over the truncate budget
keeps the first and last halves with a [...truncated...] line between.

If the command is still running after `timeout` seconds the output so far
is returned with a [TIMEOUT after Ns] line; call continue() to keep
watching. Fails if the session is already running something.

Examples:
  exec(session="build", command="make -j8", timeout=300)
  exec(session="db", host="podman:pg", command="psql -c 'select 1'")""",
    {
        "type": "object",
        "properties": {
            **_TARGET_PROPERTIES,
            "command": {"type": "string"},
            "timeout": {"type": "number", "description": "Seconds to watch (default 30)"},
            "truncate": {"type": "integer", "description": "Output budget in chars, 0 for none (default 2000)"},
        },
        "required": ["command"],
    },
)
async def exec_tool(args: dict[str, Any]) -> dict[str, Any]:
    """Run a command and wait for it."""
    command = args.get("command", "")
    if not command.strip():
        return _error("command is empty")

    settings = _settings(args)
    session = _session(settings)
    if session is None:
        return _error(f"No session given and {ENV_SESSION} is not set")

    return _respond(await run_execute(session, command, settings))


@tool(
    "continue",
    """Keep watching the last command in a session after a timeout.

Re-shows the last few lines already printed for context, then streams the
rest as exec() would.""",
    {
        "type": "object",
        "properties": {
            **_TARGET_PROPERTIES,
            "timeout": {"type": "number"},
            "truncate": {"type": "integer"},
        },
    },
)
async def continue_tool(args: dict[str, Any]) -> dict[str, Any]:
    """Resume watching."""
    settings = _settings(args)
    session = _session(settings)
    if session is None:
        return _error(f"No session given and {ENV_SESSION} is not set")

    return _respond(await run_continue(session, settings))


@tool(
    "peek",
    """Show the last `chars` characters of a session's pane without running
anything. Works even while a command is running.""",
    {
        "type": "object",
        "properties": {
            **_TARGET_PROPERTIES,
            "chars": {"type": "integer", "description": "Characters to show (default 2000)"},
        },
    },
)
async def peek_tool(args: dict[str, Any]) -> dict[str, Any]:
    """Look at the pane."""
    settings = _settings(args)
    session = _session(settings)
    if session is None:
        return _error(f"No session given and {ENV_SESSION} is not set")

    chars = args.get("chars")
    if chars is None:
        chars = settings.peek_chars
    return _respond(await run_peek(session, int(chars)))


@tool(
    "interrupt",
    """Send Ctrl-C to a session. Use it to stop a command that timed out.""",
    {
        "type": "object",
        "properties": dict(_TARGET_PROPERTIES),
    },
)
async def interrupt_tool(args: dict[str, Any]) -> dict[str, Any]:
    """Send Ctrl-C."""
    settings = _settings(args)
    session = _session(settings)
    if session is None:
        return _error(f"No session given and {ENV_SESSION} is not set")

    result = await run_interrupt(session)
    if result.fatal:
        return _error(result.error or result.status.value)
    return _text(f"Sent Ctrl-C to {session}.")


def _text(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


def _error(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": f"Error: {text}"}], "is_error": True}
