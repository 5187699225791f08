"""CLI interface for tmux-exec.

Entry point: tmux-exec [-v] <subcommand> [-H HOST] [-s SESSION] [args...]

  run       read a command from stdin, run it in the session, stream output
  continue  resume watching the last command after a timeout
  peek      print the last N characters of the pane
  interrupt send Ctrl-C to the session
  sessions  list sessions with a recorded invocation
  forget    drop a session's recorded invocation

Exit codes: 0 completed / timed out / degraded, 1 busy, 2 transport error,
64 usage error. A timeout is not a failure: the command is still running
and `tmux-exec continue` picks it up again.
"""

import argparse
import asyncio
import sys
import warnings

from .api import run_continue, run_execute, run_interrupt, run_peek
from .config import ENV_SESSION, Settings, load_settings
from .errors import DegradedCaptureWarning
from .logging_config import setup_process_logging, verbosity_to_level
from .registry import forget, list_sessions
from .types import ExecResult, Session, Status

DEFAULT_TRUNCATE = 2000
DEFAULT_PEEK = 2000

EXIT_OK = 0
EXIT_BUSY = 1
EXIT_TRANSPORT = 2
EXIT_USAGE = 64


class UsageError(Exception):
    pass


def _write(chunk: str) -> None:
    sys.stdout.write(chunk)
    sys.stdout.flush()


def _settings(args) -> Settings:
    truncate = 0 if getattr(args, "no_truncate", False) else getattr(args, "truncate", None)
    return load_settings(
        host=args.host,
        session=args.session,
        timeout=getattr(args, "timeout", None),
        truncate=truncate,
    )


def _session(settings: Settings) -> Session:
    if not settings.session:
        raise UsageError(f"Set -s SESSION or {ENV_SESSION}")
    return Session(settings.session, settings.host or None)


def _exit_code(result: ExecResult) -> int:
    if result.status is Status.BUSY:
        return EXIT_BUSY
    if result.status is Status.TRANSPORT_ERROR:
        return EXIT_TRANSPORT
    return EXIT_OK


def _finish(result: ExecResult) -> int:
    if result.fatal:
        print(f"[ERROR] {result.error}", file=sys.stderr)
    return _exit_code(result)


# --- Subcommands ---


def cmd_run(args, settings: Settings) -> int:
    """Run a command read from stdin."""
    session = _session(settings)
    command = sys.stdin.read().rstrip("\n")
    if not command.strip():
        raise UsageError("no command provided via stdin")
    result = asyncio.run(run_execute(session, command, settings, on_output=_write))
    return _finish(result)


def cmd_continue(args, settings: Settings) -> int:
    """Resume watching the session's last command."""
    session = _session(settings)
    result = asyncio.run(run_continue(session, settings, marker=args.marker, on_output=_write))
    return _finish(result)


def cmd_peek(args, settings: Settings) -> int:
    """Print the tail of the pane."""
    session = _session(settings)
    chars = args.chars if args.chars is not None else settings.peek_chars
    result = asyncio.run(run_peek(session, chars))
    _write(result.output)
    return _finish(result)


def cmd_interrupt(args, settings: Settings) -> int:
    """Send Ctrl-C."""
    session = _session(settings)
    return _finish(asyncio.run(run_interrupt(session)))


def cmd_sessions(args, settings: Settings) -> int:
    """List sessions with a recorded invocation."""
    sessions = list_sessions(settings.state_dir)
    if not sessions:
        print("No recorded sessions.")
        return EXIT_OK

    print("=== Recorded Sessions ===")
    for key, info in sorted(sessions.items()):
        command = info.get("command", "").split("\n", 1)[0]
        print(f"\n  {key}")
        print(f"    Marker:  {info.get('marker', '?')}")
        print(f"    Status:  {info.get('status', '?')}")
        print(f"    Command: {command[:60]}")
        if info.get("updated"):
            print(f"    Updated: {info['updated'][:19]}")
    return EXIT_OK


def cmd_forget(args, settings: Settings) -> int:
    """Drop a session from the registry."""
    session = _session(settings)
    if session.key not in list_sessions(settings.state_dir):
        print(f"Error: no recorded invocation for '{session}'.", file=sys.stderr)
        return EXIT_USAGE
    forget(settings.state_dir, session)
    print(f"Forgot '{session}'.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmux-exec",
        description="Run commands in a tmux session and capture exactly their output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging on stderr (-vv for debug)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    target = argparse.ArgumentParser(add_help=False)
    target.add_argument("-H", "--host", help="ssh destination or podman:CONTAINER (default: local)")
    target.add_argument("-s", "--session", help="tmux session name")

    truncation = argparse.ArgumentParser(add_help=False)
    truncation.add_argument(
        "-t",
        "--truncate",
        type=int,
        nargs="?",
        const=DEFAULT_TRUNCATE,
        metavar="CHARS",
        help=f"Total output budget, half head half tail (default {DEFAULT_TRUNCATE})",
    )
    truncation.add_argument("-T", "--no-truncate", action="store_true", help="Disable truncation")
    truncation.add_argument("timeout", type=float, nargs="?", help="Seconds to watch (default 30)")

    run_parser = subparsers.add_parser("run", parents=[target, truncation], help="Run a command read from stdin")
    run_parser.set_defaults(func=cmd_run)

    continue_parser = subparsers.add_parser(
        "continue", parents=[target, truncation], help="Resume watching the last command"
    )
    continue_parser.add_argument("-m", "--marker", help="Marker of the invocation to resume")
    continue_parser.set_defaults(func=cmd_continue)

    peek_parser = subparsers.add_parser("peek", parents=[target], help="Print the last N characters of the pane")
    peek_parser.add_argument("chars", type=int, nargs="?", help=f"Characters to show (default {DEFAULT_PEEK})")
    peek_parser.set_defaults(func=cmd_peek)

    interrupt_parser = subparsers.add_parser("interrupt", parents=[target], help="Send Ctrl-C")
    interrupt_parser.set_defaults(func=cmd_interrupt)

    sessions_parser = subparsers.add_parser("sessions", parents=[target], help="List recorded sessions")
    sessions_parser.set_defaults(func=cmd_sessions)

    forget_parser = subparsers.add_parser("forget", parents=[target], help="Drop a session's recorded invocation")
    forget_parser.set_defaults(func=cmd_forget)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = _settings(args)
    setup_process_logging(
        "tmux-exec",
        level=verbosity_to_level(args.verbose),
        file=settings.log_to_file,
        state_dir=settings.state_dir,
    )
    # The degraded sentinel is already part of the output
    warnings.simplefilter("ignore", DegradedCaptureWarning)

    try:
        return args.func(args, settings)
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
