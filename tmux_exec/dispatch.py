"""Dispatcher: inject a command and its marker in one round trip.

The command text travels on the round trip's stdin into a tmux buffer and is
pasted verbatim, so it is never re-escaped for a shell argument. The marker
goes in as a trailing shell comment: visible in the captured pane, inert to
execution.

Single line:   <command> #<marker><Enter>
Multi line:    bash << 'TMUX_EOF' #<marker><Enter>
               <pasted body><Enter>
               TMUX_EOF<Enter>

The idle check runs inside the same round trip but is not a lock: two
dispatchers racing on one session can both pass it.
"""

from .errors import BusyError
from .logging_config import get_logger
from .tmux import (
    BUSY_EXIT,
    HEREDOC_TOKEN,
    batch,
    load_buffer_fragment,
    paste_buffer_fragment,
    require_idle_fragment,
    send_keys_fragment,
)
from .transport import Transport
from .types import Invocation, InvocationKind, Session

logger = get_logger(__name__)


def heredoc_token(body: str) -> str:
    """Terminator that no line of the body can end the heredoc with early."""
    token = HEREDOC_TOKEN
    lines = set(body.split("\n"))
    while token in lines:
        token += "_"
    return token


def dispatch_script(session: Session, invocation: Invocation) -> str:
    """Shell script that checks idle, loads stdin into a buffer and submits it."""
    fragments = [require_idle_fragment(session), load_buffer_fragment(session)]
    if invocation.kind is InvocationKind.BATCH:
        token = heredoc_token(invocation.command)
        fragments += [
            send_keys_fragment(session, f"bash << '{token}' #{invocation.marker}", literal=True),
            send_keys_fragment(session, "Enter"),
            paste_buffer_fragment(session),
            send_keys_fragment(session, "Enter"),
            send_keys_fragment(session, token, literal=True),
            send_keys_fragment(session, "Enter"),
        ]
    else:
        fragments += [
            paste_buffer_fragment(session),
            send_keys_fragment(session, f" #{invocation.marker}", literal=True),
            send_keys_fragment(session, "Enter"),
        ]
    return batch(*fragments)


async def dispatch(transport: Transport, session: Session, command: str, marker: str | None = None) -> Invocation:
    """Submit command to an idle session and return its Invocation.

    Raises BusyError if the session's shell has a child process, ValueError
    for empty command text, TransportError if the round trip fails.
    """
    invocation = Invocation.for_command(command, marker=marker)
    if not invocation.command.strip():
        raise ValueError("No command provided")

    result = await transport.run(
        dispatch_script(session, invocation),
        stdin=invocation.command.encode("utf-8"),
        ok_codes=(0, BUSY_EXIT),
    )
    if result.returncode == BUSY_EXIT:
        raise BusyError(str(session), "a foreground process is running")

    logger.info(
        "Dispatched to %s: marker=%s kind=%s skip_top=%d",
        session,
        invocation.marker,
        invocation.kind.value,
        invocation.skip_top,
    )
    return invocation
