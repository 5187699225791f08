"""tmux primitives as shell script fragments.

Each primitive is a fragment of shell that a Transport runs on the target.
Fragments compose with batch() so observe-then-act sequences (idle probe
followed by buffer injection) happen inside one round trip.

Idle means the pane's shell has no child processes (pgrep -P), not that
pane_current_command names a shell: the latter misreads orphaned processes
left behind in a reused pane.
"""

import re
import shlex

from .logging_config import get_logger
from .transport import RoundTrip, Transport
from .types import Session

logger = get_logger(__name__)

SNAPSHOT_DELIM = "__TMUX_EXEC_SNAPSHOT__"
BUSY_EXIT = 3  # Exit status of a dispatch round trip that found the pane busy
HEREDOC_TOKEN = "TMUX_EOF"

# tmux key names recognized by send-keys (sent without -l flag)
TMUX_KEY_NAMES = frozenset(
    {
        "Enter",
        "Escape",
        "Space",
        "Tab",
        "BSpace",
        "DC",
        "IC",
        "Up",
        "Down",
        "Left",
        "Right",
        "Home",
        "End",
        "PPage",
        "NPage",
        "F1",
        "F2",
        "F3",
        "F4",
        "F5",
        "F6",
        "F7",
        "F8",
        "F9",
        "F10",
        "F11",
        "F12",
    }
)

# Pattern for Ctrl/Alt key combos: C-a through C-z, C-\\, M-a through M-z
_TMUX_KEY_COMBO_RE = re.compile(r"^[CM]-.{1,2}$")


def is_tmux_key(text: str) -> bool:
    """Check if text is a tmux key name (not literal text)."""
    if text in TMUX_KEY_NAMES:
        return True
    if _TMUX_KEY_COMBO_RE.match(text):
        return True
    return False


def buffer_name(session: Session) -> str:
    """Per-session paste buffer, so concurrent sessions never share one."""
    return f"tmux-exec-{session.name}"


# --- Script fragments ---


def pane_pid_fragment(session: Session) -> str:
    return f"PANE_PID=$(tmux display-message -p -t {shlex.quote(session.name)} '#{{pane_pid}}')"


def probe_idle_fragment(session: Session) -> str:
    """Sets IDLE=1 when the pane's shell has no children, else IDLE=0."""
    return "\n".join(
        [
            pane_pid_fragment(session),
            "IDLE=0",
            'pgrep -P "$PANE_PID" >/dev/null 2>&1 || IDLE=1',
        ]
    )


def require_idle_fragment(session: Session) -> str:
    """Aborts the round trip with BUSY_EXIT when the pane has a child process."""
    return "\n".join(
        [
            pane_pid_fragment(session),
            f'pgrep -P "$PANE_PID" >/dev/null 2>&1 && exit {BUSY_EXIT}',
        ]
    )


def capture_fragment(session: Session) -> str:
    """Full history plus visible area, wrapped lines joined."""
    return f"tmux capture-pane -t {shlex.quote(session.name)} -p -J -S -"


def load_buffer_fragment(session: Session) -> str:
    """Load the round trip's stdin into the session's buffer, uninterpreted."""
    return f"tmux load-buffer -b {shlex.quote(buffer_name(session))} -"


def paste_buffer_fragment(session: Session) -> str:
    return f"tmux paste-buffer -d -t {shlex.quote(session.name)} -b {shlex.quote(buffer_name(session))}"


def send_keys_fragment(session: Session, *keys: str, literal: bool = False) -> str:
    parts = ["tmux", "send-keys", "-t", session.name]
    if literal:
        parts.append("-l")
    parts.extend(keys)
    return shlex.join(parts)


def batch(*fragments: str) -> str:
    """Join fragments into one script that stops at the first failure."""
    return "\n".join(["set -e", *fragments])


# --- Single-primitive round trips ---


async def probe_busy(transport: Transport, session: Session) -> bool:
    """True iff the session's shell currently has at least one child process."""
    result = await transport.run(batch(probe_idle_fragment(session), 'echo "IDLE=$IDLE"'))
    return result.stdout.strip() != "IDLE=1"


async def capture(transport: Transport, session: Session) -> str:
    """Full retained history plus visible area as line-joined text."""
    result = await transport.run(batch(capture_fragment(session)))
    return result.stdout


async def send_keys(transport: Transport, session: Session, *keys: str) -> RoundTrip:
    """Send keys fire-and-forget. Key names go as keys, anything else literally."""
    fragments = []
    for key in keys:
        fragments.append(send_keys_fragment(session, key, literal=not is_tmux_key(key)))
    logger.debug("send-keys to %s: %r", session, keys)
    return await transport.run(batch(*fragments))
