"""Type definitions: sessions, invocations, snapshots and results."""

import enum
import json
import secrets
import time
from dataclasses import asdict, dataclass, field
from typing_extensions import Self

from .errors import BusyError, MarkerNotFoundError, TransportError, WatchTimeoutError

MARKER_PREFIX = "__TMUX_EXEC_"


def new_marker() -> str:
    """Generate a high-entropy marker token, e.g. __TMUX_EXEC_3f9a...__."""
    return f"{MARKER_PREFIX}{secrets.token_hex(8)}__"


@dataclass(frozen=True)
class Session:
    """A named tmux session on a transport target (local when host is None)."""

    name: str
    host: str | None = None

    @property
    def key(self) -> str:
        """Identity used for locking and registry lookups."""
        return f"{self.host or 'local'}:{self.name}"

    def __str__(self) -> str:
        return f"{self.host}:{self.name}" if self.host else self.name


class InvocationKind(enum.Enum):
    SINGLE = "single"  # Marker appended to the pasted line itself
    BATCH = "batch"  # Body pasted into a heredoc; marker on the opening line


@dataclass(frozen=True)
class Invocation:
    """One dispatched command, identified in the pane by its marker."""

    marker: str
    command: str = ""
    kind: InvocationKind = InvocationKind.SINGLE
    dispatched_at: float = field(default_factory=time.time)

    @property
    def skip_top(self) -> int:
        """Display lines between the marker line and the first output line.

        A batch body echoes one continuation line per body line, plus the
        heredoc terminator line.
        """
        if self.kind is InvocationKind.BATCH:
            return self.command.count("\n") + 2
        return 0

    @classmethod
    def for_command(cls, command: str, marker: str | None = None) -> Self:
        """Build an invocation for command text, choosing its kind."""
        command = command.rstrip("\n")
        kind = InvocationKind.BATCH if "\n" in command else InvocationKind.SINGLE
        return cls(marker=marker or new_marker(), command=command, kind=kind)

    def to_dict(self) -> dict:
        return {
            "marker": self.marker,
            "command": self.command,
            "kind": self.kind.value,
            "skip_top": self.skip_top,
            "dispatched_at": self.dispatched_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create from dict, handling missing fields gracefully."""
        return cls(
            marker=data["marker"],
            command=data.get("command", ""),
            kind=InvocationKind(data.get("kind", InvocationKind.SINGLE.value)),
            dispatched_at=data.get("dispatched_at", 0.0),
        )


@dataclass(frozen=True)
class Snapshot:
    """An atomically captured (idle flag, full pane text) pair."""

    idle: bool
    text: str
    taken_at: float = field(default_factory=time.monotonic)

    @property
    def lines(self) -> list[str]:
        """Pane text as logical lines, trailing blank lines removed.

        Wrapped display lines are already rejoined by the capture (-J).
        """
        lines = self.text.split("\n")
        while lines and not lines[-1].strip():
            lines.pop()
        return lines


class Status(str, enum.Enum):
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    DEGRADED = "degraded"
    BUSY = "busy"
    TRANSPORT_ERROR = "transport_error"

    @property
    def fatal(self) -> bool:
        """True when the session could not be used at all."""
        return self in (Status.BUSY, Status.TRANSPORT_ERROR)


@dataclass
class StreamState:
    """Bookkeeping owned by one stream controller run.

    printed_lines is an absolute index into the extracted output and never
    decreases. base_line is where this run's emission view starts (non-zero
    when continuing). printed_chars counts characters of the view already
    emitted, newline separators included.
    """

    base_line: int = 0
    printed_lines: int = 0
    printed_chars: int = 0
    held: bool = False  # Head budget used up; further output withheld
    truncated: bool = False  # The truncation sentinel has been emitted
    open_line: bool = False  # Last emission ended mid-line
    marker_seen: bool = False
    polls: int = 0


@dataclass
class ExecResult:
    """Outcome of an execute / continue / peek call."""

    status: Status
    output: str = ""
    session: str = ""
    marker: str | None = None
    elapsed: float = 0.0
    error: str | None = None
    timeout: float | None = None

    @property
    def fatal(self) -> bool:
        return self.status.fatal

    def raise_for_status(self) -> None:
        """Raise the matching exception for anything but a completed run."""
        if self.status is Status.BUSY:
            raise BusyError(self.session, self.error or "")
        if self.status is Status.TRANSPORT_ERROR:
            raise TransportError(self.error or "transport error")
        if self.status is Status.TIMED_OUT:
            raise WatchTimeoutError(self.timeout or 0)
        if self.status is Status.DEGRADED:
            raise MarkerNotFoundError(self.session, self.marker)

    def to_json(self) -> str:
        """Serialize to JSON string."""
        data = asdict(self)
        data["status"] = self.status.value
        return json.dumps(data, indent=2)
