"""Stream controller — poll a session until the invocation completes.

States: DISPATCHING -> STREAMING -> FLUSHING -> DONE, or STREAMING -> TIMEOUT.

Each poll takes one snapshot, extracts the lines after the marker and emits
the ones not yet printed (through the Truncator). Once the shell reports
idle, one more snapshot is taken after a short grace delay, because output
can reach the pane just after the shell's children exit. If that snapshot
is busy again, the idle reading fell between two children (a shell loop)
and streaming resumes with it as an ordinary poll; otherwise it supplies
the final delta or the corrected tail.

A timeout only stops watching. The command keeps running in the session and
resume() picks it up again from the same marker.
"""

import asyncio
import enum
import math
import time
import warnings
from collections.abc import Callable

from .config import Settings
from .errors import DegradedCaptureWarning, MarkerNotFoundError, format_seconds
from .extract import extract, find_marker
from .logging_config import get_logger
from .truncate import Truncator, tail_of
from .types import ExecResult, Invocation, Snapshot, Status, StreamState

logger = get_logger(__name__)

DEGRADED_SENTINEL = "[DEGRADED: marker not found, showing pane tail]"
MARKER_GRACE_POLLS = 3  # Idle polls tolerated before the marker is first echoed


def timeout_sentinel(timeout: float) -> str:
    return f"[TIMEOUT after {format_seconds(timeout)}s]"


def pane_tail_report(lines: list[str], limit: int) -> str:
    """Degraded-mode output: the sentinel line, then the last limit chars of the pane."""
    tail = tail_of("\n".join(lines), limit)
    return f"{DEGRADED_SENTINEL}\n{tail}\n" if tail else f"{DEGRADED_SENTINEL}\n"


class Phase(enum.Enum):
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    DONE = "done"
    TIMEOUT = "timeout"


class StreamController:
    """Drives one invocation from first poll to a terminal phase.

    snapshotter is anything with an async snapshot() -> Snapshot method.
    on_output, if given, receives each chunk as soon as it is emitted.
    """

    def __init__(
        self,
        snapshotter,
        invocation: Invocation,
        settings: Settings,
        truncator: Truncator | None = None,
        on_output: Callable[[str], None] | None = None,
        state: StreamState | None = None,
        session_label: str = "",
    ):
        self.snapshotter = snapshotter
        self.invocation = invocation
        self.settings = settings
        self.truncator = truncator or Truncator(settings.truncate)
        self.on_output = on_output
        self.state = state or StreamState()
        self.session_label = session_label
        self.phase = Phase.DISPATCHING
        self.chunks: list[str] = []
        self._started = time.monotonic()

    @property
    def max_polls(self) -> int:
        interval = self.settings.poll_interval
        if interval <= 0:
            return max(1, int(self.settings.timeout))
        return max(1, math.ceil(self.settings.timeout / interval))

    def _set_phase(self, phase: Phase) -> None:
        logger.debug("%s %s: %s -> %s", self.session_label, self.invocation.marker, self.phase.value, phase.value)
        self.phase = phase

    def _emit(self, chunks: list[str]) -> None:
        for chunk in chunks:
            if not chunk:
                continue
            self.chunks.append(chunk)
            if self.on_output is not None:
                self.on_output(chunk)

    def _emit_line(self, text: str) -> None:
        """Emit a sentinel-style line, starting a fresh line if needed."""
        prefix = "\n" if self.chunks and not self.chunks[-1].endswith("\n") else ""
        self._emit([f"{prefix}{text}\n"])

    def _observe(self, snap: Snapshot) -> tuple[list[str], bool]:
        """Extract this invocation's lines from a snapshot. Returns (lines, marker_found)."""
        lines = snap.lines
        found = find_marker(lines, self.invocation.marker) is not None
        if found:
            self.state.marker_seen = True
        extracted = extract(lines, self.invocation.marker, self.invocation.skip_top, idle=snap.idle)
        return extracted, found

    def _split(self, extracted: list[str]) -> tuple[list[str], list[str]]:
        """Emission view and not-yet-printed lines; advances printed_lines."""
        view = extracted[self.state.base_line :]
        new_lines = extracted[self.state.printed_lines :]
        self.state.printed_lines = max(self.state.printed_lines, len(extracted))
        return view, new_lines

    def _result(self, status: Status) -> ExecResult:
        return ExecResult(
            status=status,
            output="".join(self.chunks),
            session=self.session_label,
            marker=self.invocation.marker,
            elapsed=time.monotonic() - self._started,
            timeout=self.settings.timeout,
        )

    async def run(self, first_snapshot: Snapshot | None = None) -> ExecResult:
        """Poll until idle (DONE) or until the poll budget runs out (TIMEOUT)."""
        self._set_phase(Phase.STREAMING)
        loop = asyncio.get_running_loop()
        snap = first_snapshot

        while True:
            poll_started = loop.time()
            if snap is None:
                snap = await self.snapshotter.snapshot()
            self.state.polls += 1

            extracted, found = self._observe(snap)
            if found:
                view, new_lines = self._split(extracted)
                self._emit(self.truncator.feed(self.state, view, new_lines))

            # Idle before the marker was ever echoed: the shell may not have
            # read the pasted line yet
            waiting_for_echo = not self.state.marker_seen and self.state.polls < MARKER_GRACE_POLLS
            if snap.idle and not waiting_for_echo:
                snap = await self._flush()
                if snap.idle:
                    return self._finish(snap)
                logger.debug("%s %s: busy again after idle, resuming", self.session_label, self.invocation.marker)
                self._set_phase(Phase.STREAMING)
                continue

            if self.state.polls > self.max_polls:
                return self._timeout(snap, extracted if found else None)

            snap = None
            next_poll_at = poll_started + self.settings.poll_interval
            await asyncio.sleep(max(0.0, next_poll_at - loop.time()))

    async def _flush(self) -> Snapshot:
        """Grace delay, then the snapshot that confirms (or refutes) idle."""
        self._set_phase(Phase.FLUSHING)
        await asyncio.sleep(self.settings.flush_delay)
        return await self.snapshotter.snapshot()

    def _finish(self, snap: Snapshot) -> ExecResult:
        extracted, found = self._observe(snap)
        if not found:
            self._set_phase(Phase.DONE)
            return self._degraded(snap)

        view, new_lines = self._split(extracted)
        self._emit(self.truncator.finish(self.state, view, new_lines))
        self._set_phase(Phase.DONE)
        return self._result(Status.COMPLETED)

    def _timeout(self, snap: Snapshot, extracted: list[str] | None) -> ExecResult:
        self._set_phase(Phase.TIMEOUT)
        if extracted is not None:
            view, new_lines = self._split(extracted)
            self._emit(self.truncator.finish(self.state, view, new_lines))
        else:
            self._emit_pane_tail(snap)
        logger.warning(
            "%s: still running after %ss (marker %s)",
            self.session_label,
            format_seconds(self.settings.timeout),
            self.invocation.marker,
        )
        self._emit_line(timeout_sentinel(self.settings.timeout))
        return self._result(Status.TIMED_OUT)

    def _emit_pane_tail(self, snap: Snapshot) -> None:
        limit = self.truncator.budget if self.truncator.enabled else self.settings.peek_chars
        prefix = "\n" if self.chunks and not self.chunks[-1].endswith("\n") else ""
        self._emit([prefix + pane_tail_report(snap.lines, limit)])

    def _degraded(self, snap: Snapshot) -> ExecResult:
        """Marker gone: report the pane tail instead of nothing."""
        error = MarkerNotFoundError(self.session_label, self.invocation.marker)
        logger.warning("%s", error)
        warnings.warn(str(error), DegradedCaptureWarning, stacklevel=2)
        self._emit_pane_tail(snap)
        result = self._result(Status.DEGRADED)
        result.error = str(error)
        return result


async def resume(
    snapshotter,
    invocation: Invocation,
    settings: Settings,
    truncator: Truncator | None = None,
    on_output: Callable[[str], None] | None = None,
    session_label: str = "",
) -> ExecResult:
    """Continue watching a previously dispatched invocation.

    The first emission re-shows the last context_lines lines already in the
    pane, then streaming continues as for a fresh dispatch. Raises
    MarkerNotFoundError when the marker is no longer in the pane.
    """
    snap = await snapshotter.snapshot()
    lines = snap.lines
    if find_marker(lines, invocation.marker) is None:
        raise MarkerNotFoundError(session_label, invocation.marker)

    extracted = extract(lines, invocation.marker, invocation.skip_top, idle=snap.idle)
    start = max(0, len(extracted) - settings.context_lines)
    logger.info("Continuing %s from line %d of %d", invocation.marker, start, len(extracted))
    state = StreamState(base_line=start, printed_lines=start)
    controller = StreamController(
        snapshotter,
        invocation,
        settings,
        truncator=truncator,
        on_output=on_output,
        state=state,
        session_label=session_label,
    )
    return await controller.run(first_snapshot=snap)
