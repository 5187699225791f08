"""Error taxonomy and classification.

Fatal for the current call, never retried internally:
  BusyError       the session already has a foreground command running
  TransportError  target unreachable or a tmux primitive failed

Non-fatal, reported through ExecResult.status rather than raised by the
stream controller:
  WatchTimeoutError    the watch window elapsed; resumable via continue
  MarkerNotFoundError  marker evicted or unknown; degraded tail fallback

DegradedCaptureWarning is informational and accompanies degraded output.
"""

from dataclasses import dataclass


class TmuxExecError(Exception):
    """Base exception for all tmux-exec operations."""

    pass


class BusyError(TmuxExecError):
    """Raised when the session's shell already has a child process."""

    def __init__(self, session: str, detail: str = ""):
        self.session = session
        message = f"Session '{session}' is busy"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(f"{message}. Wait, interrupt it, or use a different session.")


class TransportError(TmuxExecError):
    """Raised when a round trip to the target fails."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class WatchTimeoutError(TmuxExecError):
    """The watch window elapsed before the session became idle.

    The command keeps running in the session; continue watching to resume.
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Still running after {format_seconds(timeout)}s")


class MarkerNotFoundError(TmuxExecError):
    """The invocation marker is not present in the session's retained history."""

    def __init__(self, session: str, marker: str | None):
        self.session = session
        self.marker = marker
        if marker:
            super().__init__(f"Marker {marker} not found in session '{session}' (evicted from scrollback?)")
        else:
            super().__init__(f"No known invocation for session '{session}'")


class DegradedCaptureWarning(UserWarning):
    """Output was recovered from the pane tail instead of the marker boundary."""

    pass


def format_seconds(seconds: float) -> str:
    """Render a duration without a trailing .0 for whole numbers."""
    return str(int(seconds)) if float(seconds).is_integer() else f"{seconds:g}"


@dataclass
class ErrorInfo:
    """Structured error classification."""

    fatal: bool  # The caller cannot treat this as "still running, check back later"
    status: str  # "busy", "transport_error", "timed_out", "degraded", "unknown"
    text: str  # The error text for logging / display


def classify_exception(error: Exception) -> ErrorInfo:
    """Classify an exception raised by the core into a status and fatality."""
    text = str(error)
    if isinstance(error, BusyError):
        return ErrorInfo(fatal=True, status="busy", text=text)
    if isinstance(error, TransportError):
        return ErrorInfo(fatal=True, status="transport_error", text=text)
    if isinstance(error, WatchTimeoutError):
        return ErrorInfo(fatal=False, status="timed_out", text=text)
    if isinstance(error, MarkerNotFoundError):
        return ErrorInfo(fatal=False, status="degraded", text=text)
    return ErrorInfo(fatal=True, status="unknown", text=text)
