"""Caller boundary: execute, continue watching, peek, interrupt.

execute() and continue_watching() raise BusyError / TransportError straight
through; timeouts and a lost marker come back as result statuses. The
run_*() wrappers convert the fatal exceptions into results too, for callers
(CLI, agent tools) that want one return shape for every outcome.
"""

import asyncio
import warnings
from collections.abc import Awaitable, Callable

from .config import Settings
from .dispatch import dispatch
from .errors import BusyError, DegradedCaptureWarning, MarkerNotFoundError, TransportError, classify_exception
from .logging_config import get_logger
from .registry import last_invocation, record_invocation, session_lock, update_status
from .snapshot import Snapshotter
from .stream import StreamController, pane_tail_report, resume
from .tmux import capture, send_keys
from .transport import Transport, transport_for
from .truncate import Truncator, tail_of
from .types import ExecResult, Invocation, Session, Snapshot, Status

logger = get_logger(__name__)

OutputCallback = Callable[[str], None]


async def execute(
    session: Session,
    command: str,
    settings: Settings,
    on_output: OutputCallback | None = None,
    transport: Transport | None = None,
) -> ExecResult:
    """Dispatch command into session and stream its output until done or timeout."""
    transport = transport or transport_for(session.host)
    async with session_lock(session):
        invocation = await dispatch(transport, session, command)
        record_invocation(settings.state_dir, session, invocation)
        await asyncio.sleep(settings.settle_delay)

        controller = StreamController(
            Snapshotter(transport, session),
            invocation,
            settings,
            truncator=Truncator(settings.truncate),
            on_output=on_output,
            session_label=str(session),
        )
        result = await controller.run()
        update_status(settings.state_dir, session, invocation.marker, result.status.value)
        return result


async def continue_watching(
    session: Session,
    settings: Settings,
    marker: str | None = None,
    on_output: OutputCallback | None = None,
    transport: Transport | None = None,
) -> ExecResult:
    """Resume watching the session's last invocation (or the one tagged marker).

    Falls back to the pane tail, with a degraded sentinel, when the marker is
    unknown or no longer in the pane.
    """
    transport = transport or transport_for(session.host)
    async with session_lock(session):
        invocation = _resolve_invocation(settings, session, marker)
        try:
            if invocation is None:
                raise MarkerNotFoundError(str(session), marker)
            result = await resume(
                Snapshotter(transport, session),
                invocation,
                settings,
                truncator=Truncator(settings.truncate),
                on_output=on_output,
                session_label=str(session),
            )
        except MarkerNotFoundError as e:
            return await _degraded_fallback(transport, session, settings, e, on_output)
        update_status(settings.state_dir, session, invocation.marker, result.status.value)
        return result


def _resolve_invocation(settings: Settings, session: Session, marker: str | None) -> Invocation | None:
    """Prefer the registry entry (it knows skip_top); fall back to a bare marker."""
    known = last_invocation(settings.state_dir, session)
    if marker is None:
        return known
    if known is not None and known.marker == marker:
        return known
    return Invocation(marker=marker)


async def _degraded_fallback(
    transport: Transport,
    session: Session,
    settings: Settings,
    error: MarkerNotFoundError,
    on_output: OutputCallback | None,
) -> ExecResult:
    logger.warning("%s", error)
    warnings.warn(str(error), DegradedCaptureWarning, stacklevel=3)
    text = await capture(transport, session)
    truncator = Truncator(settings.truncate)
    limit = truncator.budget if truncator.enabled else settings.peek_chars
    output = pane_tail_report(Snapshot(idle=False, text=text).lines, limit)
    if on_output is not None:
        on_output(output)
    return ExecResult(
        status=Status.DEGRADED,
        output=output,
        session=str(session),
        marker=error.marker,
        error=str(error),
        timeout=settings.timeout,
    )


async def peek(session: Session, chars: int, transport: Transport | None = None) -> ExecResult:
    """Last chars characters of the pane. No marker, no busy check."""
    transport = transport or transport_for(session.host)
    text = (await capture(transport, session)).rstrip("\n")
    tail = tail_of(text, chars)
    return ExecResult(status=Status.COMPLETED, output=tail + "\n" if tail else "", session=str(session))


async def interrupt(session: Session, transport: Transport | None = None) -> ExecResult:
    """Send Ctrl-C to the session, fire-and-forget."""
    transport = transport or transport_for(session.host)
    await send_keys(transport, session, "C-c")
    logger.info("Sent interrupt to %s", session)
    return ExecResult(status=Status.COMPLETED, session=str(session))


async def guarded(session: Session, call: Awaitable[ExecResult]) -> ExecResult:
    """Await call, turning BusyError / TransportError into a fatal-status result."""
    try:
        return await call
    except (BusyError, TransportError) as e:
        info = classify_exception(e)
        logger.error("%s: %s", session, info.text)
        return ExecResult(status=Status(info.status), session=str(session), error=info.text)


async def run_execute(session: Session, command: str, settings: Settings, **kwargs) -> ExecResult:
    return await guarded(session, execute(session, command, settings, **kwargs))


async def run_continue(session: Session, settings: Settings, **kwargs) -> ExecResult:
    return await guarded(session, continue_watching(session, settings, **kwargs))


async def run_peek(session: Session, chars: int, **kwargs) -> ExecResult:
    return await guarded(session, peek(session, chars, **kwargs))


async def run_interrupt(session: Session, **kwargs) -> ExecResult:
    return await guarded(session, interrupt(session, **kwargs))
