"""Snapshotter: idle flag and full pane text from one round trip.

Probing idle and capturing text in separate round trips would let output
committed between the two be lost or double-counted, so both happen in a
single script:

    IDLE=<0|1>
    __TMUX_EXEC_SNAPSHOT__
    <capture-pane -p -J -S - output>
"""

from .errors import TransportError
from .logging_config import get_logger
from .tmux import SNAPSHOT_DELIM, batch, capture_fragment, probe_idle_fragment
from .transport import Transport
from .types import Session, Snapshot

logger = get_logger(__name__)


def snapshot_script(session: Session) -> str:
    return batch(
        probe_idle_fragment(session),
        'echo "IDLE=$IDLE"',
        f"echo {SNAPSHOT_DELIM}",
        capture_fragment(session),
    )


def parse_snapshot(raw: str) -> Snapshot:
    """Split a snapshot round trip's stdout into a Snapshot."""
    header, sep, text = raw.partition(f"\n{SNAPSHOT_DELIM}\n")
    if not sep:
        # Empty capture: the delimiter is the last line with nothing after it
        header, sep, text = raw.rstrip("\n").partition(f"\n{SNAPSHOT_DELIM}")
    if not sep or not header.startswith("IDLE="):
        raise TransportError(f"Malformed snapshot output: {raw[:200]!r}")
    return Snapshot(idle=header.strip() == "IDLE=1", text=text)


class Snapshotter:
    """Takes snapshots of one session over one transport."""

    def __init__(self, transport: Transport, session: Session):
        self.transport = transport
        self.session = session
        self._script = snapshot_script(session)

    async def snapshot(self) -> Snapshot:
        result = await self.transport.run(self._script)
        snap = parse_snapshot(result.stdout)
        logger.debug("Snapshot %s: idle=%s, %d chars", self.session, snap.idle, len(snap.text))
        return snap
