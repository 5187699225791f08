"""Session registry — per-session locks and the last dispatched invocation.

Registry layout:
  {state_dir}/sessions.json   — session key → {marker, command, kind, skip_top,
                                 dispatched_at, status, updated}

Markers are unique per invocation, so continuing a timed-out command needs
the marker it was dispatched with; this file remembers it across processes.

Locks are process-local: they stop two invocations in this process from
sharing a session, but not a second process or a second host. The idle
check inside the dispatch round trip is the only guard across processes.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import BusyError
from .logging_config import get_logger
from .types import Invocation, Session

logger = get_logger(__name__)

REGISTRY_NAME = "sessions.json"

_locks: dict[str, asyncio.Lock] = {}


def registry_file(state_dir: Path) -> Path:
    return state_dir / REGISTRY_NAME


def load_registry(state_dir: Path) -> dict[str, Any]:
    """Load the session registry from disk."""
    path = registry_file(state_dir)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load session registry %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def save_registry(state_dir: Path, registry: dict[str, Any]) -> None:
    """Save the session registry to disk (atomic write)."""
    path = registry_file(state_dir)
    try:
        state_dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(registry, indent=2) + "\n")
        tmp.rename(path)
    except OSError as e:
        logger.error("Failed to save session registry: %s", e)


def record_invocation(state_dir: Path, session: Session, invocation: Invocation, status: str = "running") -> None:
    """Remember invocation as the session's most recent one."""
    registry = load_registry(state_dir)
    entry = invocation.to_dict()
    entry["status"] = status
    entry["updated"] = datetime.now().isoformat()
    registry[session.key] = entry
    save_registry(state_dir, registry)


def update_status(state_dir: Path, session: Session, marker: str, status: str) -> None:
    """Update the stored status, if the stored invocation is still the one given."""
    registry = load_registry(state_dir)
    entry = registry.get(session.key)
    if not entry or entry.get("marker") != marker:
        return
    entry["status"] = status
    entry["updated"] = datetime.now().isoformat()
    save_registry(state_dir, registry)


def last_invocation(state_dir: Path, session: Session) -> Invocation | None:
    """The session's most recent invocation, or None if unknown."""
    entry = load_registry(state_dir).get(session.key)
    if not entry or not entry.get("marker"):
        return None
    try:
        return Invocation.from_dict(entry)
    except (KeyError, ValueError) as e:
        logger.warning("Ignoring bad registry entry for %s: %s", session.key, e)
        return None


def forget(state_dir: Path, session: Session) -> None:
    """Remove a session from the registry."""
    registry = load_registry(state_dir)
    if registry.pop(session.key, None) is not None:
        save_registry(state_dir, registry)


def list_sessions(state_dir: Path) -> dict[str, Any]:
    """List all sessions with a recorded invocation."""
    return load_registry(state_dir)


@asynccontextmanager
async def session_lock(session: Session):
    """Hold the session's advisory lock for a whole invocation lifecycle.

    Fails fast with BusyError instead of queueing behind another invocation.
    """
    lock = _locks.setdefault(session.key, asyncio.Lock())
    if lock.locked():
        raise BusyError(str(session), "another invocation in this process holds it")
    async with lock:
        yield
