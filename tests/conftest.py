"""Shared fixtures for tmux-exec tests."""

from pathlib import Path

import pytest

import tmux_exec.registry as registry
from tmux_exec.config import ENV_CONFIG, ENV_HOST, ENV_SESSION, ENV_STATE_DIR, STATE_DIR, Settings
from tmux_exec.errors import TransportError
from tmux_exec.tmux import BUSY_EXIT, SNAPSHOT_DELIM
from tmux_exec.transport import RoundTrip, Transport
from tmux_exec.types import Snapshot

MARKER = "__TMUX_EXEC_0123456789abcdef__"

# Snapshot the real registry file so we can detect accidental writes.
_REAL_REGISTRY_FILE = STATE_DIR / registry.REGISTRY_NAME
_REAL_REGISTRY_SNAPSHOT: bytes | None = _REAL_REGISTRY_FILE.read_bytes() if _REAL_REGISTRY_FILE.exists() else None
_REAL_REGISTRY_EXISTED = _REAL_REGISTRY_FILE.exists()


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Keep the user's config, state dir and target env vars out of every test."""
    monkeypatch.setenv(ENV_CONFIG, str(tmp_path / "no-config.json"))
    monkeypatch.setenv(ENV_STATE_DIR, str(tmp_path / "state"))
    monkeypatch.delenv(ENV_HOST, raising=False)
    monkeypatch.delenv(ENV_SESSION, raising=False)
    registry._locks.clear()
    yield
    registry._locks.clear()


@pytest.fixture(autouse=True)
def _guard_real_registry():
    """Fail the test if it accidentally wrote to the real registry."""
    yield
    now_exists = _REAL_REGISTRY_FILE.exists()
    if not _REAL_REGISTRY_EXISTED and now_exists:
        pytest.fail(f"Test created the real registry file: {_REAL_REGISTRY_FILE}")
    if _REAL_REGISTRY_EXISTED and now_exists:
        if _REAL_REGISTRY_FILE.read_bytes() != _REAL_REGISTRY_SNAPSHOT:
            pytest.fail(f"Test modified the real registry file: {_REAL_REGISTRY_FILE}")


@pytest.fixture
def state_dir(tmp_path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def fast_settings(state_dir) -> Settings:
    """No sleeping between polls; poll budget equals the timeout in polls."""
    return Settings(
        timeout=5,
        truncate=0,
        poll_interval=0,
        flush_delay=0,
        settle_delay=0,
        state_dir=state_dir,
    )


def pane(*lines: str) -> str:
    """Pane text as capture-pane prints it."""
    return "\n".join(lines) + "\n"


class FakeSnapshotter:
    """Replays scripted snapshots; the last one repeats once the script runs out."""

    def __init__(self, *snapshots: Snapshot):
        self.snapshots = list(snapshots)
        self.calls = 0

    async def snapshot(self) -> Snapshot:
        self.calls += 1
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]


class FakeTarget(Transport):
    """Transport double that answers each round trip by what the script does.

    panes is a list of (idle, text) pairs served to snapshot and capture
    round trips in order, the last one repeating.
    """

    name = "fake"

    def __init__(self, panes=(), busy: bool = False, fail: bool = False):
        self.panes = list(panes) or [(True, "")]
        self.busy = busy
        self.fail = fail
        self.scripts: list[str] = []
        self.stdins: list[bytes | None] = []

    def _next_pane(self) -> tuple[bool, str]:
        if len(self.panes) > 1:
            return self.panes.pop(0)
        return self.panes[0]

    async def run(self, script, stdin=None, ok_codes=(0,), timeout=30):
        self.scripts.append(script)
        self.stdins.append(stdin)
        if self.fail:
            raise TransportError("fake failed (255): ssh: connect to host example port 22: Connection refused")

        if "load-buffer" in script:
            result = RoundTrip(BUSY_EXIT if self.busy else 0, "", "")
        elif SNAPSHOT_DELIM in script:
            idle, text = self._next_pane()
            result = RoundTrip(0, f"IDLE={int(idle)}\n{SNAPSHOT_DELIM}\n{text}", "")
        elif "capture-pane" in script:
            result = RoundTrip(0, self._next_pane()[1], "")
        else:
            result = RoundTrip(0, "", "")

        if result.returncode not in ok_codes:
            raise TransportError(f"fake failed ({result.returncode})", returncode=result.returncode)
        return result
