"""Transport: run one shell script on the target host as a single round trip.

Every tmux interaction is expressed as a short shell script so that several
primitives (idle probe, capture, load/paste buffer, send-keys) execute back
to back on the target with no intervening client round trip. The script runs:
  - locally:            bash -c SCRIPT
  - over ssh:           ssh HOST SCRIPT
  - inside a container: podman exec -i NAME bash -c SCRIPT

Host syntax: None/"" is local, "podman:NAME" is a container, anything else
is an ssh destination.
"""

import asyncio
from typing import NamedTuple

from .errors import TransportError
from .logging_config import get_logger

logger = get_logger(__name__)

ROUND_TRIP_TIMEOUT = 30  # seconds; a single round trip should never take this long
PODMAN_PREFIX = "podman:"


class RoundTrip(NamedTuple):
    returncode: int
    stdout: str
    stderr: str


class Transport:
    """Base transport. Subclasses only decide how the script is launched."""

    name = "transport"

    def argv(self, script: str) -> list[str]:
        raise NotImplementedError

    async def run(
        self,
        script: str,
        stdin: bytes | None = None,
        ok_codes: tuple[int, ...] = (0,),
        timeout: float = ROUND_TRIP_TIMEOUT,
    ) -> RoundTrip:
        """Run script on the target, feeding stdin verbatim.

        Raises TransportError when the launcher is missing, the round trip
        times out, or the exit status is not in ok_codes.
        """
        cmd = self.argv(script)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(f"{self.name}: cannot launch {cmd[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(input=stdin), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise TransportError(f"{self.name}: round trip timed out after {timeout}s")

        result = RoundTrip(
            proc.returncode or 0,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
        if result.returncode not in ok_codes:
            err = result.stderr.strip()
            logger.error("%s round trip failed (%d): %s", self.name, result.returncode, err[:500])
            raise TransportError(
                f"{self.name} failed ({result.returncode}): {err or 'no error output'}",
                returncode=result.returncode,
                stderr=err,
            )
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class LocalTransport(Transport):
    name = "local"

    def argv(self, script: str) -> list[str]:
        return ["bash", "-c", script]


class SSHTransport(Transport):
    def __init__(self, host: str):
        self.host = host
        self.name = f"ssh {host}"

    def argv(self, script: str) -> list[str]:
        return ["ssh", self.host, script]


class PodmanTransport(Transport):
    def __init__(self, container: str):
        self.container = container
        self.name = f"podman {container}"

    def argv(self, script: str) -> list[str]:
        return ["podman", "exec", "-i", self.container, "bash", "-c", script]


def transport_for(host: str | None) -> Transport:
    """Pick the transport for a host string."""
    if not host:
        return LocalTransport()
    if host.startswith(PODMAN_PREFIX):
        container = host[len(PODMAN_PREFIX) :]
        if not container:
            raise ValueError("podman host needs a container name, e.g. podman:mybox")
        return PodmanTransport(container)
    return SSHTransport(host)
