"""asyncio subprocess runner for compiler invocations."""
from __future__ import annotations

import asyncio
import os
import signal
from pathlib import Path
from typing import Mapping, Optional, Sequence

from application.ports.command_runner import CommandResult
from core.logging_config import get_logger

logger = get_logger(__name__)

# protoc starts its plugins as children sharing the output pipe; each run gets its own process group
_OWN_GROUP = os.name == "posix"

# Upper bound on collecting output after a kill
KILL_DRAIN_SECONDS = 2.0


class AsyncSubprocessRunner:
    """Runs one command with stderr folded into stdout.

    On timeout or caller cancellation the whole process group is killed, so
    neither the compiler nor a hung plugin keeps writing into the output
    directory or holds the pipe open.
    """

    def __init__(self, kill_drain_seconds: float = KILL_DRAIN_SECONDS) -> None:
        self._kill_drain_seconds = kill_drain_seconds

    async def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
        timeout: Optional[float],
    ) -> CommandResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(cwd),
                env=dict(env),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=_OWN_GROUP,
            )
        except OSError as e:
            # Missing binary, bad cwd, permission denied
            return CommandResult(return_code=None, output="", error=f"failed to start: {e}")

        buffer = bytearray()
        try:
            await asyncio.wait_for(_collect(proc, buffer), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc, buffer)
            logger.warning("command_timed_out", command=command[0], timeout=timeout, pid=proc.pid)
            return CommandResult(
                return_code=proc.returncode,
                output=_decode(buffer),
                timed_out=True,
                error=f"timed out after {timeout}s",
            )
        except asyncio.CancelledError:
            await self._terminate(proc, buffer)
            logger.warning("command_cancelled", command=command[0], pid=proc.pid)
            raise

        error = None if proc.returncode == 0 else f"exit status {proc.returncode}"
        return CommandResult(return_code=proc.returncode, output=_decode(buffer), error=error)

    async def _terminate(self, proc: asyncio.subprocess.Process, buffer: bytearray) -> None:
        """Kill the process group, then collect remaining output for at most ``kill_drain_seconds``."""
        _kill_group(proc)
        try:
            await asyncio.wait_for(_collect(proc, buffer), timeout=self._kill_drain_seconds)
        except asyncio.TimeoutError:
            # A descendant that left the group still holds the pipe
            logger.warning("command_output_abandoned", pid=proc.pid, returncode=proc.returncode)


async def _collect(proc: asyncio.subprocess.Process, buffer: bytearray) -> None:
    """Read stdout into ``buffer`` until EOF, then reap the process.

    Output read so far stays in ``buffer`` when this is cancelled.
    """
    assert proc.stdout is not None
    while True:
        chunk = await proc.stdout.read(65536)
        if not chunk:
            break
        buffer.extend(chunk)
    await proc.wait()


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    try:
        if _OWN_GROUP:
            os.killpg(proc.pid, signal.SIGKILL)
        elif proc.returncode is None:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        # group already gone
        pass


def _decode(buffer: bytearray) -> str:
    return buffer.decode("utf-8", errors="replace") if buffer else ""
