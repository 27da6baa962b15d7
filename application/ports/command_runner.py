"""External process port used by the generation executor."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    return_code: Optional[int]
    output: str
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.error is None and self.return_code == 0


@runtime_checkable
class CommandRunner(Protocol):
    async def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
        timeout: Optional[float],
    ) -> CommandResult:
        """Run ``command`` to completion, returning combined stdout/stderr.

        Must not raise for process-level failures (non-zero exit, missing
        binary, timeout); those are reported through ``CommandResult``.
        """
        ...
