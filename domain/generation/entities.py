"""Value objects describing one schema-to-stub generation run."""
from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional


@dataclass(frozen=True)
class FileEntry:
    name: str
    size: int
    modified_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "modified": self.modified_time.strftime("%Y-%m-%d %H:%M:%S"),
        }


@dataclass(frozen=True)
class SchemaArtifact:
    """A submitted schema file. Identity is its name within the schema directory."""

    name: str
    content: bytes
    path: Path

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ToolSet:
    compiler_path: Path
    plugin_paths: dict[str, Optional[Path]]
    gateway_plugin: str
    plugin_dir: Optional[Path] = None

    @property
    def gateway_available(self) -> bool:
        return self.plugin_paths.get(self.gateway_plugin) is not None

    def missing_plugins(self, required: tuple[str, ...]) -> list[str]:
        return [name for name in required if self.plugin_paths.get(name) is None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "compiler_path": str(self.compiler_path),
            "plugin_paths": {k: (str(v) if v else None) for k, v in self.plugin_paths.items()},
            "gateway_available": self.gateway_available,
        }


@dataclass(frozen=True)
class InvocationStrategy:
    """A complete, self-sufficient compiler command line.

    ``arguments`` excludes the compiler binary itself; the executor prepends it.
    """

    label: str
    arguments: tuple[str, ...]
    working_directory: Path

    def command(self, compiler: Path | str) -> list[str]:
        return [str(compiler), *self.arguments]

    def command_line(self, compiler: Path | str) -> str:
        return shlex.join(self.command(compiler))


@dataclass(frozen=True)
class ExecutionOutcome:
    strategy: InvocationStrategy
    succeeded: bool
    combined_output: str = ""
    error: Optional[str] = None
    return_code: Optional[int] = None
    command_line: str = ""
    elapsed_ms: float = 0.0
    timed_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.strategy.label,
            "succeeded": self.succeeded,
            "command": self.command_line,
            "return_code": self.return_code,
            "output": self.combined_output,
            "error": self.error,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "timed_out": self.timed_out,
        }


class GatewayStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class GatewayResult:
    status: GatewayStatus
    outcome: Optional[ExecutionOutcome] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }


@dataclass(frozen=True)
class ReportError:
    type: str
    message: str
    details: Optional[dict] = None


@dataclass
class GenerationReport:
    """Aggregate result of one generation request. Returned, never persisted."""

    artifact: SchemaArtifact
    output_dir: Path
    outcomes: list[ExecutionOutcome] = field(default_factory=list)
    gateway: GatewayResult = field(
        default_factory=lambda: GatewayResult(GatewayStatus.SKIPPED, reason="not attempted")
    )
    tools: Optional[ToolSet] = None
    files_before: Optional[list[FileEntry]] = None
    files_after: Optional[list[FileEntry]] = None
    diagnostics: list[str] = field(default_factory=list)
    error: Optional[ReportError] = None

    @property
    def final_outcome(self) -> Optional[ExecutionOutcome]:
        return self.outcomes[-1] if self.outcomes else None

    @property
    def succeeded(self) -> bool:
        final = self.final_outcome
        return self.error is None and final is not None and final.succeeded

    @property
    def produced_files(self) -> list[str]:
        """Files new or rewritten by this run (size or mtime changed)."""
        if self.files_after is None:
            return []
        before = {entry.name: (entry.size, entry.modified_time) for entry in self.files_before or []}
        return sorted(
            entry.name
            for entry in self.files_after
            if before.get(entry.name) != (entry.size, entry.modified_time)
        )

    def to_dict(self) -> dict[str, Any]:
        final = self.final_outcome
        return {
            "succeeded": self.succeeded,
            "saved_path": str(self.artifact.path),
            "saved_size": self.artifact.size,
            "output_dir": str(self.output_dir),
            "tools": self.tools.to_dict() if self.tools else None,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "final_outcome": final.to_dict() if final else None,
            "gateway": self.gateway.to_dict(),
            "files_before": [e.to_dict() for e in self.files_before] if self.files_before is not None else None,
            "files_after": [e.to_dict() for e in self.files_after] if self.files_after is not None else None,
            "produced_files": self.produced_files,
            "diagnostics": list(self.diagnostics),
            "error": (
                {"type": self.error.type, "message": self.error.message, "details": self.error.details}
                if self.error else None
            ),
        }

    def to_text(self) -> str:
        lines = [f"File saved successfully: {self.artifact.path} ({self.artifact.size} bytes)"]

        if self.error is not None:
            lines.append(f"Error [{self.error.type}]: {self.error.message}")
            guidance = (self.error.details or {}).get("guidance")
            if guidance:
                lines.append(guidance)

        for outcome in self.outcomes:
            lines.append(f"Trying approach: {outcome.strategy.label}")
            lines.append(f"  Command: {outcome.command_line}")
            if outcome.succeeded:
                lines.append("  ✅ Approach succeeded")
            else:
                lines.append(f"  ❌ Approach failed: {outcome.error}")
            if outcome.combined_output.strip():
                lines.append("  Output:")
                lines.extend(f"    {line}" for line in outcome.combined_output.rstrip().splitlines())

        if self.succeeded:
            lines.append(f"GRPC code generated successfully! Output saved to {self.output_dir}")
        elif self.outcomes:
            lines.append(f"Code generation failed after {len(self.outcomes)} attempt(s)")

        gw = self.gateway
        lines.append(f"Gateway generation: {gw.status.value}" + (f" ({gw.reason})" if gw.reason else ""))
        if gw.outcome is not None and gw.outcome.combined_output.strip():
            lines.extend(f"    {line}" for line in gw.outcome.combined_output.rstrip().splitlines())

        for title, entries in (
            ("Files in output directory before generation:", self.files_before),
            ("Files in output directory after generation:", self.files_after),
        ):
            if entries is None:
                continue
            lines.append(title)
            lines.extend(f"  - {e.name} (size: {e.size} bytes)" for e in entries)

        if self.diagnostics:
            lines.append("Debug Information:")
            lines.extend(f"  {d}" for d in self.diagnostics)
        return "\n".join(lines)
