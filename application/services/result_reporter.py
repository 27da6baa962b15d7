"""Assembles the generation report and the before/after output listings."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from application.ports.artifact_store import ArtifactStorePort
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, MissingOutputsError
from domain.generation import (
    ExecutionOutcome,
    FileEntry,
    GatewayResult,
    GatewayStatus,
    GenerationReport,
    ReportError,
    SchemaArtifact,
    ToolSet,
)

logger = get_logger(__name__)


class ResultReporter:
    def __init__(self, store: ArtifactStorePort, output_dir: str):
        self._store = store
        self._output_dir = output_dir

    async def snapshot(self) -> tuple[Optional[list[FileEntry]], Optional[str]]:
        """List the output directory. A failed listing yields ``(None, reason)``, never an exception."""
        try:
            return await self._store.list(self._output_dir), None
        except BusinessException as exc:
            logger.warning("output_listing_failed", output_dir=self._output_dir, error=exc.message)
            return None, exc.message

    async def report(
        self,
        artifact: SchemaArtifact,
        outcomes: Sequence[ExecutionOutcome],
        gateway: GatewayResult,
        output_dir: Path,
        *,
        tools: Optional[ToolSet] = None,
        files_before: Optional[list[FileEntry]] = None,
        diagnostics: Sequence[str] = (),
        error: Optional[ReportError] = None,
        expected_outputs: Sequence[str] = (),
    ) -> GenerationReport:
        """Assemble the report from the after-listing.

        A zero exit status only counts when ``expected_outputs`` are all
        listed (or, without expectations, when the listing is non-empty).
        """
        files_after, listing_error = await self.snapshot()
        notes = list(diagnostics)
        if listing_error:
            notes.append(f"Error listing output directory after generation: {listing_error}")

        primary_ok = error is None and bool(outcomes) and outcomes[-1].succeeded
        if primary_ok and files_after is None:
            notes.append("Output verification skipped: output directory could not be listed")
        elif primary_ok:
            missing = self.missing_outputs(files_after, expected_outputs)
            if missing is not None:
                failure = MissingOutputsError(missing, self._output_dir)
                logger.warning("generation_outputs_missing", missing=missing, output_dir=self._output_dir)
                error = ReportError(type=failure.error_type, message=failure.message, details=failure.details)

        report = GenerationReport(
            artifact=artifact,
            output_dir=output_dir,
            outcomes=list(outcomes),
            gateway=gateway,
            tools=tools,
            files_before=files_before,
            files_after=files_after,
            diagnostics=notes,
            error=error,
        )
        logger.info(
            "generation_report",
            artifact=artifact.name,
            succeeded=report.succeeded,
            attempts=len(report.outcomes),
            gateway=gateway.status.value,
            produced=report.produced_files,
        )
        return report

    @staticmethod
    def missing_outputs(files_after: Sequence[FileEntry], expected: Sequence[str]) -> Optional[list[str]]:
        """Expected names absent from the listing; ``None`` when nothing is missing."""
        present = {entry.name for entry in files_after}
        if expected:
            missing = [name for name in expected if name not in present]
            return missing or None
        return None if present else []

    def aborted(
        self,
        artifact: SchemaArtifact,
        output_dir: Path,
        error: BusinessException,
        *,
        tools: Optional[ToolSet] = None,
        files_before: Optional[list[FileEntry]] = None,
        diagnostics: Sequence[str] = (),
    ) -> GenerationReport:
        """Report for a request that stopped before any compiler process ran."""
        logger.warning("generation_aborted", artifact=artifact.name, error=error.message)
        return GenerationReport(
            artifact=artifact,
            output_dir=output_dir,
            tools=tools,
            gateway=GatewayResult(GatewayStatus.SKIPPED, reason="generation not attempted"),
            files_before=files_before,
            diagnostics=list(diagnostics),
            error=ReportError(type=error.error_type, message=error.message, details=error.details),
        )
