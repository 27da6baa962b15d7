"""
生成应用服务（application/services）- 编排 schema 持久化、工具解析、策略执行与结果报告
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from application.ports.artifact_store import ArtifactStorePort
from application.ports.toolchain import ToolResolverPort
from application.services.generation_executor import ExecutionEnvironment, GenerationExecutor
from application.services.result_reporter import ResultReporter
from application.utils.locks import KeyedLock
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, GenerationFailure, ToolNotFoundError
from domain.generation import (
    ExecutionOutcome,
    FileEntry,
    GatewayResult,
    GatewayStatus,
    GenerationReport,
    InvocationPlanner,
    ReportError,
    SchemaArtifact,
    ToolSet,
)

logger = get_logger(__name__)

GATEWAY_FAILURE_NOTE = "gRPC Gateway requires proper proto annotations and gateway.yaml configuration"


@dataclass
class SubmitResult:
    path: Path
    size: int
    files: list[FileEntry] = field(default_factory=list)
    listing_error: Optional[str] = None


class GenerationService:
    """Schema submission and stub generation use cases."""

    def __init__(
        self,
        store: ArtifactStorePort,
        resolver: ToolResolverPort,
        planner: InvocationPlanner,
        executor: GenerationExecutor,
        reporter: ResultReporter,
        *,
        schema_dir: str = "pb",
        output_dir: str = "grpc_output",
        schema_extension: str = ".proto",
        output_suffix: str = ".pb.go",
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._planner = planner
        self._executor = executor
        self._reporter = reporter
        self._schema_dir = schema_dir
        self._output_dir = output_dir
        self._schema_extension = schema_extension
        self._output_suffix = output_suffix
        self._locks = locks or KeyedLock()

    @property
    def generated_dir(self) -> str:
        """Directory holding generated sources (source-relative output mirrors the schema dir)."""
        return f"{self._output_dir}/{self._schema_dir}"

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------
    async def submit(self, filename: str, content: Union[str, bytes]) -> SubmitResult:
        """保存 schema 文件并返回 schema 目录的文件列表"""
        artifact = await self._save(filename, content)
        try:
            files = await self._store.list(self._schema_dir)
        except BusinessException as exc:
            return SubmitResult(path=artifact.path, size=artifact.size, listing_error=exc.message)
        return SubmitResult(path=artifact.path, size=artifact.size, files=files)

    async def list_schemas(self) -> list[FileEntry]:
        return await self._store.list(self._schema_dir, self._schema_extension)

    async def read_schema(self, filename: str) -> str:
        content = await self._store.get(self._schema_dir, filename)
        return content.decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # Generated files
    # ------------------------------------------------------------------
    async def list_generated(self) -> list[FileEntry]:
        return await self._store.list(self.generated_dir)

    async def read_generated(self, filename: str) -> str:
        content = await self.read_generated_bytes(filename)
        return content.decode("utf-8", errors="replace")

    async def read_generated_bytes(self, filename: str) -> bytes:
        return await self._store.get(self.generated_dir, filename)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def generate(self, filename: str, content: Union[str, bytes]) -> GenerationReport:
        """保存 schema 并执行完整生成流程。

        Failures after the schema is saved are returned inside the report;
        only a failed save raises.
        """
        artifact = await self._save(filename, content)
        output_path = self._store.resolve(self._output_dir)
        diagnostics = [
            f"App Root: {self._store.root}",
            f"Schema File Path: {artifact.path}",
            f"Output Directory: {output_path}",
        ]

        tools: Optional[ToolSet] = None
        try:
            tools = self._resolver.resolve()
            missing = tools.missing_plugins(self._planner.required_plugins)
            if missing:
                raise self._resolver.plugin_not_found(missing[0])
        except ToolNotFoundError as exc:
            return self._reporter.aborted(artifact, output_path, exc, tools=tools, diagnostics=diagnostics)

        diagnostics.append(f"Compiler Path: {tools.compiler_path}")
        for name, path in tools.plugin_paths.items():
            diagnostics.append(f"Plugin protoc-gen-{name}: {path or 'not found'}")
        if not tools.gateway_available:
            diagnostics.append(
                f"gRPC Gateway plugin not found in {tools.plugin_dir}, skipping gateway generation"
            )

        async with self._locks.hold(str(output_path)):
            return await self._generate_locked(artifact, tools, output_path, diagnostics)

    async def _generate_locked(
        self,
        artifact: SchemaArtifact,
        tools: ToolSet,
        output_path: Path,
        diagnostics: list[str],
    ) -> GenerationReport:
        try:
            await self._store.ensure_directory(self._output_dir)
            schema_files = await self._schema_files(artifact)
        except BusinessException as exc:
            return self._reporter.aborted(artifact, output_path, exc, tools=tools, diagnostics=diagnostics)

        probe_error = await self._store.probe_writable(self._output_dir)
        if probe_error is None:
            diagnostics.append("Successfully wrote test file to output directory")
        else:
            diagnostics.append(f"Error writing test file to output directory: {probe_error}")

        files_before, listing_error = await self._reporter.snapshot()
        if listing_error:
            diagnostics.append(f"Error listing output directory before generation: {listing_error}")

        strategies = self._planner.plan(schema_files, output_path, tools.plugin_paths)
        environment = ExecutionEnvironment(compiler=tools.compiler_path, env=self._resolver.environment())
        outcomes, final = await self._executor.execute(strategies, environment)

        gateway = await self._run_gateway(artifact, tools, output_path, environment, final)

        error: Optional[ReportError] = None
        if final is None or not final.succeeded:
            failure = GenerationFailure(len(outcomes), final.error if final else None)
            error = ReportError(type=failure.error_type, message=failure.message, details=failure.details)

        return await self._reporter.report(
            artifact,
            outcomes,
            gateway,
            output_path,
            tools=tools,
            files_before=files_before,
            diagnostics=diagnostics,
            error=error,
            expected_outputs=self._expected_outputs(schema_files),
        )

    async def _run_gateway(
        self,
        artifact: SchemaArtifact,
        tools: ToolSet,
        output_path: Path,
        environment: ExecutionEnvironment,
        final: Optional[ExecutionOutcome],
    ) -> GatewayResult:
        if final is None or not final.succeeded:
            return GatewayResult(GatewayStatus.SKIPPED, reason="primary generation failed")
        if not tools.gateway_available:
            return GatewayResult(
                GatewayStatus.SKIPPED,
                reason=f"protoc-gen-{tools.gateway_plugin} not found in {tools.plugin_dir}",
            )

        strategy = self._planner.plan_gateway(self._relative(artifact.path), output_path)
        outcome = await self._executor.execute_gateway(strategy, environment)
        if outcome.succeeded:
            return GatewayResult(GatewayStatus.SUCCEEDED, outcome=outcome)
        return GatewayResult(GatewayStatus.FAILED, outcome=outcome, reason=GATEWAY_FAILURE_NOTE)

    async def _save(self, filename: str, content: Union[str, bytes]) -> SchemaArtifact:
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        path = await self._store.put(self._schema_dir, filename, data)
        return SchemaArtifact(name=filename, content=data, path=path)

    async def _schema_files(self, artifact: SchemaArtifact) -> list[str]:
        """Every schema in the schema dir, relative to the content root, sorted."""
        entries = await self._store.list(self._schema_dir, self._schema_extension)
        files = {f"{self._schema_dir}/{entry.name}" for entry in entries}
        if artifact.name.endswith(self._schema_extension):
            files.add(self._relative(artifact.path))
        return sorted(files)

    def _expected_outputs(self, schema_files: list[str]) -> list[str]:
        """Source-relative output of `pb/x.proto` is `x<output_suffix>` in the generated dir."""
        return [Path(f).stem + self._output_suffix for f in schema_files]

    def _relative(self, path: Path) -> str:
        return path.relative_to(self._store.root).as_posix()
