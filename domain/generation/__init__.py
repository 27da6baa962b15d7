"""Generation domain exports."""
from .entities import (
    ExecutionOutcome,
    FileEntry,
    GatewayResult,
    GatewayStatus,
    GenerationReport,
    InvocationStrategy,
    ReportError,
    SchemaArtifact,
    ToolSet,
)
from .planner import InvocationPlanner

__all__ = [
    "ExecutionOutcome",
    "FileEntry",
    "GatewayResult",
    "GatewayStatus",
    "GenerationReport",
    "InvocationPlanner",
    "InvocationStrategy",
    "ReportError",
    "SchemaArtifact",
    "ToolSet",
]
