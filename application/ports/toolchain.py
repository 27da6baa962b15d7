"""Toolchain discovery port."""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.common.exceptions import ToolNotFoundError
from domain.generation import ToolSet


@runtime_checkable
class ToolResolverPort(Protocol):
    def resolve(self) -> ToolSet:
        """Raises ``ToolNotFoundError`` when the compiler is missing."""
        ...

    def plugin_not_found(self, name: str) -> ToolNotFoundError: ...

    def environment(self) -> dict[str, str]:
        """Environment for compiler processes, plugin directory first on PATH."""
        ...
