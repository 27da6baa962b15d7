"""Application-owned artifact storage port (hexagonal architecture).

Defines the minimal filesystem capabilities the generation use cases need
so that the application layer does not depend on infrastructure details.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from domain.generation import FileEntry


@runtime_checkable
class ArtifactStorePort(Protocol):
    @property
    def root(self) -> Path: ...

    def resolve(self, directory: str, name: Optional[str] = None) -> Path: ...

    async def ensure_directory(self, directory: str) -> Path: ...

    async def put(self, directory: str, name: str, content: bytes) -> Path: ...

    async def get(self, directory: str, name: str) -> bytes: ...

    async def list(self, directory: str, extension: Optional[str] = None) -> list[FileEntry]: ...

    async def probe_writable(self, directory: str) -> Optional[str]: ...
