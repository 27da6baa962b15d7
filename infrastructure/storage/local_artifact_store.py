"""Local file system artifact store (schemas and generated files)."""
from __future__ import annotations

import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from core.logging_config import get_logger
from domain.common.exceptions import (
    ArtifactIOError,
    ArtifactNotFoundError,
    InvalidArtifactNameError,
)
from domain.generation import FileEntry

logger = get_logger(__name__)


class LocalArtifactStore:
    """Reads and writes named blobs in directories beneath a content root."""

    def __init__(self, root: Path | str):
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, directory: str, name: Optional[str] = None) -> Path:
        """Build a safe path, preventing traversal outside the content root.

        Raises:
            InvalidArtifactNameError: if ``name`` is not a single path component
                or the result escapes the root
        """
        base = (self._root / directory).resolve()
        if name is None:
            target = base
        else:
            self._validate_name(name)
            target = base / name
        try:
            target.relative_to(self._root)
        except ValueError:
            raise InvalidArtifactNameError(name if name is not None else directory)
        return target

    async def ensure_directory(self, directory: str) -> Path:
        path = self.resolve(directory)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactIOError("creating directory", str(path), str(e)) from e
        return path

    async def put(self, directory: str, name: str, content: bytes) -> Path:
        file_path = self.resolve(directory, name)
        await self.ensure_directory(directory)
        try:
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            raise ArtifactIOError("saving file", str(file_path), str(e)) from e

        logger.info("artifact_saved", path=str(file_path), size=len(content))
        return file_path

    async def get(self, directory: str, name: str) -> bytes:
        file_path = self.resolve(directory, name)
        if not file_path.is_file():
            raise ArtifactNotFoundError(name, path=str(file_path))
        try:
            async with aiofiles.open(file_path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise ArtifactNotFoundError(name, path=str(file_path)) from e
        except OSError as e:
            raise ArtifactIOError("reading file", str(file_path), str(e)) from e

    async def list(self, directory: str, extension: Optional[str] = None) -> list[FileEntry]:
        """List regular files in ``directory`` in enumeration order.

        A directory that does not exist yet lists as empty.
        """
        path = self.resolve(directory)
        if not path.exists():
            return []

        entries: list[FileEntry] = []
        try:
            with os.scandir(path) as it:
                for entry in it:
                    if not entry.is_file():
                        continue
                    if extension and not entry.name.endswith(extension):
                        continue
                    stat = entry.stat()
                    entries.append(
                        FileEntry(
                            name=entry.name,
                            size=stat.st_size,
                            modified_time=datetime.fromtimestamp(stat.st_mtime),
                        )
                    )
        except OSError as e:
            raise ArtifactIOError("listing directory", str(path), str(e)) from e
        return entries

    async def probe_writable(self, directory: str) -> Optional[str]:
        """Write and remove a scratch file. Returns the error text, or None if writable."""
        probe = self.resolve(directory) / f".probe-{uuid.uuid4().hex}"
        try:
            async with aiofiles.open(probe, "wb") as f:
                await f.write(b"test")
            await aiofiles.os.remove(probe)
        except OSError as e:
            return str(e)
        return None

    @staticmethod
    def _validate_name(name: str) -> None:
        if (
            not name
            or name in (".", "..")
            or "/" in name
            or "\\" in name
            or "\x00" in name
        ):
            raise InvalidArtifactNameError(name)
