"""Flat-file keyed JSON store.

Every write replaces the whole file (temp file + ``os.replace``); there are no
transactions. Suitable for the small user/session tables this service keeps.
"""
from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Optional

import aiofiles

from core.logging_config import get_logger
from domain.common.exceptions import ArtifactIOError

logger = get_logger(__name__)


class JsonFileStore:
    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._data: Optional[dict[str, dict[str, Any]]] = None
        self._lock = asyncio.Lock()

    async def _load(self) -> dict[str, dict[str, Any]]:
        if self._data is not None:
            return self._data

        data: dict[str, dict[str, Any]] = {}
        if self.path.exists():
            try:
                async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                    raw = await f.read()
                parsed = json.loads(raw) if raw.strip() else {}
                if isinstance(parsed, dict):
                    data = parsed
                else:
                    logger.warning("json_store_unexpected_shape", path=str(self.path))
            except (OSError, ValueError) as e:
                logger.warning("json_store_load_failed", path=str(self.path), error=str(e))
        self._data = data
        return data

    async def _flush(self, data: dict[str, dict[str, Any]]) -> None:
        tmp = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, ensure_ascii=False, indent=2))
            os.replace(tmp, self.path)
        except OSError as e:
            raise ArtifactIOError("writing data file", str(self.path), str(e)) from e

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            data = await self._load()
            value = data.get(key)
            return dict(value) if value is not None else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        async with self._lock:
            data = await self._load()
            data[key] = dict(value)
            await self._flush(data)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            data = await self._load()
            if key not in data:
                return False
            del data[key]
            await self._flush(data)
            return True

    async def items(self) -> list[tuple[str, dict[str, Any]]]:
        async with self._lock:
            data = await self._load()
            return [(k, dict(v)) for k, v in data.items()]
