"""Keyed persistence capability used for users and sessions."""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[dict[str, Any]]: ...

    async def put(self, key: str, value: dict[str, Any]) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def items(self) -> list[tuple[str, dict[str, Any]]]: ...
