"""
用户领域实体 - 用户与会话
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class User:
    """用户实体"""

    id: str
    username: str
    email: str
    hashed_password: str
    created_at: datetime
    updated_at: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "password": self.hashed_password,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "User":
        return cls(
            id=record["id"],
            username=record["username"],
            email=record["email"],
            hashed_password=record["password"],
            created_at=_parse_dt(record["created_at"]),
            updated_at=_parse_dt(record["updated_at"]),
        )


@dataclass
class Session:
    """登录会话 - token 即主键"""

    user_id: str
    token: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now > self.expires_at

    def to_record(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "token": self.token,
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Session":
        return cls(
            user_id=record["user_id"],
            token=record["token"],
            expires_at=_parse_dt(record["expires_at"]),
        )
