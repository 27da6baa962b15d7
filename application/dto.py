"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_serializer

from core.response import utc_isoformat
from domain.generation import FileEntry


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                return utc_isoformat(value)
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


# ---------------------------------------------------------------------------
# Schemas & generation
# ---------------------------------------------------------------------------


class SchemaSubmitDTO(DTOBase):
    """提交 schema 文件"""
    filename: str = Field(..., min_length=1, max_length=255, description="文件名，例如 example.proto")
    content: str = Field(..., description="schema 文本内容")


class FileEntryDTO(DTOBase):
    name: str
    size: int
    modified: datetime

    @classmethod
    def from_entry(cls, entry: FileEntry) -> "FileEntryDTO":
        return cls(name=entry.name, size=entry.size, modified=entry.modified_time)


class SubmitResultDTO(DTOBase):
    path: str
    size: int
    files: list[FileEntryDTO] = Field(default_factory=list)


class FileContentDTO(DTOBase):
    name: str
    content: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreateDTO(DTOBase):
    """用户创建DTO"""
    username: str = Field(..., min_length=3, max_length=20,
                          description="用户名，3-20个字符")
    email: EmailStr = Field(..., description="邮箱地址")
    password: str = Field(..., min_length=8, description="密码，至少8位")

    @field_validator('username')
    def validate_username(cls, v):
        if not re.match(r'^[a-zA-Z0-9_]+$', v):
            raise ValueError('用户名只能包含字母、数字和下划线')
        return v


class LoginDTO(DTOBase):
    """登录DTO"""
    username: str = Field(..., description="用户名")
    password: str = Field(..., description="密码")


class UserResponseDTO(DTOBase):
    """用户响应DTO"""
    id: str
    username: str
    email: str


class SessionDTO(DTOBase):
    """会话DTO"""
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponseDTO


class MessageDTO(DTOBase):
    """消息响应DTO"""
    message: str
    detail: Optional[str] = None
