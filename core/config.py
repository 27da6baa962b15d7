"""
配置文件 - 项目配置管理
"""
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GrpcTlsSettings(BaseModel):
    enabled: bool = False
    cert: Optional[str] = None
    key: Optional[str] = None
    ca: Optional[str] = None


class GrpcSettings(BaseModel):
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 50051
    # This maps to GRPC option grpc.max_concurrent_streams
    max_concurrent_streams: int = 100
    # Only methods whose `publish` option is true are announced at registration
    publish_only: bool = True
    internal_service_header: str = "x-internal-service"
    # In-flight generations get this long to finish on shutdown
    shutdown_grace_seconds: Optional[float] = 30.0
    tls: GrpcTlsSettings = Field(default_factory=GrpcTlsSettings)


class GenerationSettings(BaseModel):
    # Content root; schema and output directories live beneath it
    root_dir: str = "."
    schema_dir: str = "pb"
    output_dir: str = "grpc_output"
    schema_extension: str = ".proto"
    # Suffix of the language plugin output; `pb/x.proto` must yield `x<suffix>`
    output_suffix: str = ".pb.go"

    # Compiler lookup: <root_dir>/<local_bin_dir>/<compiler> first, then PATH
    compiler: str = "protoc"
    local_bin_dir: str = "bin"

    # Plugins live in a fixed, environment-relative directory (expanded per request)
    plugin_dir: str = "$HOME/go/bin"
    language_plugin: str = "go"
    rpc_plugin: str = "go-grpc"
    gateway_plugin: str = "grpc-gateway"
    gateway_config: str = "gateway.yaml"

    # Extra --proto_path entries; relative entries resolve against root_dir
    local_include_dir: str = "include"
    include_dirs: list[str] = Field(default_factory=list)

    # Per-invocation limit for a single compiler run
    timeout_seconds: float = 30.0

    @field_validator("include_dirs", mode="before")
    @classmethod
    def _parse_include_dirs(cls, v):
        """允许 os.pathsep 分隔的字符串（与 PROTOC_INCLUDE 相同格式）。"""
        if isinstance(v, str):
            import os
            return [item.strip() for item in v.split(os.pathsep) if item.strip()]
        return v

    @property
    def root_path(self) -> Path:
        return Path(self.root_dir).expanduser().resolve()


class AuthSettings(BaseModel):
    data_dir: str = "data"
    users_file: str = "users.json"
    sessions_file: str = "sessions.json"
    session_ttl_hours: int = 24


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="protoc-forge")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)

    # gRPC settings
    grpc: GrpcSettings = Field(default_factory=GrpcSettings)

    # CORS配置
    CORS_ORIGINS: list = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
    )

    # 日志配置；LOG_LEVEL 为空时按 DEBUG 取 DEBUG/INFO
    LOG_LEVEL: Optional[str] = Field(default=None)
    LOG_FIELD_MAX_CHARS: int = Field(default=4000)
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
