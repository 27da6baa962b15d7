"""
API依赖项 - 服务装配与会话认证
"""
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from application.dto import UserResponseDTO
from application.services.account_service import AccountService
from application.services.generation_executor import GenerationExecutor
from application.services.generation_service import GenerationService
from application.services.result_reporter import ResultReporter
from application.utils.locks import KeyedLock
from core.config import settings
from core.exceptions import UnauthorizedException
from domain.generation import InvocationPlanner
from infrastructure.persistence.json_store import JsonFileStore
from infrastructure.storage.local_artifact_store import LocalArtifactStore
from infrastructure.toolchain.resolver import ToolResolver
from infrastructure.toolchain.subprocess_runner import AsyncSubprocessRunner

http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="Session token returned by /users/login",
    auto_error=False,
)

# 进程内按输出目录串行化生成请求
_generation_locks = KeyedLock()


def include_dirs(root: Path) -> list[Path]:
    """Configured ``--proto_path`` extras that exist right now, relative entries against ``root``."""
    gen = settings.generation
    candidates = [gen.local_include_dir, *gen.include_dirs] if gen.local_include_dir else list(gen.include_dirs)
    found: list[Path] = []
    for entry in candidates:
        path = Path(entry).expanduser()
        if not path.is_absolute():
            path = root / path
        if path.is_dir() and path not in found:
            found.append(path)
    return found


def build_tool_resolver() -> ToolResolver:
    gen = settings.generation
    return ToolResolver(
        gen.root_path,
        compiler=gen.compiler,
        local_bin_dir=gen.local_bin_dir,
        plugin_dir=gen.plugin_dir,
        plugins=(gen.language_plugin, gen.rpc_plugin, gen.gateway_plugin),
        gateway_plugin=gen.gateway_plugin,
    )


def build_generation_service(locks: Optional[KeyedLock] = None) -> GenerationService:
    gen = settings.generation
    root = gen.root_path
    store = LocalArtifactStore(root)
    resolver = build_tool_resolver()
    planner = InvocationPlanner(
        working_directory=root,
        language_plugin=gen.language_plugin,
        rpc_plugin=gen.rpc_plugin,
        gateway_plugin=gen.gateway_plugin,
        gateway_config=gen.gateway_config,
        include_dirs=include_dirs(root),
    )
    return GenerationService(
        store=store,
        resolver=resolver,
        planner=planner,
        executor=GenerationExecutor(AsyncSubprocessRunner(), timeout=gen.timeout_seconds),
        reporter=ResultReporter(store, f"{gen.output_dir}/{gen.schema_dir}"),
        schema_dir=gen.schema_dir,
        output_dir=gen.output_dir,
        schema_extension=gen.schema_extension,
        output_suffix=gen.output_suffix,
        locks=locks or _generation_locks,
    )


async def get_generation_service() -> GenerationService:
    # 每个请求重新装配：工具位置与 include 目录可能在两次请求之间变化
    return build_generation_service()


@lru_cache
def _account_stores() -> tuple[JsonFileStore, JsonFileStore]:
    data_dir = Path(settings.auth.data_dir)
    if not data_dir.is_absolute():
        data_dir = settings.generation.root_path / data_dir
    return (
        JsonFileStore(data_dir / settings.auth.users_file),
        JsonFileStore(data_dir / settings.auth.sessions_file),
    )


async def get_account_service() -> AccountService:
    users, sessions = _account_stores()
    return AccountService(users, sessions, session_ttl=timedelta(hours=settings.auth.session_ttl_hours))


async def get_token(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> str:
    """从 Bearer 头中提取会话 token"""
    if bearer_token and bearer_token.credentials:
        return bearer_token.credentials
    raise UnauthorizedException("Missing session token")


async def get_current_user(
    token: str = Depends(get_token),
    service: AccountService = Depends(get_account_service),
) -> UserResponseDTO:
    """获取当前登录用户"""
    return await service.current_user(token)
