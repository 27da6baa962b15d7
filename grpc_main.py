"""
gRPC 服务入口：python grpc_main.py（需 GRPC__ENABLED=true）
"""
import asyncio

from api.dependencies import build_tool_resolver
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import ToolNotFoundError
from grpc_app.server import create_server


logger = get_logger(__name__)


def probe_toolchain() -> bool:
    """启动时探测一次 protoc 与插件，仅用于提示"""
    try:
        tools = build_tool_resolver().resolve()
    except ToolNotFoundError as exc:
        logger.warning("toolchain_incomplete", tool=exc.tool, guidance=exc.guidance)
        return False
    logger.info(
        "toolchain_ready",
        compiler=str(tools.compiler_path),
        gateway_available=tools.gateway_available,
    )
    return True


async def main() -> None:
    if not settings.grpc.enabled:
        logger.warning("grpc_disabled", message="gRPC disabled by config (GRPC__ENABLED=false)")
        return

    probe_toolchain()
    server = await create_server()
    address = f"{settings.grpc.host}:{settings.grpc.port}"
    await server.start()
    logger.info(
        "grpc_started",
        address=address,
        publish_only=settings.grpc.publish_only,
        tls=settings.grpc.tls.enabled,
    )
    try:
        await server.wait_for_termination()
    finally:
        logger.info("grpc_stopping", grace_seconds=settings.grpc.shutdown_grace_seconds)
        await server.stop(grace=settings.grpc.shutdown_grace_seconds)


if __name__ == "__main__":
    asyncio.run(main())
