"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import build_tool_resolver
from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import generation, schemas, user
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from domain.common.exceptions import ToolNotFoundError


configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    gen = settings.generation
    logger.info(
        "application_startup",
        root_dir=str(gen.root_path),
        schema_dir=gen.schema_dir,
        output_dir=gen.output_dir,
        timeout_seconds=gen.timeout_seconds,
    )
    # 启动时只做一次工具探测用于提示；每个生成请求仍会重新解析
    try:
        build_tool_resolver().resolve()
    except ToolNotFoundError as exc:
        logger.warning("toolchain_incomplete", tool=exc.tool, guidance=exc.guidance)

    yield
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Protocol buffer schema management and gRPC stub generation",
)

# 添加中间件（注意顺序：从下往上执行）
app.add_middleware(RequestIDMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(schemas.router, prefix="/api/v1")
app.include_router(generation.router, prefix="/api/v1")
app.include_router(user.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
