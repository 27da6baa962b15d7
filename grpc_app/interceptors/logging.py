from __future__ import annotations

import time
from typing import Awaitable, Callable

import grpc

from core.logging_config import get_logger
from grpc_app.interceptors.request_id import get_request_id


logger = get_logger(__name__)


class LoggingInterceptor(grpc.aio.ServerInterceptor):
    """Log each unary call with its payload size and whether it came from an internal service."""

    def __init__(self, internal_header: str = "x-internal-service") -> None:
        self._internal_header = internal_header.lower()

    async def intercept_service(
        self,
        continuation: Callable[[grpc.HandlerCallDetails], Awaitable[grpc.RpcMethodHandler]],
        handler_call_details: grpc.HandlerCallDetails,
    ) -> grpc.RpcMethodHandler:
        handler = await continuation(handler_call_details)
        if handler is None or not handler.unary_unary:
            return handler

        method = handler_call_details.method
        internal = any(
            key.lower() == self._internal_header for key, _ in (handler_call_details.invocation_metadata or ())
        )

        async def _unary_unary(request, context: grpc.aio.ServicerContext):
            start = time.perf_counter()
            logger.info(
                "grpc_request",
                method=method,
                peer=context.peer(),
                internal=internal,
                request_bytes=len(request) if isinstance(request, (bytes, bytearray)) else None,
                request_id=get_request_id(),
            )
            outcome = "ok"
            try:
                return await handler.unary_unary(request, context)
            except (grpc.RpcError, grpc.aio.AbortError):
                # 状态码已由异常映射/发布拦截器设置
                outcome = "aborted"
                raise
            except Exception:
                outcome = "error"
                raise
            finally:
                logger.info(
                    "grpc_request_done",
                    method=method,
                    outcome=outcome,
                    elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
                    request_id=get_request_id(),
                )

        return grpc.unary_unary_rpc_method_handler(
            _unary_unary,
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )
