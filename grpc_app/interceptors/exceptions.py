from __future__ import annotations

from typing import Awaitable, Callable

import grpc

from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from grpc_app.interceptors.request_id import get_request_id
from shared.codes import BusinessCode


logger = get_logger(__name__)


_BUSINESS_TO_GRPC = {
    BusinessCode.PARAM_VALIDATION_ERROR: grpc.StatusCode.INVALID_ARGUMENT,
    BusinessCode.PARAM_ERROR: grpc.StatusCode.INVALID_ARGUMENT,
    BusinessCode.PARAM_MISSING: grpc.StatusCode.INVALID_ARGUMENT,
    BusinessCode.PARAM_TYPE_ERROR: grpc.StatusCode.INVALID_ARGUMENT,

    BusinessCode.USER_NOT_FOUND: grpc.StatusCode.NOT_FOUND,
    BusinessCode.NOT_FOUND: grpc.StatusCode.NOT_FOUND,
    BusinessCode.USER_ALREADY_EXISTS: grpc.StatusCode.ALREADY_EXISTS,
    BusinessCode.PASSWORD_ERROR: grpc.StatusCode.UNAUTHENTICATED,
    BusinessCode.TOKEN_INVALID: grpc.StatusCode.UNAUTHENTICATED,
    BusinessCode.TOKEN_EXPIRED: grpc.StatusCode.UNAUTHENTICATED,

    BusinessCode.TOOL_NOT_FOUND: grpc.StatusCode.FAILED_PRECONDITION,
    BusinessCode.GENERATION_FAILED: grpc.StatusCode.ABORTED,

    BusinessCode.UNAUTHORIZED: grpc.StatusCode.UNAUTHENTICATED,
    BusinessCode.FORBIDDEN: grpc.StatusCode.PERMISSION_DENIED,
    BusinessCode.PERMISSION_ERROR: grpc.StatusCode.PERMISSION_DENIED,

    BusinessCode.SERVICE_UNAVAILABLE: grpc.StatusCode.UNAVAILABLE,
    BusinessCode.SYSTEM_ERROR: grpc.StatusCode.INTERNAL,
    BusinessCode.STORAGE_ERROR: grpc.StatusCode.INTERNAL,
    BusinessCode.NETWORK_ERROR: grpc.StatusCode.UNAVAILABLE,
}


def business_code_to_grpc_status(code: int) -> grpc.StatusCode:
    try:
        return _BUSINESS_TO_GRPC.get(BusinessCode(code), grpc.StatusCode.FAILED_PRECONDITION)
    except ValueError:
        return grpc.StatusCode.FAILED_PRECONDITION


class ExceptionMappingInterceptor(grpc.aio.ServerInterceptor):
    """Map ``BusinessException`` to gRPC status codes; ``x-biz-code`` travels in trailing metadata."""

    async def intercept_service(
        self,
        continuation: Callable[[grpc.HandlerCallDetails], Awaitable[grpc.RpcMethodHandler]],
        handler_call_details: grpc.HandlerCallDetails,
    ) -> grpc.RpcMethodHandler:
        handler = await continuation(handler_call_details)
        if handler is None:
            return handler

        method = handler_call_details.method

        async def _unary_unary(request, context: grpc.aio.ServicerContext):
            try:
                return await handler.unary_unary(request, context)
            except grpc.aio.AbortError:
                raise
            except BusinessException as exc:
                status = business_code_to_grpc_status(exc.code)
                context.set_trailing_metadata((
                    ("x-biz-code", str(int(exc.code))),
                    ("x-error-type", exc.error_type or "BusinessError"),
                ))
                logger.error(
                    "grpc_mapped_error",
                    method=method,
                    code=str(exc.code),
                    status=str(status),
                    message=exc.message,
                    request_id=get_request_id(),
                )
                await context.abort(status, exc.message)
            except Exception as exc:
                context.set_trailing_metadata((
                    ("x-biz-code", str(BusinessCode.SYSTEM_ERROR.value)),
                    ("x-error-type", "SystemError"),
                ))
                logger.error(
                    "grpc_unhandled_error",
                    method=method,
                    error=str(exc),
                    exc_info=True,
                    request_id=get_request_id(),
                )
                await context.abort(grpc.StatusCode.INTERNAL, "系统内部错误")

        if handler.unary_unary:
            return grpc.unary_unary_rpc_method_handler(
                _unary_unary,
                request_deserializer=handler.request_deserializer,
                response_serializer=handler.response_serializer,
            )
        return handler
