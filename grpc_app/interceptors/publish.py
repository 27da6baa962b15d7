from __future__ import annotations

from typing import Awaitable, Callable, Iterable

import grpc

from core.logging_config import get_logger
from grpc_app.interceptors.request_id import get_request_id
from grpc_app.publish_policy import PublishPolicy, merge_policies


logger = get_logger(__name__)


def _service_from_full(full_method: str) -> str:
    # "/pkg.Service/Method" -> "pkg.Service"
    return full_method.lstrip("/").split("/", 1)[0]


class PublishInterceptor(grpc.aio.ServerInterceptor):
    """Reject internal-service calls to methods whose ``publish`` option is false.

    A call is internal when it carries the configured metadata key (any value).
    External callers are never filtered here.
    """

    def __init__(self, policies: Iterable[PublishPolicy], header: str = "x-internal-service") -> None:
        self._policies = merge_policies(policies)
        self._header = header.lower()

    def is_allowed(self, full_method: str, internal: bool) -> bool:
        if not internal:
            return True
        policy = self._policies.get(_service_from_full(full_method))
        return policy is None or policy.is_published(full_method)

    async def intercept_service(
        self,
        continuation: Callable[[grpc.HandlerCallDetails], Awaitable[grpc.RpcMethodHandler]],
        handler_call_details: grpc.HandlerCallDetails,
    ) -> grpc.RpcMethodHandler:
        handler = await continuation(handler_call_details)
        if handler is None:
            return handler

        method = handler_call_details.method
        internal = any(key.lower() == self._header for key, _ in (handler_call_details.invocation_metadata or ()))
        if self.is_allowed(method, internal):
            return handler

        async def _deny(request, context: grpc.aio.ServicerContext):
            logger.warning("grpc_internal_request_denied", method=method, request_id=get_request_id())
            await context.abort(grpc.StatusCode.PERMISSION_DENIED, "该接口不允许内部服务请求")

        if handler.unary_unary:
            return grpc.unary_unary_rpc_method_handler(
                _deny,
                request_deserializer=handler.request_deserializer,
                response_serializer=handler.response_serializer,
            )
        return handler
