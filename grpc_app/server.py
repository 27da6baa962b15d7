from __future__ import annotations

from typing import Callable, Iterable, Optional, Sequence

import grpc
from grpc_health.v1 import health, health_pb2, health_pb2_grpc

from api.dependencies import build_generation_service
from application.services.generation_service import GenerationService
from core.config import settings
from core.logging_config import get_logger
from grpc_app.interceptors.exceptions import ExceptionMappingInterceptor
from grpc_app.interceptors.logging import LoggingInterceptor
from grpc_app.interceptors.publish import PublishInterceptor
from grpc_app.interceptors.request_id import RequestIdInterceptor
from grpc_app.publish_policy import PublishPolicy
from grpc_app.services import generation_service as generation_grpc


logger = get_logger(__name__)

# (server) -> None; registers one servicer
Registrar = Callable[[grpc.aio.Server], None]


def register_with_policy(
    server: grpc.aio.Server,
    add_to_server: Callable[[object, grpc.aio.Server], None],
    servicer: object,
    policy: PublishPolicy,
    *,
    publish_only: bool,
) -> None:
    """Register ``servicer``; with ``publish_only`` each method's publish decision is logged first."""
    if publish_only:
        logger.info("grpc_register_publish_only", service=policy.service)
        for method, flag in sorted(policy.methods.items()):
            logger.info(
                "grpc_method_publish",
                method=f"/{policy.service}/{method}",
                publish=flag,
                allowed=flag,
            )
    add_to_server(servicer, server)
    logger.info("grpc_service_registered", service=policy.service, unpublished=policy.unpublished())


def generation_policy() -> PublishPolicy:
    return PublishPolicy.from_methods(generation_grpc.SERVICE_NAME, generation_grpc.PUBLISH_FLAGS)


def build_server(
    *,
    service_factory: Optional[Callable[[], GenerationService]] = None,
    policies: Iterable[PublishPolicy] = (),
    registrars: Iterable[Registrar] = (),
    internal_header: Optional[str] = None,
    publish_only: Optional[bool] = None,
) -> grpc.aio.Server:
    """Create an unbound server with interceptors, the generation service and health checks.

    ``policies``/``registrars`` add further services, e.g. ones compiled from
    generated stubs with ``PublishPolicy.from_file_descriptor``.
    """
    gen_policy = generation_policy()
    all_policies = [gen_policy, *policies]
    header = internal_header or settings.grpc.internal_service_header

    interceptors: Sequence[grpc.aio.ServerInterceptor] = (
        RequestIdInterceptor(),
        LoggingInterceptor(internal_header=header),
        ExceptionMappingInterceptor(),
        PublishInterceptor(all_policies, header=header),
    )
    options = [
        ("grpc.max_concurrent_streams", max(1, settings.grpc.max_concurrent_streams)),
    ]
    server = grpc.aio.server(interceptors=interceptors, options=options)

    register_with_policy(
        server,
        generation_grpc.add_GenerationServicer_to_server,
        generation_grpc.GenerationServicer(service_factory or build_generation_service),
        gen_policy,
        publish_only=settings.grpc.publish_only if publish_only is None else publish_only,
    )
    for registrar in registrars:
        registrar(server)

    health_svc = health.HealthServicer()
    health_pb2_grpc.add_HealthServicer_to_server(health_svc, server)
    health_svc.set("", health_pb2.HealthCheckResponse.SERVING)
    for policy in all_policies:
        health_svc.set(policy.service, health_pb2.HealthCheckResponse.SERVING)
    return server


async def create_server() -> grpc.aio.Server:
    server = build_server()
    address = f"{settings.grpc.host}:{settings.grpc.port}"

    if settings.grpc.tls.enabled:
        if not (settings.grpc.tls.cert and settings.grpc.tls.key):
            raise RuntimeError("GRPC TLS enabled but cert/key not provided")
        with open(settings.grpc.tls.cert, "rb") as f:
            cert_chain = f.read()
        with open(settings.grpc.tls.key, "rb") as f:
            private_key = f.read()
        root_certificates = None
        if settings.grpc.tls.ca:
            with open(settings.grpc.tls.ca, "rb") as f:
                root_certificates = f.read()
        creds = grpc.ssl_server_credentials(
            [(private_key, cert_chain)],
            root_certificates=root_certificates,
            require_client_auth=bool(root_certificates),
        )
        server.add_secure_port(address, creds)
    else:
        server.add_insecure_port(address)

    return server
