"""Per-method ``publish`` flags for gRPC services.

The flags come from a custom ``publish`` method option in the schema
(``extend google.protobuf.MethodOptions { bool publish = ...; }``). They are
read once when the server starts and kept as a plain mapping, so the
interceptor never walks descriptors on the request path. Methods without
the option, and methods the policy has never seen, count as published.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from core.logging_config import get_logger

logger = get_logger(__name__)

PUBLISH_OPTION = "publish"


def method_name_from_full(full_method: str) -> str:
    """``/pkg.Service/Method`` -> ``Method``"""
    return full_method.rsplit("/", 1)[-1]


def _publish_flag(method_descriptor: Any, option_name: str) -> bool:
    options = method_descriptor.GetOptions()
    if options is None:
        return True
    for field_descriptor, value in options.ListFields():
        if field_descriptor.name == option_name:
            return bool(value)
    return True


@dataclass(frozen=True)
class PublishPolicy:
    service: str
    methods: Mapping[str, bool] = field(default_factory=dict)

    @classmethod
    def from_methods(cls, service: str, methods: Mapping[str, bool]) -> "PublishPolicy":
        return cls(service=service, methods=dict(methods))

    @classmethod
    def from_file_descriptor(
        cls,
        file_descriptor: Any,
        service_name: str,
        option_name: str = PUBLISH_OPTION,
    ) -> "PublishPolicy":
        """Build the policy from a compiled file descriptor (``*_pb2.DESCRIPTOR``).

        ``service_name`` is the short name inside the file. A missing
        descriptor or service yields an empty policy, which publishes everything.
        """
        if file_descriptor is None:
            logger.warning("publish_policy_no_descriptor", service=service_name)
            return cls(service=service_name)

        service = file_descriptor.services_by_name.get(service_name)
        if service is None:
            logger.warning("publish_policy_service_not_found", service=service_name)
            return cls(service=service_name)

        methods = {m.name: _publish_flag(m, option_name) for m in service.methods}
        return cls(service=service.full_name, methods=methods)

    def is_published(self, method: str) -> bool:
        """Accepts either the short method name or the full ``/service/method`` path."""
        return self.methods.get(method_name_from_full(method), True)

    def unpublished(self) -> list[str]:
        return sorted(name for name, flag in self.methods.items() if not flag)


def merge_policies(policies: Iterable[PublishPolicy]) -> dict[str, PublishPolicy]:
    """Index policies by service full name for lookup from ``/service/method`` paths."""
    return {p.service: p for p in policies}
