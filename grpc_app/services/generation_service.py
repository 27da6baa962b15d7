"""gRPC adapter for schema submission and generation.

Messages are JSON documents (UTF-8 bytes), so the service needs no compiled
stubs of its own. Any gRPC client can call it by sending raw bytes.
"""
from __future__ import annotations

import json
from typing import Any, Callable

import grpc
from pydantic import ValidationError

from application.dto import FileEntryDTO, SchemaSubmitDTO
from application.services.generation_service import GenerationService
from domain.common.exceptions import DomainValidationException


SERVICE_NAME = "protocforge.v1.GenerationService"

# Mutating methods are not exposed to internal service callers
PUBLISH_FLAGS = {
    "SubmitSchema": False,
    "Generate": False,
    "ListSchemas": True,
    "ReadSchema": True,
    "ListGeneratedFiles": True,
    "ReadGeneratedFile": True,
}


def decode_json(data: bytes) -> dict[str, Any]:
    if not data:
        return {}
    try:
        payload = json.loads(data.decode("utf-8"))
    except ValueError as exc:
        raise DomainValidationException(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise DomainValidationException("Request body must be a JSON object")
    return payload


def encode_json(payload: Any) -> bytes:
    return json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")


def _entries(entries) -> list[dict[str, Any]]:
    return [FileEntryDTO.from_entry(e).model_dump(mode="json") for e in entries]


def _required_filename(request: dict[str, Any]) -> str:
    filename = request.get("filename")
    if not isinstance(filename, str) or not filename:
        raise DomainValidationException("filename is required", field="filename")
    return filename


class GenerationServicer:
    def __init__(self, service_factory: Callable[[], GenerationService]) -> None:
        self._service_factory = service_factory

    def _submission(self, request: dict[str, Any]) -> SchemaSubmitDTO:
        try:
            return SchemaSubmitDTO.model_validate(request)
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {}
            field = ".".join(str(p) for p in first.get("loc", ())) or None
            raise DomainValidationException(
                f"Validation failed: {first.get('msg', 'unknown')}", field=field
            ) from exc

    async def SubmitSchema(self, request: dict[str, Any], context: grpc.aio.ServicerContext) -> dict[str, Any]:
        dto = self._submission(request)
        result = await self._service_factory().submit(dto.filename, dto.content)
        return {
            "path": str(result.path),
            "size": result.size,
            "files": _entries(result.files),
            "listing_error": result.listing_error,
        }

    async def Generate(self, request: dict[str, Any], context: grpc.aio.ServicerContext) -> dict[str, Any]:
        dto = self._submission(request)
        report = await self._service_factory().generate(dto.filename, dto.content)
        data = report.to_dict()
        data["text"] = report.to_text()
        return data

    async def ListSchemas(self, request: dict[str, Any], context: grpc.aio.ServicerContext) -> dict[str, Any]:
        return {"files": _entries(await self._service_factory().list_schemas())}

    async def ReadSchema(self, request: dict[str, Any], context: grpc.aio.ServicerContext) -> dict[str, Any]:
        filename = _required_filename(request)
        return {"name": filename, "content": await self._service_factory().read_schema(filename)}

    async def ListGeneratedFiles(self, request: dict[str, Any], context: grpc.aio.ServicerContext) -> dict[str, Any]:
        return {"files": _entries(await self._service_factory().list_generated())}

    async def ReadGeneratedFile(self, request: dict[str, Any], context: grpc.aio.ServicerContext) -> dict[str, Any]:
        filename = _required_filename(request)
        return {"name": filename, "content": await self._service_factory().read_generated(filename)}


def _json_method(method):
    # Decoding happens inside the handler so that bad payloads reach the exception interceptor
    async def _call(request: bytes, context: grpc.aio.ServicerContext):
        return await method(decode_json(request), context)

    return _call


def add_GenerationServicer_to_server(servicer: GenerationServicer, server: grpc.aio.Server) -> None:
    handlers = {
        name: grpc.unary_unary_rpc_method_handler(
            _json_method(getattr(servicer, name)),
            response_serializer=encode_json,
        )
        for name in PUBLISH_FLAGS
    }
    server.add_generic_rpc_handlers((grpc.method_handlers_generic_handler(SERVICE_NAME, handlers),))
