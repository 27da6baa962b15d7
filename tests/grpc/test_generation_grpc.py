import json

import grpc
import pytest
from grpc_health.v1 import health_pb2, health_pb2_grpc

from grpc_app.server import build_server
from grpc_app.services.generation_service import SERVICE_NAME

from conftest import EXAMPLE_PROTO, OK, ScriptedRunner, write_generated


pytestmark = pytest.mark.asyncio

INTERNAL = (("x-internal-service", "billing"),)


@pytest.fixture
async def grpc_target(build_service, install_tools):
    """Serve the generation service on an ephemeral port with a scripted compiler."""
    install_tools(plugins=("go", "go-grpc"))
    service = build_service(ScriptedRunner([OK], on_success=write_generated))

    server = build_server(service_factory=lambda: service, publish_only=True)
    port = server.add_insecure_port("127.0.0.1:0")
    await server.start()
    try:
        yield f"127.0.0.1:{port}"
    finally:
        await server.stop(grace=None)


async def _call(target, method, payload, metadata=None):
    async with grpc.aio.insecure_channel(target) as channel:
        rpc = channel.unary_unary(f"/{SERVICE_NAME}/{method}")
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        reply = await rpc(body, metadata=metadata)
        return json.loads(reply)


async def test_external_generate_succeeds(grpc_target):
    data = await _call(grpc_target, "Generate", {"filename": "example.proto", "content": EXAMPLE_PROTO})
    assert data["succeeded"] is True
    assert "GRPC code generated successfully!" in data["text"]

    listed = await _call(grpc_target, "ListGeneratedFiles", {})
    assert [f["name"] for f in listed["files"]] == ["example.pb.go"]


async def test_internal_caller_denied_unpublished_method(grpc_target):
    with pytest.raises(grpc.aio.AioRpcError) as exc_info:
        await _call(
            grpc_target,
            "Generate",
            {"filename": "example.proto", "content": EXAMPLE_PROTO},
            metadata=INTERNAL,
        )
    assert exc_info.value.code() == grpc.StatusCode.PERMISSION_DENIED


async def test_internal_caller_allowed_published_method(grpc_target):
    await _call(grpc_target, "SubmitSchema", {"filename": "example.proto", "content": EXAMPLE_PROTO})
    data = await _call(grpc_target, "ListSchemas", {}, metadata=INTERNAL)
    assert [f["name"] for f in data["files"]] == ["example.proto"]

    read = await _call(grpc_target, "ReadSchema", {"filename": "example.proto"}, metadata=INTERNAL)
    assert read["content"] == EXAMPLE_PROTO


async def test_invalid_json_is_invalid_argument(grpc_target):
    with pytest.raises(grpc.aio.AioRpcError) as exc_info:
        await _call(grpc_target, "ReadSchema", b"{not json")
    assert exc_info.value.code() == grpc.StatusCode.INVALID_ARGUMENT


async def test_missing_schema_maps_to_not_found_with_biz_code(grpc_target):
    with pytest.raises(grpc.aio.AioRpcError) as exc_info:
        await _call(grpc_target, "ReadSchema", {"filename": "absent.proto"})
    err = exc_info.value
    assert err.code() == grpc.StatusCode.NOT_FOUND
    trailers = dict(err.trailing_metadata() or ())
    assert trailers["x-error-type"] == "NotFound"


async def test_request_id_is_echoed(grpc_target):
    async with grpc.aio.insecure_channel(grpc_target) as channel:
        rpc = channel.unary_unary(f"/{SERVICE_NAME}/ListSchemas")
        call = rpc(b"{}", metadata=(("x-request-id", "req-123"),))
        await call
        trailers = dict(await call.trailing_metadata())
    assert trailers["x-request-id"] == "req-123"


async def test_health_reports_serving(grpc_target):
    async with grpc.aio.insecure_channel(grpc_target) as channel:
        stub = health_pb2_grpc.HealthStub(channel)
        reply = await stub.Check(health_pb2.HealthCheckRequest(service=SERVICE_NAME))
    assert reply.status == health_pb2.HealthCheckResponse.SERVING
