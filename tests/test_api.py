import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_account_service, get_generation_service
from application.services.account_service import AccountService
from main import app

from conftest import EXAMPLE_PROTO, OK, MemoryKeyValueStore, ScriptedRunner, failed, write_generated


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_runner(build_service):
    def _use(runner):
        service = build_service(runner)
        app.dependency_overrides[get_generation_service] = lambda: service
        return service

    return _use


@pytest.fixture
def accounts():
    service = AccountService(MemoryKeyValueStore(), MemoryKeyValueStore())
    app.dependency_overrides[get_account_service] = lambda: service
    return service


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == 0
    assert body["data"] == {"status": "healthy"}
    assert resp.headers["X-Request-ID"]


def test_submit_list_and_read_schema(client, use_runner):
    use_runner(ScriptedRunner([OK]))
    resp = client.post("/api/v1/schemas", json={"filename": "example.proto", "content": EXAMPLE_PROTO})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["path"].endswith("pb/example.proto")
    assert data["size"] == len(EXAMPLE_PROTO.encode("utf-8"))

    listed = client.get("/api/v1/schemas").json()["data"]
    assert [f["name"] for f in listed] == ["example.proto"]

    read = client.get("/api/v1/schemas/example.proto").json()["data"]
    assert read == {"name": "example.proto", "content": EXAMPLE_PROTO}


def test_invalid_filename_is_a_validation_error(client, use_runner):
    use_runner(ScriptedRunner([OK]))
    resp = client.post("/api/v1/schemas", json={"filename": "..", "content": "x"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["type"] == "DomainValidationError"
    assert body["error"]["field"] == "filename"


def test_missing_schema_is_404(client, use_runner):
    use_runner(ScriptedRunner([OK]))
    resp = client.get("/api/v1/schemas/absent.proto")
    assert resp.status_code == 404
    assert resp.json()["error"]["type"] == "NotFound"


def test_generation_success_flow(client, use_runner, install_tools):
    install_tools(plugins=("go", "go-grpc"))
    use_runner(ScriptedRunner([failed(), OK], on_success=write_generated))

    resp = client.post("/api/v1/generation", json={"filename": "example.proto", "content": EXAMPLE_PROTO})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["succeeded"] is True
    assert len(data["outcomes"]) == 2
    assert data["gateway"]["status"] == "skipped"
    assert "GRPC code generated successfully!" in data["text"]

    files = client.get("/api/v1/generation/files").json()["data"]
    assert [f["name"] for f in files] == ["example.pb.go"]

    read = client.get("/api/v1/generation/files/example.pb.go").json()["data"]
    assert "package pb" in read["content"]

    download = client.get("/api/v1/generation/files/example.pb.go/download")
    assert download.status_code == 200
    assert download.headers["content-disposition"] == 'attachment; filename="example.pb.go"'
    assert download.content == b"// generated\npackage pb\n"


def test_generation_failure_is_still_200(client, use_runner, install_tools):
    install_tools(compiler=False)
    use_runner(ScriptedRunner([OK]))

    resp = client.post("/api/v1/generation", json={"filename": "example.proto", "content": EXAMPLE_PROTO})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Code generation failed"
    assert body["data"]["succeeded"] is False
    assert body["data"]["error"]["type"] == "ToolNotFound"
    assert "protoc" in body["data"]["text"]


def test_download_missing_generated_file_is_404(client, use_runner):
    use_runner(ScriptedRunner([OK]))
    assert client.get("/api/v1/generation/files/none.go/download").status_code == 404


def test_user_register_login_me_logout(client, accounts):
    resp = client.post(
        "/api/v1/users/register",
        json={"username": "alice", "email": "alice@example.com", "password": "password123"},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["username"] == "alice"

    login = client.post("/api/v1/users/login", json={"username": "alice", "password": "password123"})
    token = login.json()["data"]["token"]
    headers = {"Authorization": f"Bearer {token}"}

    me = client.get("/api/v1/users/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "alice@example.com"

    assert client.post("/api/v1/users/logout", headers=headers).status_code == 200
    after = client.get("/api/v1/users/me", headers=headers)
    assert after.status_code == 401
    assert after.headers["WWW-Authenticate"] == "Bearer"


def test_duplicate_registration_is_conflict(client, accounts):
    payload = {"username": "alice", "email": "alice@example.com", "password": "password123"}
    client.post("/api/v1/users/register", json=payload)
    resp = client.post("/api/v1/users/register", json=payload)
    assert resp.status_code == 409
    assert resp.json()["message"] == "Username already exists"


def test_wrong_password_is_401(client, accounts):
    client.post(
        "/api/v1/users/register",
        json={"username": "alice", "email": "alice@example.com", "password": "password123"},
    )
    resp = client.post("/api/v1/users/login", json={"username": "alice", "password": "nope-nope"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid username or password"


def test_me_without_token_is_401(client, accounts):
    resp = client.get("/api/v1/users/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["type"] == "Unauthorized"
