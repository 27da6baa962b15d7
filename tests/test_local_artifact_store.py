import os

import pytest

from domain.common.exceptions import (
    ArtifactIOError,
    ArtifactNotFoundError,
    InvalidArtifactNameError,
)
from infrastructure.storage.local_artifact_store import LocalArtifactStore


@pytest.fixture
def store(tmp_path):
    return LocalArtifactStore(tmp_path)


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [b"", b'syntax = "proto3";\n', "中文注释".encode("utf-8"), bytes(range(256))])
async def test_put_then_get_round_trip(store, content):
    path = await store.put("pb", "example.proto", content)
    assert path == store.root / "pb" / "example.proto"
    assert await store.get("pb", "example.proto") == content


@pytest.mark.asyncio
async def test_put_is_idempotent(store):
    await store.put("pb", "a.proto", b"same")
    first = sorted(e.name for e in await store.list("pb"))
    await store.put("pb", "a.proto", b"same")

    assert sorted(e.name for e in await store.list("pb")) == first == ["a.proto"]
    assert await store.get("pb", "a.proto") == b"same"


@pytest.mark.asyncio
async def test_resubmission_overwrites(store):
    await store.put("pb", "a.proto", b"old content that is longer")
    await store.put("pb", "a.proto", b"new")
    assert await store.get("pb", "a.proto") == b"new"


@pytest.mark.asyncio
async def test_get_missing_raises_not_found(store):
    with pytest.raises(ArtifactNotFoundError) as exc_info:
        await store.get("pb", "missing.proto")
    assert exc_info.value.details["name"] == "missing.proto"


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", ".", "..", "../etc/passwd", "sub/dir.proto", "a\\b.proto"])
async def test_invalid_names_rejected(store, name):
    with pytest.raises(InvalidArtifactNameError):
        await store.put("pb", name, b"x")


def test_directory_outside_root_rejected(store):
    with pytest.raises(InvalidArtifactNameError):
        store.resolve("../elsewhere")


@pytest.mark.asyncio
async def test_list_filters_extension_and_skips_directories(store):
    await store.put("pb", "a.proto", b"aa")
    await store.put("pb", "notes.txt", b"n")
    (store.root / "pb" / "nested").mkdir()

    names = sorted(e.name for e in await store.list("pb", ".proto"))
    assert names == ["a.proto"]

    everything = {e.name: e for e in await store.list("pb")}
    assert set(everything) == {"a.proto", "notes.txt"}
    assert everything["a.proto"].size == 2


@pytest.mark.asyncio
async def test_list_missing_directory_is_empty(store):
    assert await store.list("nothing-here") == []


@pytest.mark.asyncio
async def test_probe_writable_leaves_nothing_behind(store):
    await store.ensure_directory("grpc_output")
    assert await store.probe_writable("grpc_output") is None
    assert os.listdir(store.root / "grpc_output") == []


@pytest.mark.asyncio
async def test_probe_reports_error_for_missing_directory(store):
    assert await store.probe_writable("does-not-exist") is not None


@pytest.mark.asyncio
async def test_directory_creation_failure_carries_path(store):
    (store.root / "blocked").write_text("a file, not a directory")
    with pytest.raises(ArtifactIOError) as exc_info:
        await store.put("blocked", "a.proto", b"x")
    assert exc_info.value.path == str(store.root / "blocked")
