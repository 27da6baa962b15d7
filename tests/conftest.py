"""Pytest bootstrap configuration.

Application settings are read once at import time, so the content root and
tool locations are pointed at a scratch directory before anything imports
``core.config``.
"""
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

_SCRATCH = tempfile.mkdtemp(prefix="protoc-forge-tests-")
os.environ.setdefault("GENERATION__ROOT_DIR", _SCRATCH)
os.environ.setdefault("GENERATION__PLUGIN_DIR", str(Path(_SCRATCH) / "no-plugins"))
os.environ.setdefault("AUTH__DATA_DIR", str(Path(_SCRATCH) / "data"))
os.environ.setdefault("DEBUG", "false")

import pytest  # noqa: E402

from application.ports.command_runner import CommandResult  # noqa: E402
from application.services.generation_executor import GenerationExecutor  # noqa: E402
from application.services.generation_service import GenerationService  # noqa: E402
from application.services.result_reporter import ResultReporter  # noqa: E402
from application.utils.locks import KeyedLock  # noqa: E402
from domain.generation import InvocationPlanner  # noqa: E402
from infrastructure.storage.local_artifact_store import LocalArtifactStore  # noqa: E402
from infrastructure.toolchain.resolver import ToolResolver  # noqa: E402


EXAMPLE_PROTO = """syntax = "proto3";

package example;

option go_package = "pb-tool/grpc_output/pb";

service ExampleService {
  rpc GetExample(GetExampleRequest) returns (Example);
}

message GetExampleRequest {
  string id = 1;
}

message Example {
  string id = 1;
  string name = 2;
  int32 value = 3;
}
"""

OK = CommandResult(return_code=0, output="")


def failed(output: str = "protoc-gen-go: unable to determine Go import path") -> CommandResult:
    return CommandResult(return_code=1, output=output, error="exit status 1")


def make_executable(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return path


class ScriptedRunner:
    """CommandRunner fake answering calls in order; the last result repeats.

    ``on_success(command, cwd)`` runs for every successful call so tests can
    drop the files a real compiler would have written.
    """

    def __init__(self, results, on_success: Optional[Callable[[list[str], Path], None]] = None):
        self.results = list(results)
        self.on_success = on_success
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str]] = []

    async def run(self, command, *, cwd, env, timeout):
        self.calls.append(list(command))
        self.envs.append(dict(env))
        index = min(len(self.calls), len(self.results)) - 1
        result = self.results[index]
        if result.ok and self.on_success is not None:
            self.on_success(list(command), Path(cwd))
        return result


class MemoryKeyValueStore:
    def __init__(self):
        self.data: dict[str, dict[str, Any]] = {}

    async def get(self, key):
        value = self.data.get(key)
        return dict(value) if value is not None else None

    async def put(self, key, value):
        self.data[key] = dict(value)

    async def delete(self, key):
        return self.data.pop(key, None) is not None

    async def items(self):
        return [(k, dict(v)) for k, v in self.data.items()]


def write_generated(command: list[str], cwd: Path) -> None:
    """Mimic source-relative output: ``pb/x.proto`` -> ``grpc_output/pb/x.pb.go``."""
    out_dir = None
    for arg in command:
        if arg.startswith("--go_out=") or arg.startswith("--grpc-gateway_out="):
            out_dir = Path(arg.split(":", 1)[1])
    if out_dir is None:
        return
    suffix = ".pb.gw.go" if any(a.startswith("--grpc-gateway_out=") for a in command) else ".pb.go"
    for arg in command:
        if arg.endswith(".proto") and not arg.startswith("--"):
            target = out_dir / Path(arg).with_suffix("").as_posix()
            target.parent.mkdir(parents=True, exist_ok=True)
            target.with_name(target.name + suffix).write_text("// generated\npackage pb\n")


@pytest.fixture
def content_root(tmp_path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def home(tmp_path) -> Path:
    path = tmp_path / "home"
    (path / "go" / "bin").mkdir(parents=True)
    return path


@pytest.fixture
def install_tools(content_root, home):
    """Install fake compiler/plugins. Returns the plugin directory."""

    def _install(compiler: bool = True, plugins=("go", "go-grpc", "grpc-gateway")) -> Path:
        if compiler:
            make_executable(content_root / "bin" / "protoc")
        plugin_dir = home / "go" / "bin"
        for name in plugins:
            make_executable(plugin_dir / f"protoc-gen-{name}")
        return plugin_dir

    return _install


@pytest.fixture
def build_service(content_root, home):
    def _build(runner, *, locks: Optional[KeyedLock] = None) -> GenerationService:
        store = LocalArtifactStore(content_root)
        resolver = ToolResolver(
            content_root,
            plugin_dir="$HOME/go/bin",
            environ={"PATH": "", "HOME": str(home)},
        )
        planner = InvocationPlanner(working_directory=store.root)
        return GenerationService(
            store=store,
            resolver=resolver,
            planner=planner,
            executor=GenerationExecutor(runner, timeout=5),
            reporter=ResultReporter(store, "grpc_output/pb"),
            locks=locks,
        )

    return _build
