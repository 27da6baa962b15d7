import os

import pytest

from domain.common.exceptions import ToolNotFoundError
from infrastructure.toolchain.resolver import ToolResolver

from conftest import make_executable


def _resolver(root, home, path=""):
    return ToolResolver(root, plugin_dir="$HOME/go/bin", environ={"PATH": path, "HOME": str(home)})


def test_local_compiler_preferred_over_path(tmp_path):
    local = make_executable(tmp_path / "app" / "bin" / "protoc")
    system = make_executable(tmp_path / "usr" / "bin" / "protoc")

    resolver = _resolver(tmp_path / "app", tmp_path, path=str(system.parent))
    assert resolver.resolve_compiler() == local


def test_falls_back_to_path(tmp_path):
    system = make_executable(tmp_path / "usr" / "bin" / "protoc")
    resolver = _resolver(tmp_path / "app", tmp_path, path=str(system.parent))
    assert resolver.resolve_compiler() == system


def test_missing_compiler_raises_with_guidance(tmp_path):
    resolver = _resolver(tmp_path / "app", tmp_path)
    with pytest.raises(ToolNotFoundError) as exc_info:
        resolver.resolve_compiler()
    exc = exc_info.value
    assert exc.tool == "protoc"
    assert str(tmp_path / "app" / "bin" / "protoc") in exc.searched
    assert "brew install protobuf" in exc.guidance


def test_non_executable_local_file_is_ignored(tmp_path):
    local = tmp_path / "app" / "bin" / "protoc"
    local.parent.mkdir(parents=True)
    local.write_text("not executable")
    with pytest.raises(ToolNotFoundError):
        _resolver(tmp_path / "app", tmp_path).resolve_compiler()


def test_plugin_dir_expands_environment(tmp_path):
    resolver = _resolver(tmp_path, tmp_path / "home")
    assert resolver.plugin_dir() == tmp_path / "home" / "go" / "bin"


def test_resolve_plugin_returns_none_when_absent(tmp_path):
    home = tmp_path / "home"
    make_executable(home / "go" / "bin" / "protoc-gen-go")
    resolver = _resolver(tmp_path, home)
    assert resolver.resolve_plugin("go") == home / "go" / "bin" / "protoc-gen-go"
    assert resolver.resolve_plugin("grpc-gateway") is None


def test_resolve_builds_toolset_fresh_each_time(tmp_path):
    home = tmp_path / "home"
    make_executable(tmp_path / "bin" / "protoc")
    make_executable(home / "go" / "bin" / "protoc-gen-go")
    make_executable(home / "go" / "bin" / "protoc-gen-go-grpc")
    resolver = _resolver(tmp_path, home)

    tools = resolver.resolve()
    assert not tools.gateway_available
    assert tools.missing_plugins(("go", "go-grpc")) == []

    make_executable(home / "go" / "bin" / "protoc-gen-grpc-gateway")
    assert resolver.resolve().gateway_available


def test_environment_prepends_plugin_dir(tmp_path):
    resolver = _resolver(tmp_path, tmp_path / "home", path="/usr/bin")
    env = resolver.environment()
    assert env["PATH"] == f"{tmp_path / 'home' / 'go' / 'bin'}{os.pathsep}/usr/bin"
    assert env["HOME"] == str(tmp_path / "home")


def test_plugin_not_found_has_install_command(tmp_path):
    exc = _resolver(tmp_path, tmp_path).plugin_not_found("go-grpc")
    assert exc.tool == "protoc-gen-go-grpc"
    assert "google.golang.org/grpc/cmd/protoc-gen-go-grpc@latest" in exc.guidance
