"""Locates the schema compiler and its code-generation plugins.

Resolution runs fresh for every request: tools can be installed or removed
between calls, so nothing here is cached.
"""
from __future__ import annotations

import os
import shutil
from pathlib import Path
from string import Template
from typing import Mapping, Optional, Sequence

from core.logging_config import get_logger
from domain.common.exceptions import ToolNotFoundError
from domain.generation import ToolSet

logger = get_logger(__name__)


COMPILER_INSTALL_GUIDANCE = (
    "To enable code generation, please install protoc and try again.\n"
    "For macOS: brew install protobuf\n"
    "For Ubuntu: apt install -y protobuf-compiler\n"
    "For Windows: Download from https://github.com/protocolbuffers/protobuf/releases"
)

PLUGIN_INSTALL_GUIDANCE = {
    "go": "go install google.golang.org/protobuf/cmd/protoc-gen-go@latest",
    "go-grpc": "go install google.golang.org/grpc/cmd/protoc-gen-go-grpc@latest",
    "grpc-gateway": "go install github.com/grpc-ecosystem/grpc-gateway/v2/protoc-gen-grpc-gateway@latest",
}


def plugin_binary(name: str) -> str:
    return f"protoc-gen-{name}"


class ToolResolver:
    def __init__(
        self,
        root: Path,
        *,
        compiler: str = "protoc",
        local_bin_dir: str = "bin",
        plugin_dir: str = "$HOME/go/bin",
        plugins: Sequence[str] = ("go", "go-grpc", "grpc-gateway"),
        gateway_plugin: str = "grpc-gateway",
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.root = Path(root)
        self.compiler = compiler
        self.local_bin_dir = local_bin_dir
        self.plugin_dir_template = plugin_dir
        self.plugins = tuple(plugins)
        self.gateway_plugin = gateway_plugin
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    def plugin_dir(self) -> Path:
        """Expand ``$VAR``/``~`` in the configured plugin directory against the current environment."""
        expanded = Template(self.plugin_dir_template).safe_substitute(self.environ)
        return Path(os.path.expanduser(expanded))

    def resolve_compiler(self) -> Path:
        """Project-local binary first, then the system search path.

        Raises:
            ToolNotFoundError: neither location has the compiler
        """
        local = self.root / self.local_bin_dir / self.compiler
        if _is_executable(local):
            return local

        found = shutil.which(self.compiler, path=self.environ.get("PATH", ""))
        if found:
            return Path(found)

        logger.warning("compiler_not_found", compiler=self.compiler, local=str(local))
        raise ToolNotFoundError(
            self.compiler,
            searched=[str(local), "PATH"],
            guidance=COMPILER_INSTALL_GUIDANCE,
        )

    def resolve_plugin(self, name: str) -> Optional[Path]:
        """Return the plugin path, or None when it is not installed."""
        candidate = self.plugin_dir() / plugin_binary(name)
        if _is_executable(candidate):
            return candidate
        return None

    def resolve(self) -> ToolSet:
        compiler_path = self.resolve_compiler()
        plugin_paths = {name: self.resolve_plugin(name) for name in self.plugins}
        tools = ToolSet(
            compiler_path=compiler_path,
            plugin_paths=plugin_paths,
            gateway_plugin=self.gateway_plugin,
            plugin_dir=self.plugin_dir(),
        )
        logger.info("tools_resolved", **tools.to_dict())
        return tools

    def plugin_not_found(self, name: str) -> ToolNotFoundError:
        candidate = self.plugin_dir() / plugin_binary(name)
        install = PLUGIN_INSTALL_GUIDANCE.get(name)
        guidance = f"Please install it with: {install}" if install else f"Please install {plugin_binary(name)}"
        return ToolNotFoundError(plugin_binary(name), searched=[str(candidate)], guidance=guidance)

    def environment(self) -> dict[str, str]:
        """Process environment with the plugin directory prepended to PATH."""
        env = dict(self.environ)
        current = env.get("PATH", "")
        plugin_dir = str(self.plugin_dir())
        env["PATH"] = f"{plugin_dir}{os.pathsep}{current}" if current else plugin_dir
        return env


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)
