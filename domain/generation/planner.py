"""Builds the ordered compiler invocations tried for a generation request.

Strategies are plain data; nothing here starts a process. Plugins are not
referenced by absolute path: the executor prepends the plugin directory to
PATH so that ``protoc`` discovers ``protoc-gen-<name>`` on its own.
"""
from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence

from domain.common.exceptions import ToolNotFoundError
from .entities import InvocationStrategy

SOURCE_RELATIVE = "Simple source_relative"
EXPLICIT_PROTO_PATH = "With explicit proto_path"
FILE_MAPPING = "With M option"
GATEWAY = "gRPC Gateway"


class InvocationPlanner:
    """Emits the fixed-priority strategy cascade for the language and RPC plugins."""

    def __init__(
        self,
        working_directory: Path,
        language_plugin: str = "go",
        rpc_plugin: str = "go-grpc",
        gateway_plugin: str = "grpc-gateway",
        gateway_config: str = "gateway.yaml",
        include_dirs: Sequence[Path] = (),
    ) -> None:
        self.working_directory = Path(working_directory)
        self.language_plugin = language_plugin
        self.rpc_plugin = rpc_plugin
        self.gateway_plugin = gateway_plugin
        self.gateway_config = gateway_config
        self.include_dirs = tuple(Path(p) for p in include_dirs)

    @property
    def required_plugins(self) -> tuple[str, str]:
        return (self.language_plugin, self.rpc_plugin)

    def plan(
        self,
        schema_files: Sequence[str],
        output_dir: Path,
        plugin_paths: Optional[Mapping[str, Optional[Path]]] = None,
    ) -> list[InvocationStrategy]:
        """Return exactly three strategies, in the order they must be tried.

        1. source-relative output for both plugins, no search path
        2. the same plus ``--proto_path=.`` (and configured include dirs)
        3. the same as 2 plus ``M<file>=.`` for every file and both plugins

        When ``plugin_paths`` is given, a required plugin mapped to ``None``
        raises ``ToolNotFoundError`` rather than producing a plan doomed to fail.
        """
        if plugin_paths is not None:
            for name in self.required_plugins:
                if plugin_paths.get(name) is None:
                    raise ToolNotFoundError(
                        f"protoc-gen-{name}",
                        searched=[],
                        guidance=f"protoc-gen-{name} must be installed before planning generation",
                    )

        files = tuple(schema_files)
        outputs = (
            f"--{self.language_plugin}_out=paths=source_relative:{output_dir}",
            f"--{self.rpc_plugin}_out=paths=source_relative:{output_dir}",
        )
        search = self._search_path_flags()

        mappings: list[str] = []
        for name in files:
            mappings.append(f"--{self.language_plugin}_opt=M{name}=.")
            mappings.append(f"--{self.rpc_plugin}_opt=M{name}=.")

        return [
            self._strategy(SOURCE_RELATIVE, (*outputs, *files)),
            self._strategy(EXPLICIT_PROTO_PATH, (*search, *outputs, *files)),
            self._strategy(FILE_MAPPING, (*search, *outputs, *mappings, *files)),
        ]

    def plan_gateway(self, schema_file: str, output_dir: Path) -> InvocationStrategy:
        args = (
            *self._search_path_flags(),
            f"--{self.gateway_plugin}_out=paths=source_relative:{output_dir}",
            f"--{self.gateway_plugin}_opt=grpc_api_configuration={self.gateway_config}",
            f"--{self.gateway_plugin}_opt=allow_delete_body=true",
            schema_file,
        )
        return self._strategy(GATEWAY, args)

    def _strategy(self, label: str, arguments: tuple[str, ...]) -> InvocationStrategy:
        return InvocationStrategy(label=label, arguments=arguments, working_directory=self.working_directory)

    def _search_path_flags(self) -> tuple[str, ...]:
        return ("--proto_path=.", *(f"--proto_path={d}" for d in self.include_dirs))
