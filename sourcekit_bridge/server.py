"""MCP server exposing the bridge tools over stdio."""

from __future__ import annotations

import asyncio
import json
import os
import signal
from pathlib import Path
from typing import Any, Dict, List, Sequence

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from sourcekit_bridge.config import BridgeConfig
from sourcekit_bridge.logger import setup_logger
from sourcekit_bridge.lsp.session import LspSession
from sourcekit_bridge.tools import (
    DefinitionTool,
    DiagnosticsTool,
    HoverTool,
    ReferencesTool,
    SymbolsTool,
    ToolService,
)

logger = setup_logger(__name__)

SERVER_NAME = "sourcekit-lsp-mcp"
PROJECT_STRUCTURE_URI = "swift://project-structure"
BUILD_SETTINGS_URI = "swift://build-settings"
SOURCE_EXTENSIONS = (".swift",)
SKIPPED_DIRECTORIES = {".build", "DerivedData", "Pods", "node_modules", "__pycache__"}


def discover_source_files(
    workspace_root: str, extensions: Sequence[str] = SOURCE_EXTENSIONS
) -> List[str]:
    """List source files under ``workspace_root`` as sorted relative paths."""
    root = Path(workspace_root)
    found: List[str] = []
    for current, dirs, files in os.walk(root):
        dirs[:] = [d for d in dirs if not d.startswith(".") and d not in SKIPPED_DIRECTORIES]
        for name in files:
            if name.endswith(tuple(extensions)):
                found.append((Path(current) / name).relative_to(root).as_posix())
    return sorted(found)


class BridgeServer:
    """Owns the language server session and the MCP endpoint in front of it."""

    def __init__(self, config: BridgeConfig) -> None:
        self.config = config
        self.session = LspSession(config.server_config(), config.workspace_root)
        self.tool_service = ToolService(
            self.session, diagnostics_settle_seconds=config.diagnostics_settle_seconds
        )
        self._mcp = FastMCP(SERVER_NAME)
        self._register_tools()
        self._register_resources()

    @property
    def mcp(self) -> FastMCP:
        return self._mcp

    async def _call(self, name: str, arguments: Dict[str, Any]) -> str:
        response = await self.tool_service.call(name, arguments)
        if response.error:
            # FastMCP turns ToolError into an isError result for the client.
            raise ToolError(f"{response.text} [{response.error}]")
        return response.text

    def _register_tools(self) -> None:
        @self._mcp.tool(name=HoverTool.name, description=HoverTool.description)
        async def swift_hover(file: str, line: int, column: int) -> str:
            return await self._call(HoverTool.name, {"file": file, "line": line, "column": column})

        @self._mcp.tool(name=DefinitionTool.name, description=DefinitionTool.description)
        async def swift_definition(file: str, line: int, column: int) -> str:
            return await self._call(
                DefinitionTool.name, {"file": file, "line": line, "column": column}
            )

        @self._mcp.tool(name=ReferencesTool.name, description=ReferencesTool.description)
        async def swift_references(
            file: str, line: int, column: int, includeDeclaration: bool = True
        ) -> str:
            return await self._call(
                ReferencesTool.name,
                {
                    "file": file,
                    "line": line,
                    "column": column,
                    "include_declaration": includeDeclaration,
                },
            )

        @self._mcp.tool(name=SymbolsTool.name, description=SymbolsTool.description)
        async def swift_symbols(query: str) -> str:
            return await self._call(SymbolsTool.name, {"query": query})

        @self._mcp.tool(name=DiagnosticsTool.name, description=DiagnosticsTool.description)
        async def swift_diagnostics(file: str) -> str:
            return await self._call(DiagnosticsTool.name, {"file": file})

    def _register_resources(self) -> None:
        @self._mcp.resource(
            PROJECT_STRUCTURE_URI,
            name="Swift Project Structure",
            description="Overview of Swift files and project organization",
            mime_type="application/json",
        )
        def project_structure() -> str:
            return self.project_structure()

        @self._mcp.resource(
            BUILD_SETTINGS_URI,
            name="Build Settings",
            description="Current build configuration and compiler settings",
            mime_type="application/json",
        )
        def build_settings() -> str:
            return self.build_settings()

    def project_structure(self) -> str:
        files = discover_source_files(self.config.workspace_root)
        return json.dumps(
            {
                "workspaceRoot": self.config.workspace_root,
                "fileCount": len(files),
                "files": files,
            },
            indent=2,
        )

    def build_settings(self) -> str:
        return json.dumps(self.config.build_settings(), indent=2)

    async def start(self) -> None:
        await self.session.initialize()
        logger.info("Connected to language server at {}", self.config.workspace_root)

    async def stop(self) -> None:
        if self.session.is_ready:
            await self.session.shutdown()

    async def run(self) -> None:
        """Serve MCP over stdio until the client disconnects or a signal arrives."""
        await self.start()
        loop = asyncio.get_running_loop()
        serve_task = asyncio.create_task(self._mcp.run_stdio_async())
        signals = (signal.SIGTERM, signal.SIGINT)
        for sig in signals:
            loop.add_signal_handler(sig, serve_task.cancel)
        logger.info("MCP server {} started", SERVER_NAME)
        try:
            await serve_task
        except asyncio.CancelledError:
            if not serve_task.cancelled():
                raise
            logger.info("Received shutdown signal, shutting down")
        finally:
            for sig in signals:
                loop.remove_signal_handler(sig)
            await self.stop()
