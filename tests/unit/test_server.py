import json

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from sourcekit_bridge.config import BridgeConfig
from sourcekit_bridge.lsp.session import ConnectionState
from sourcekit_bridge.server import SERVER_NAME, BridgeServer, discover_source_files


@pytest.fixture
def server(swift_workspace):
    return BridgeServer(BridgeConfig(workspace_root=str(swift_workspace), extra_args=["--log-level", "debug"]))


def test_discover_skips_build_output_and_hidden_dirs(swift_workspace):
    (swift_workspace / ".git").mkdir()
    (swift_workspace / ".git" / "hook.swift").write_text("", encoding="utf-8")
    (swift_workspace / "Package.swift").write_text("// swift-tools-version:5.9\n", encoding="utf-8")
    (swift_workspace / "README.md").write_text("# App\n", encoding="utf-8")

    assert discover_source_files(str(swift_workspace)) == [
        "Package.swift",
        "Sources/App/broken.swift",
        "Sources/App/main.swift",
    ]


def test_project_structure_resource(server, swift_workspace):
    payload = json.loads(server.project_structure())

    assert payload["workspaceRoot"] == str(swift_workspace.resolve())
    assert payload["fileCount"] == 2
    assert payload["files"] == ["Sources/App/broken.swift", "Sources/App/main.swift"]


def test_build_settings_resource(server, swift_workspace):
    payload = json.loads(server.build_settings())

    assert payload == {
        "lspPath": "sourcekit-lsp",
        "buildArgs": ["--log-level", "debug"],
        "workspaceRoot": str(swift_workspace.resolve()),
        "languageId": "swift",
        "requestTimeoutSeconds": None,
    }


@pytest.mark.asyncio
async def test_registers_tools_and_resources(server):
    tools = {tool.name for tool in await server.mcp.list_tools()}
    resources = {str(resource.uri).rstrip("/") for resource in await server.mcp.list_resources()}

    assert server.mcp.name == SERVER_NAME
    assert tools == {
        "swift-hover",
        "swift-definition",
        "swift-references",
        "swift-symbols",
        "swift-diagnostics",
    }
    assert resources == {"swift://project-structure", "swift://build-settings"}


@pytest.mark.asyncio
async def test_references_tool_accepts_camel_case_flag(server):
    tools = {tool.name: tool for tool in await server.mcp.list_tools()}
    properties = tools["swift-references"].inputSchema["properties"]
    assert "includeDeclaration" in properties


@pytest.mark.asyncio
async def test_tool_call_before_start_reports_not_ready(server, swift_workspace):
    main = swift_workspace / "Sources" / "App" / "main.swift"
    with pytest.raises(ToolError) as excinfo:
        await server._call("swift-hover", {"file": str(main), "line": 1, "column": 5})

    message = str(excinfo.value)
    assert server.session.state is ConnectionState.UNSTARTED
    assert message.startswith("Failed to get hover information: Language server session is not ready")
    assert message.endswith("[not_ready]")


@pytest.mark.asyncio
async def test_failed_tool_call_is_an_error_result_for_the_client(server):
    with pytest.raises(ToolError) as excinfo:
        await server.mcp.call_tool("swift-symbols", {"query": " "})

    assert "query must be a non-empty string" in str(excinfo.value)
    assert "validation_error" in str(excinfo.value)


@pytest.mark.asyncio
async def test_stop_without_start_is_a_no_op(server):
    await server.stop()
    assert server.session.state is ConnectionState.UNSTARTED
