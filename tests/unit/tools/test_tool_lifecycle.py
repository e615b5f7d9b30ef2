"""Tool calls against a fake language server that dies mid-session."""

import pytest

from sourcekit_bridge.lsp.process import ProcessSupervisor
from sourcekit_bridge.lsp.session import ConnectionState, LspSession
from sourcekit_bridge.tools import ToolService

pytestmark = pytest.mark.subprocess


@pytest.mark.asyncio
async def test_crash_during_hover_is_terminal_without_respawn(
    fake_server_config, swift_workspace, monkeypatch
):
    main = swift_workspace / "Sources" / "App" / "main.swift"
    lsp_session = LspSession(
        fake_server_config("--exit-on", "textDocument/hover:3"), str(swift_workspace)
    )
    await lsp_session.initialize()
    service = ToolService(lsp_session, diagnostics_settle_seconds=0)

    spawns = []

    async def no_respawn(self, *args, **kwargs):
        spawns.append(args)
        raise AssertionError("language server must not be restarted")

    monkeypatch.setattr(ProcessSupervisor, "start", no_respawn)
    position = {"file": str(main), "line": 1, "column": 5}

    hover = await service.call("swift-hover", position)

    assert hover.error == "process_exited"
    assert hover.text.startswith("Failed to get hover information:")
    assert "terminated unexpectedly" in hover.text
    assert "exit code 3" in hover.text

    definition = await service.call("swift-definition", position)

    assert definition.error == "connection_closed"
    assert definition.text.startswith("Failed to find definition:")
    assert spawns == []
    assert lsp_session.state is ConnectionState.TERMINATED
    assert not lsp_session.is_process_running
