"""
Language server session: handshake, lifecycle and the query surface.

One `LspSession` owns one child process, one transport, the open-document
tracker and the diagnostics cache. Requests other than the handshake are only
allowed once the session is `READY`, and once it is `TERMINATED` it stays
that way.
"""

from __future__ import annotations

import asyncio
import os
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Mapping, Optional, Sequence, Set

from sourcekit_bridge.exceptions import (
    BridgeError,
    ConnectionClosedError,
    HandshakeError,
    NotReadyError,
    ProcessExitedError,
)
from sourcekit_bridge.logger import setup_logger
from sourcekit_bridge.lsp.diagnostics import DiagnosticsCache
from sourcekit_bridge.lsp.documents import DocumentTracker
from sourcekit_bridge.lsp.process import ProcessSupervisor
from sourcekit_bridge.lsp.transport import JsonRpcTransport
from sourcekit_bridge.lsp.types import Diagnostic, LspMethod

logger = setup_logger(__name__)

CLIENT_INFO = {"name": "sourcekit-bridge", "version": "0.1.0"}
SHUTDOWN_TIMEOUT_SECONDS = 5.0
EXIT_GRACE_SECONDS = 1.0

DEFAULT_CAPABILITIES: Dict[str, Any] = {
    "textDocument": {
        "synchronization": {"dynamicRegistration": False, "didSave": False},
        "hover": {"contentFormat": ["plaintext", "markdown"]},
        "definition": {"linkSupport": False},
        "references": {"dynamicRegistration": False},
        "publishDiagnostics": {"relatedInformation": False},
    },
    "workspace": {
        "symbol": {"dynamicRegistration": False},
        "workspaceFolders": True,
    },
    "window": {"workDoneProgress": False},
}

_UNSET: Any = object()


class ConnectionState(str, Enum):
    UNSTARTED = "unstarted"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


@dataclass
class LanguageServerConfig:
    """Process-level configuration for launching a language server."""

    command: Sequence[str]
    initialization_options: Dict[str, Any] = field(default_factory=dict)
    environment: Mapping[str, str] = field(default_factory=dict)
    language_id: str = "swift"
    # None means requests wait for as long as the server takes.
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_command_string(cls, command: str, **kwargs: Any) -> "LanguageServerConfig":
        return cls(command=shlex.split(command), **kwargs)


class LspSession:
    """A single language server connection for one workspace."""

    def __init__(self, config: LanguageServerConfig, workspace_root: str) -> None:
        self.config = config
        self.workspace_root = str(Path(workspace_root).resolve())
        self._state = ConnectionState.UNSTARTED
        self._supervisor: Optional[ProcessSupervisor] = None
        self._transport: Optional[JsonRpcTransport] = None
        self._documents: Optional[DocumentTracker] = None
        self._diagnostics: Optional[DiagnosticsCache] = None
        self._server_info: Dict[str, Any] = {}
        self._background: Set[asyncio.Task] = set()

    async def __aenter__(self) -> "LspSession":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._state is ConnectionState.READY:
            await self.shutdown()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def server_capabilities(self) -> Dict[str, Any]:
        return self._server_info.get("capabilities") or {}

    @property
    def is_process_running(self) -> bool:
        return self._supervisor is not None and self._supervisor.is_running

    async def initialize(
        self,
        workspace_root: Optional[str] = None,
        capabilities: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Spawn the server and run the initialize/initialized exchange."""
        if self._state is ConnectionState.TERMINATED:
            raise ConnectionClosedError("Language server session is closed")
        if self._state is not ConnectionState.UNSTARTED:
            raise HandshakeError(f"Cannot initialize a session in state '{self._state.value}'")
        if not self.config.command:
            raise HandshakeError("Language server command is not configured")

        if workspace_root is not None:
            self.workspace_root = str(Path(workspace_root).resolve())

        supervisor = ProcessSupervisor()
        handle = await supervisor.start(
            self.workspace_root,
            self.config.command[0],
            self.config.command[1:],
            environment=self.config.environment,
        )

        transport = JsonRpcTransport(
            handle.stdout,
            handle.stdin,
            on_close=lambda exc: self._connection_lost(transport, exc),
        )
        supervisor.add_exit_observer(lambda code: self._process_exited(supervisor, code))
        self._register_server_handlers(transport)

        self._supervisor = supervisor
        self._transport = transport
        self._documents = DocumentTracker(self._send_notification, self.config.language_id)
        self._diagnostics = DiagnosticsCache(transport)
        transport.start()

        self._state = ConnectionState.INITIALIZING
        workspace_uri = Path(self.workspace_root).as_uri()
        params = {
            "processId": os.getpid(),
            "clientInfo": CLIENT_INFO,
            "rootUri": workspace_uri,
            "rootPath": self.workspace_root,
            "workspaceFolders": [
                {"uri": workspace_uri, "name": os.path.basename(self.workspace_root)}
            ],
            "capabilities": capabilities if capabilities is not None else DEFAULT_CAPABILITIES,
            "initializationOptions": self.config.initialization_options,
        }

        logger.info("[LSP] Initializing language server for {}", self.workspace_root)
        try:
            result = await transport.send_request(
                LspMethod.INITIALIZE.value, params, timeout=self.config.timeout_seconds
            )
            await transport.send_notification(LspMethod.INITIALIZED.value, {})
        except BridgeError as exc:
            await self._abandon_handshake(supervisor, transport, exc)
            raise HandshakeError(f"Language server initialization failed: {exc}") from exc
        except asyncio.CancelledError:
            await self._abandon_handshake(
                supervisor, transport, ConnectionClosedError("Initialization cancelled")
            )
            raise

        self._server_info = result if isinstance(result, dict) else {}
        self._state = ConnectionState.READY
        server_name = (self._server_info.get("serverInfo") or {}).get("name", "unknown")
        logger.info("[LSP] Session ready (server={})", server_name)
        return self._server_info

    async def _abandon_handshake(
        self,
        supervisor: ProcessSupervisor,
        transport: JsonRpcTransport,
        exc: BaseException,
    ) -> None:
        logger.error("[LSP] Initialize failed: {}", exc)
        if self._state is ConnectionState.TERMINATED:
            return
        transport.abort(exc)
        await supervisor.terminate()
        self._supervisor = None
        self._transport = None
        self._documents = None
        self._diagnostics = None
        self._state = ConnectionState.UNSTARTED

    async def shutdown(self) -> None:
        """Run the shutdown/exit exchange and stop the process."""
        if self._state is ConnectionState.TERMINATED:
            raise ConnectionClosedError("Language server session is already closed")
        if self._state is not ConnectionState.READY:
            raise NotReadyError(f"Cannot shut down a session in state '{self._state.value}'")

        self._state = ConnectionState.SHUTTING_DOWN
        transport, supervisor = self._transport, self._supervisor
        try:
            timeout = self.config.timeout_seconds or SHUTDOWN_TIMEOUT_SECONDS
            await transport.send_request(LspMethod.SHUTDOWN.value, None, timeout=timeout)
            await transport.send_notification(LspMethod.EXIT.value)
        except BridgeError as exc:
            logger.warning("[LSP] Shutdown exchange did not complete cleanly: {}", exc)
        finally:
            transport.abort(ConnectionClosedError("Language server session was shut down"))
            await supervisor.terminate()
            self._state = ConnectionState.TERMINATED
            logger.info("[LSP] Session terminated")

    def _require_ready(self) -> None:
        if self._state is ConnectionState.READY:
            return
        if self._state in (ConnectionState.TERMINATED, ConnectionState.SHUTTING_DOWN):
            raise ConnectionClosedError("Language server session is closed")
        raise NotReadyError(
            f"Language server session is not ready (state '{self._state.value}')"
        )

    async def request(self, method: str, params: Any = None, timeout: Any = _UNSET) -> Any:
        self._require_ready()
        if timeout is _UNSET:
            timeout = self.config.timeout_seconds
        return await self._transport.send_request(method, params, timeout=timeout)

    async def _send_notification(self, method: str, params: Any = None) -> None:
        self._require_ready()
        await self._transport.send_notification(method, params)

    async def notify(self, method: str, params: Any = None) -> None:
        await self._send_notification(method, params)

    async def open_document(self, uri: str, content: str) -> int:
        """Open or refresh ``uri``; returns the version the server now has."""
        self._require_ready()
        document = await self._documents.open(uri, content)
        return document.version

    async def close_document(self, uri: str) -> None:
        self._require_ready()
        await self._documents.close(uri)

    def document_version(self, uri: str) -> Optional[int]:
        if self._documents is None:
            return None
        return self._documents.current_version(uri)

    def get_diagnostics(self, uri: str) -> List[Diagnostic]:
        self._require_ready()
        return self._diagnostics.get(uri)

    def has_diagnostics_report(self, uri: str) -> bool:
        """Whether the server has published diagnostics for ``uri`` yet."""
        self._require_ready()
        return self._diagnostics.has_report(uri)

    async def hover(self, uri: str, line: int, character: int, **kwargs: Any) -> Any:
        return await self.request(
            LspMethod.HOVER.value, self._position_params(uri, line, character), **kwargs
        )

    async def definition(self, uri: str, line: int, character: int, **kwargs: Any) -> Any:
        return await self.request(
            LspMethod.DEFINITION.value, self._position_params(uri, line, character), **kwargs
        )

    async def references(
        self,
        uri: str,
        line: int,
        character: int,
        include_declaration: bool = True,
        **kwargs: Any,
    ) -> Any:
        params = self._position_params(uri, line, character)
        params["context"] = {"includeDeclaration": include_declaration}
        return await self.request(LspMethod.REFERENCES.value, params, **kwargs)

    async def workspace_symbols(self, query: str, **kwargs: Any) -> Any:
        return await self.request(LspMethod.WORKSPACE_SYMBOL.value, {"query": query}, **kwargs)

    @staticmethod
    def _position_params(uri: str, line: int, character: int) -> Dict[str, Any]:
        return {
            "textDocument": {"uri": uri},
            "position": {"line": line, "character": character},
        }

    def _register_server_handlers(self, transport: JsonRpcTransport) -> None:
        transport.on_request(
            "workspace/configuration",
            lambda params: [None for _ in (params or {}).get("items", [])],
        )
        transport.on_request(
            "workspace/workspaceFolders",
            lambda params: [
                {
                    "uri": Path(self.workspace_root).as_uri(),
                    "name": os.path.basename(self.workspace_root),
                }
            ],
        )
        for method in (
            "client/registerCapability",
            "client/unregisterCapability",
            "window/workDoneProgress/create",
            "window/showMessageRequest",
        ):
            transport.on_request(method, lambda params: None)

        transport.on_notification(
            LspMethod.LOG_MESSAGE.value,
            lambda params: logger.debug("[LSP log] {}", (params or {}).get("message", "")),
        )
        transport.on_notification(
            LspMethod.SHOW_MESSAGE.value,
            lambda params: logger.info("[LSP message] {}", (params or {}).get("message", "")),
        )

    def _connection_lost(
        self, transport: JsonRpcTransport, exc: Optional[BaseException]
    ) -> None:
        if transport is not self._transport or self._state is ConnectionState.TERMINATED:
            transport.abort(exc or ConnectionClosedError("Language server connection closed"))
            return
        if self._state is ConnectionState.SHUTTING_DOWN:
            transport.abort(ConnectionClosedError("Language server exited during shutdown"))
            return

        supervisor = self._supervisor
        if exc is not None:
            self._terminate_connection(exc)
            self._run_in_background(supervisor.terminate())
        elif supervisor.returncode is not None:
            self._terminate_connection(ProcessExitedError(supervisor.returncode))
        else:
            # stdout closed first; give the exit observer a moment to report the code.
            self._run_in_background(self._await_exit(supervisor))

    async def _await_exit(self, supervisor: ProcessSupervisor) -> None:
        handle = supervisor.handle
        try:
            await asyncio.wait_for(handle.process.wait(), timeout=EXIT_GRACE_SECONDS)
        except asyncio.TimeoutError:
            pass
        if supervisor is self._supervisor and self._state in (
            ConnectionState.INITIALIZING,
            ConnectionState.READY,
        ):
            self._terminate_connection(ProcessExitedError(supervisor.returncode))
            await supervisor.terminate()

    def _process_exited(self, supervisor: ProcessSupervisor, returncode: Optional[int]) -> None:
        if supervisor is not self._supervisor:
            return
        if self._state is ConnectionState.SHUTTING_DOWN:
            self._transport.abort(ConnectionClosedError("Language server exited during shutdown"))
            return
        if self._state in (ConnectionState.INITIALIZING, ConnectionState.READY):
            self._terminate_connection(ProcessExitedError(returncode))

    def _terminate_connection(self, exc: BaseException) -> None:
        logger.error("[LSP] Connection to language server lost: {}", exc)
        self._state = ConnectionState.TERMINATED
        self._transport.abort(exc)

    def _run_in_background(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
