"""
sourcekit-bridge - expose sourcekit-lsp to tool-calling agents.

The bridge runs a language server as a child process, keeps the documents it
is asked about in sync with the server, and renders hover, definition,
reference, symbol and diagnostic results as plain text for agents.

Example:
    >>> from sourcekit_bridge import BridgeConfig, LspSession, ToolService
    >>>
    >>> config = BridgeConfig(workspace_root="~/projects/App")
    >>> async with LspSession(config.server_config(), config.workspace_root) as session:
    ...     tools = ToolService(session)
    ...     response = await tools.call(
    ...         "swift-hover", {"file": "Sources/App/main.swift", "line": 3, "column": 9}
    ...     )
    ...     print(response.text)
"""

__version__ = "0.1.0"

from sourcekit_bridge.config import BridgeConfig
from sourcekit_bridge.exceptions import (
    BridgeError,
    ConfigurationError,
    ConnectionClosedError,
    HandshakeError,
    NotReadyError,
    ProcessExitedError,
    ProtocolFramingError,
    RemoteError,
    RequestTimeoutError,
    SpawnError,
    ValidationError,
)
from sourcekit_bridge.lsp.session import ConnectionState, LanguageServerConfig, LspSession
from sourcekit_bridge.tools import ToolResponse, ToolService

__all__ = [
    "__version__",
    "BridgeConfig",
    "BridgeError",
    "ConfigurationError",
    "ConnectionClosedError",
    "ConnectionState",
    "HandshakeError",
    "LanguageServerConfig",
    "LspSession",
    "NotReadyError",
    "ProcessExitedError",
    "ProtocolFramingError",
    "RemoteError",
    "RequestTimeoutError",
    "SpawnError",
    "ToolResponse",
    "ToolService",
    "ValidationError",
]
