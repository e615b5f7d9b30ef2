"""Language server client core: process, transport, handshake, documents, diagnostics."""

from sourcekit_bridge.lsp.diagnostics import DiagnosticsCache
from sourcekit_bridge.lsp.documents import DocumentTracker, OpenDocument
from sourcekit_bridge.lsp.process import ProcessHandle, ProcessSupervisor
from sourcekit_bridge.lsp.session import (
    ConnectionState,
    LanguageServerConfig,
    LspSession,
)
from sourcekit_bridge.lsp.transport import FrameParser, JsonRpcTransport, encode_message

__all__ = [
    "ConnectionState",
    "DiagnosticsCache",
    "DocumentTracker",
    "FrameParser",
    "JsonRpcTransport",
    "LanguageServerConfig",
    "LspSession",
    "OpenDocument",
    "ProcessHandle",
    "ProcessSupervisor",
    "encode_message",
]
