"""Latest published diagnostics per document."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import ValidationError as SchemaValidationError

from sourcekit_bridge.logger import setup_logger
from sourcekit_bridge.lsp.transport import JsonRpcTransport
from sourcekit_bridge.lsp.types import Diagnostic, LspMethod

logger = setup_logger(__name__)


class DiagnosticsCache:
    """
    Snapshot store fed by `textDocument/publishDiagnostics`.

    Each notification replaces the whole set for its URI. A URI that never
    received a notification reads as an empty list, which looks the same as a
    clean file; callers that care must wait for the server to publish first.
    Entries are never evicted.
    """

    def __init__(self, transport: JsonRpcTransport) -> None:
        self._diagnostics: Dict[str, List[Diagnostic]] = {}
        transport.on_notification(LspMethod.PUBLISH_DIAGNOSTICS.value, self._handle_publish)

    def __len__(self) -> int:
        return len(self._diagnostics)

    def get(self, uri: str) -> List[Diagnostic]:
        return list(self._diagnostics.get(uri, []))

    def has_report(self, uri: str) -> bool:
        return uri in self._diagnostics

    def _handle_publish(self, params: Any) -> None:
        if not isinstance(params, dict) or "uri" not in params:
            logger.warning("[LSP] Ignoring publishDiagnostics without a uri: {}", params)
            return
        uri = params["uri"]
        diagnostics: List[Diagnostic] = []
        for item in params.get("diagnostics") or []:
            try:
                diagnostics.append(Diagnostic.from_lsp(item))
            except (SchemaValidationError, AttributeError, KeyError, TypeError) as exc:
                logger.warning("[LSP] Skipping malformed diagnostic for {}: {}", uri, exc)
        self._diagnostics[uri] = diagnostics
        logger.debug("[LSP] Received {} diagnostic(s) for {}", len(diagnostics), uri)
