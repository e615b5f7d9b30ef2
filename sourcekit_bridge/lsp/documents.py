"""
Open-document bookkeeping for the language server.

The server only answers queries about documents it has been told are open,
and it expects every content update to carry the next version number. The
tracker keeps that state and emits the matching didOpen/didChange/didClose
notifications.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sourcekit_bridge.logger import setup_logger
from sourcekit_bridge.lsp.types import LspMethod

logger = setup_logger(__name__)

Notifier = Callable[[str, Dict[str, Any]], Awaitable[None]]


@dataclass
class OpenDocument:
    uri: str
    version: int
    content: str


class DocumentTracker:
    def __init__(self, notify: Notifier, language_id: str = "swift") -> None:
        self._notify = notify
        self._language_id = language_id
        self._documents: Dict[str, OpenDocument] = {}
        # Serializes updates so concurrent opens of one URI cannot reuse a version.
        self._lock = asyncio.Lock()

    def __contains__(self, uri: str) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def uris(self) -> List[str]:
        return list(self._documents)

    def current_version(self, uri: str) -> Optional[int]:
        document = self._documents.get(uri)
        return document.version if document else None

    async def open(self, uri: str, content: str) -> OpenDocument:
        """Make sure the server sees ``content`` for ``uri``.

        Re-opening with identical content sends nothing; different content is
        sent as a full-text change with the version bumped by one.
        """
        async with self._lock:
            existing = self._documents.get(uri)
            if existing is None:
                document = OpenDocument(uri=uri, version=1, content=content)
                await self._notify(
                    LspMethod.DID_OPEN.value,
                    {
                        "textDocument": {
                            "uri": uri,
                            "languageId": self._language_id,
                            "version": document.version,
                            "text": content,
                        }
                    },
                )
                self._documents[uri] = document
                logger.debug("[LSP] Opened {} at version 1", uri)
                return document

            if existing.content == content:
                return existing

            document = OpenDocument(uri=uri, version=existing.version + 1, content=content)
            await self._notify(
                LspMethod.DID_CHANGE.value,
                {
                    "textDocument": {"uri": uri, "version": document.version},
                    "contentChanges": [{"text": content}],
                },
            )
            self._documents[uri] = document
            logger.debug("[LSP] Updated {} to version {}", uri, document.version)
            return document

    async def close(self, uri: str) -> None:
        async with self._lock:
            self._documents.pop(uri, None)
            await self._notify(LspMethod.DID_CLOSE.value, {"textDocument": {"uri": uri}})
            logger.debug("[LSP] Closed {}", uri)
