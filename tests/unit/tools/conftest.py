"""Stub session shared by the tool tests."""

from pathlib import Path

import pytest


class StubSession:
    """Records calls and returns canned raw server replies."""

    def __init__(self):
        self.calls = []
        self.opened = {}
        self.hover_result = None
        self.definition_result = None
        self.references_result = None
        self.symbols_result = None
        self.diagnostics = {}
        self.error = None

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.error is not None:
            raise self.error

    async def open_document(self, uri, content):
        self._record("open_document", uri)
        self.opened[uri] = content
        return 1

    async def hover(self, uri, line, character):
        self._record("hover", uri, line, character)
        return self.hover_result

    async def definition(self, uri, line, character):
        self._record("definition", uri, line, character)
        return self.definition_result

    async def references(self, uri, line, character, include_declaration=True):
        self._record("references", uri, line, character, include_declaration=include_declaration)
        return self.references_result

    async def workspace_symbols(self, query):
        self._record("workspace_symbols", query)
        return self.symbols_result

    def get_diagnostics(self, uri):
        self._record("get_diagnostics", uri)
        return list(self.diagnostics.get(uri, []))


@pytest.fixture
def session():
    return StubSession()


@pytest.fixture
def swift_file(tmp_path):
    path = tmp_path / "main.swift"
    path.write_text('let x: String = "hi"\nlet y = x\nprint(x)\n', encoding="utf-8")
    return path


@pytest.fixture
def swift_uri(swift_file):
    return Path(swift_file).resolve().as_uri()
