"""
Shared fixtures for unit tests.

`fake_server_command` builds the launch command for the scripted language
server; `swift_workspace` lays out a small workspace on disk.
"""

import sys
from pathlib import Path

import pytest

from sourcekit_bridge.lsp.session import LanguageServerConfig

FAKE_SERVER = Path(__file__).resolve().parent.parent / "fixtures" / "fake_language_server.py"

MAIN_SWIFT = """let x: String = "hi"
let y = x
print(x)
"""

BROKEN_SWIFT = """let z = 1 // ERROR: cannot find 'q' in scope
var w = 2 // WARNING: variable 'w' was never mutated
"""


@pytest.fixture
def fake_server_command():
    """Return a factory for fake language server launch commands."""

    def build(*flags):
        return [sys.executable, str(FAKE_SERVER), *flags]

    return build


@pytest.fixture
def fake_server_config(fake_server_command):
    """Return a factory for session configs pointing at the fake server."""

    def build(*flags, **kwargs):
        return LanguageServerConfig(command=fake_server_command(*flags), **kwargs)

    return build


@pytest.fixture
def swift_workspace(tmp_path):
    """Create a workspace with one clean and one broken Swift file."""
    sources = tmp_path / "Sources" / "App"
    sources.mkdir(parents=True)
    (sources / "main.swift").write_text(MAIN_SWIFT, encoding="utf-8")
    (sources / "broken.swift").write_text(BROKEN_SWIFT, encoding="utf-8")
    build_dir = tmp_path / ".build" / "debug"
    build_dir.mkdir(parents=True)
    (build_dir / "generated.swift").write_text("let generated = 1\n", encoding="utf-8")
    return tmp_path
