"""
Root conftest for all tests.

Unit tests under tests/unit/ run without a real sourcekit-lsp; the session
tests drive tests/fixtures/fake_language_server.py as the child process.
"""

import pytest


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "subprocess: marks tests that launch the fake language server"
    )
