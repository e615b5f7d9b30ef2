import pytest

from sourcekit_bridge.lsp.diagnostics import DiagnosticsCache

URI = "file:///workspace/Sources/App/main.swift"


class StubTransport:
    def __init__(self):
        self.handlers = {}

    def on_notification(self, method, handler):
        self.handlers.setdefault(method, []).append(handler)

    def publish(self, params):
        for handler in self.handlers["textDocument/publishDiagnostics"]:
            handler(params)


def _diagnostic(line, message, severity=1):
    return {
        "range": {
            "start": {"line": line, "character": 4},
            "end": {"line": line, "character": 8},
        },
        "severity": severity,
        "message": message,
        "source": "swiftc",
    }


@pytest.fixture
def transport():
    return StubTransport()


@pytest.fixture
def cache(transport):
    return DiagnosticsCache(transport)


def test_unreported_uri_reads_as_empty(cache):
    assert cache.get(URI) == []
    assert not cache.has_report(URI)


def test_publish_stores_parsed_diagnostics(cache, transport):
    transport.publish({"uri": URI, "diagnostics": [_diagnostic(2, "bad"), _diagnostic(5, "meh", 2)]})

    diagnostics = cache.get(URI)
    assert [d.message for d in diagnostics] == ["bad", "meh"]
    assert diagnostics[0].range.start.line == 2
    assert diagnostics[1].severity == 2
    assert cache.has_report(URI)


def test_each_publish_replaces_previous_set(cache, transport):
    transport.publish({"uri": URI, "diagnostics": [_diagnostic(1, "old")]})
    transport.publish({"uri": URI, "diagnostics": [_diagnostic(3, "new")]})
    assert [d.message for d in cache.get(URI)] == ["new"]

    transport.publish({"uri": URI, "diagnostics": []})
    assert cache.get(URI) == []
    assert cache.has_report(URI)


def test_uris_are_tracked_independently(cache, transport):
    other = "file:///workspace/Sources/App/other.swift"
    transport.publish({"uri": URI, "diagnostics": [_diagnostic(1, "a")]})
    transport.publish({"uri": other, "diagnostics": [_diagnostic(1, "b")]})

    assert [d.message for d in cache.get(URI)] == ["a"]
    assert [d.message for d in cache.get(other)] == ["b"]
    assert len(cache) == 2


def test_get_returns_a_copy(cache, transport):
    transport.publish({"uri": URI, "diagnostics": [_diagnostic(1, "a")]})
    cache.get(URI).clear()
    assert len(cache.get(URI)) == 1


def test_publish_without_uri_is_ignored(cache, transport):
    transport.publish({"diagnostics": [_diagnostic(1, "a")]})
    assert len(cache) == 0


def test_malformed_entries_are_skipped_and_publish_still_replaces(cache, transport):
    transport.publish({"uri": URI, "diagnostics": [_diagnostic(1, "old")]})

    bad_message = dict(_diagnostic(2, "ignored"), message=None)
    negative = _diagnostic(3, "negative")
    negative["range"]["start"]["line"] = -1
    transport.publish(
        {"uri": URI, "diagnostics": [bad_message, negative, "junk", _diagnostic(4, "new")]}
    )

    assert [d.message for d in cache.get(URI)] == ["new"]


def test_publish_with_only_malformed_entries_clears_previous_set(cache, transport):
    transport.publish({"uri": URI, "diagnostics": [_diagnostic(1, "old")]})
    transport.publish({"uri": URI, "diagnostics": [dict(_diagnostic(2, "x"), message=None)]})

    assert cache.get(URI) == []
    assert cache.has_report(URI)
