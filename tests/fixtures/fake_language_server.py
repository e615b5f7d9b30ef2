"""
Scripted stand-in for sourcekit-lsp used by the session and tool tests.

Speaks Content-Length framed JSON-RPC on stdin/stdout and understands just
enough Swift-looking text to answer hover, definition, references and
workspace symbol queries. Behaviour switches:

    --fail-initialize          answer initialize with an error
    --exit-on METHOD[:CODE]    exit with CODE (default 3) when METHOD arrives
    --hang-on METHOD           never answer METHOD
    --garbage-on METHOD        write a malformed frame when METHOD arrives
"""

import argparse
import json
import re
import sys

IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
DECLARATION = re.compile(r"\b(let|var|func|struct|class)\s+([A-Za-z_][A-Za-z0-9_]*)")
DECLARATION_KINDS = {"let": 14, "var": 13, "func": 12, "struct": 23, "class": 5}


def read_message(stream):
    headers = {}
    while True:
        line = stream.readline()
        if not line:
            return None
        line = line.strip()
        if not line:
            break
        name, _, value = line.decode("ascii").partition(":")
        headers[name.strip().lower()] = value.strip()
    body = stream.read(int(headers["content-length"]))
    return json.loads(body.decode("utf-8"))


def write_message(stream, payload):
    body = json.dumps(payload).encode("utf-8")
    stream.write(b"Content-Length: %d\r\n\r\n" % len(body) + body)
    stream.flush()


def word_at(text, line, character):
    lines = text.split("\n")
    if line >= len(lines):
        return None
    for match in IDENTIFIER.finditer(lines[line]):
        if match.start() <= character < match.end():
            return match.group(0)
    return None


def make_range(line, start, end):
    return {
        "start": {"line": line, "character": start},
        "end": {"line": line, "character": end},
    }


class FakeServer:
    def __init__(self, args, out):
        self.args = args
        self.out = out
        self.documents = {}
        self.stats = {"opens": 0, "changes": 0, "closes": 0, "versions": {}, "replies": []}
        exit_on = (args.exit_on or "").split(":")
        self.exit_method = exit_on[0] or None
        self.exit_code = int(exit_on[1]) if len(exit_on) > 1 else 3

    def send(self, payload):
        payload.setdefault("jsonrpc", "2.0")
        write_message(self.out, payload)

    def publish(self, uri):
        diagnostics = []
        for number, line in enumerate(self.documents.get(uri, "").split("\n")):
            for marker, severity in (("ERROR:", 1), ("WARNING:", 2)):
                column = line.find(marker)
                if column != -1:
                    diagnostics.append(
                        {
                            "range": make_range(number, column, len(line)),
                            "severity": severity,
                            "message": line[column + len(marker):].strip(),
                            "source": "fake",
                        }
                    )
        self.send(
            {
                "method": "textDocument/publishDiagnostics",
                "params": {"uri": uri, "diagnostics": diagnostics},
            }
        )

    def occurrences(self, word, include_declaration=True):
        found = []
        for uri, text in sorted(self.documents.items()):
            for number, line in enumerate(text.split("\n")):
                for match in re.finditer(r"\b%s\b" % re.escape(word), line):
                    prefix = line[: match.start()].rstrip()
                    if not include_declaration and prefix.split()[-1:] in (
                        [k] for k in DECLARATION_KINDS
                    ):
                        continue
                    found.append(
                        {"uri": uri, "range": make_range(number, match.start(), match.end())}
                    )
        return found

    def declarations(self):
        for uri, text in sorted(self.documents.items()):
            for number, line in enumerate(text.split("\n")):
                for match in DECLARATION.finditer(line):
                    yield uri, number, match

    def handle_request(self, method, params):
        if method == "initialize":
            return {
                "capabilities": {
                    "hoverProvider": True,
                    "definitionProvider": True,
                    "referencesProvider": True,
                    "workspaceSymbolProvider": True,
                    "textDocumentSync": 1,
                },
                "serverInfo": {"name": "fake-language-server", "version": "0.0"},
            }
        if method == "shutdown":
            return None
        if method == "fake/state":
            return self.stats
        if method == "textDocument/hover":
            text = self.documents.get(params["textDocument"]["uri"], "")
            position = params["position"]
            lines = text.split("\n")
            if position["line"] >= len(lines):
                return None
            line = lines[position["line"]]
            if position["character"] >= len(line) or not line.strip():
                return None
            return {"contents": line.split(" = ")[0].strip()}
        if method == "textDocument/definition":
            text = self.documents.get(params["textDocument"]["uri"], "")
            word = word_at(text, params["position"]["line"], params["position"]["character"])
            for uri, number, match in self.declarations():
                if match.group(2) == word:
                    return {"uri": uri, "range": make_range(number, match.start(2), match.end(2))}
            return None
        if method == "textDocument/references":
            text = self.documents.get(params["textDocument"]["uri"], "")
            word = word_at(text, params["position"]["line"], params["position"]["character"])
            if word is None:
                return None
            include = params.get("context", {}).get("includeDeclaration", True)
            return self.occurrences(word, include)
        if method == "workspace/symbol":
            query = params.get("query", "").lower()
            return [
                {
                    "name": match.group(2),
                    "kind": DECLARATION_KINDS[match.group(1)],
                    "location": {
                        "uri": uri,
                        "range": make_range(number, match.start(2), match.end(2)),
                    },
                }
                for uri, number, match in self.declarations()
                if query in match.group(2).lower()
            ]
        raise LookupError(method)

    def handle_notification(self, method, params):
        if method == "initialized":
            self.send({"id": "srv-1", "method": "client/registerCapability", "params": {"registrations": []}})
            self.send({"method": "window/logMessage", "params": {"type": 3, "message": "fake ready"}})
        elif method == "exit":
            sys.exit(0)
        elif method == "textDocument/didOpen":
            document = params["textDocument"]
            self.documents[document["uri"]] = document["text"]
            self.stats["opens"] += 1
            self.stats["versions"][document["uri"]] = document["version"]
            self.publish(document["uri"])
        elif method == "textDocument/didChange":
            uri = params["textDocument"]["uri"]
            self.documents[uri] = params["contentChanges"][-1]["text"]
            self.stats["changes"] += 1
            self.stats["versions"][uri] = params["textDocument"]["version"]
            self.publish(uri)
        elif method == "textDocument/didClose":
            uri = params["textDocument"]["uri"]
            self.documents.pop(uri, None)
            self.stats["closes"] += 1
            self.send(
                {
                    "method": "textDocument/publishDiagnostics",
                    "params": {"uri": uri, "diagnostics": []},
                }
            )

    def serve(self, stream):
        while True:
            message = read_message(stream)
            if message is None:
                return
            method = message.get("method")
            if method is None:
                self.stats["replies"].append(message.get("id"))
                continue
            if method == self.exit_method:
                sys.exit(self.exit_code)
            if method == self.args.hang_on:
                continue
            if method == self.args.garbage_on:
                self.out.write(b"Content-Length: nope\r\n\r\n{}")
                self.out.flush()
                continue
            if "id" not in message:
                self.handle_notification(method, message.get("params"))
                continue
            if method == "initialize" and self.args.fail_initialize:
                self.send(
                    {"id": message["id"], "error": {"code": -32002, "message": "initialize refused"}}
                )
                continue
            try:
                result = self.handle_request(method, message.get("params") or {})
            except LookupError:
                self.send(
                    {
                        "id": message["id"],
                        "error": {"code": -32601, "message": f"Unhandled method {method}"},
                    }
                )
                continue
            self.send({"id": message["id"], "result": result})


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--fail-initialize", action="store_true")
    parser.add_argument("--exit-on", default=None)
    parser.add_argument("--hang-on", default=None)
    parser.add_argument("--garbage-on", default=None)
    args = parser.parse_args()
    sys.stderr.write("fake language server starting\n")
    sys.stderr.flush()
    FakeServer(args, sys.stdout.buffer).serve(sys.stdin.buffer)


if __name__ == "__main__":
    main()
