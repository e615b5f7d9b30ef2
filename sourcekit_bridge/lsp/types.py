"""
Shared types and enumerations for the language server wire protocol.

These models cover the slice of the protocol the bridge speaks: positions,
locations, hover payloads, symbols and diagnostics. Raw JSON from the server
is parsed into them once, at the boundary, so the rendering code never probes
dictionaries.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class LspMethod(str, Enum):
    """Requests and notifications the bridge sends or receives."""

    INITIALIZE = "initialize"
    INITIALIZED = "initialized"
    SHUTDOWN = "shutdown"
    EXIT = "exit"
    DID_OPEN = "textDocument/didOpen"
    DID_CHANGE = "textDocument/didChange"
    DID_CLOSE = "textDocument/didClose"
    HOVER = "textDocument/hover"
    DEFINITION = "textDocument/definition"
    REFERENCES = "textDocument/references"
    WORKSPACE_SYMBOL = "workspace/symbol"
    PUBLISH_DIAGNOSTICS = "textDocument/publishDiagnostics"
    LOG_MESSAGE = "window/logMessage"
    SHOW_MESSAGE = "window/showMessage"


class DiagnosticSeverity(IntEnum):
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


SEVERITY_LABELS = {
    DiagnosticSeverity.ERROR: "Error",
    DiagnosticSeverity.WARNING: "Warning",
    DiagnosticSeverity.INFORMATION: "Info",
    DiagnosticSeverity.HINT: "Hint",
}


class SymbolKind(IntEnum):
    FILE = 1
    MODULE = 2
    NAMESPACE = 3
    PACKAGE = 4
    CLASS = 5
    METHOD = 6
    PROPERTY = 7
    FIELD = 8
    CONSTRUCTOR = 9
    ENUM = 10
    INTERFACE = 11
    FUNCTION = 12
    VARIABLE = 13
    CONSTANT = 14
    STRING = 15
    NUMBER = 16
    BOOLEAN = 17
    ARRAY = 18
    OBJECT = 19
    KEY = 20
    NULL = 21
    ENUM_MEMBER = 22
    STRUCT = 23
    EVENT = 24
    OPERATOR = 25
    TYPE_PARAMETER = 26


SYMBOL_KIND_LABELS = {
    SymbolKind.FILE: "File",
    SymbolKind.MODULE: "Module",
    SymbolKind.NAMESPACE: "Namespace",
    SymbolKind.PACKAGE: "Package",
    SymbolKind.CLASS: "Class",
    SymbolKind.METHOD: "Method",
    SymbolKind.PROPERTY: "Property",
    SymbolKind.FIELD: "Field",
    SymbolKind.CONSTRUCTOR: "Constructor",
    SymbolKind.ENUM: "Enum",
    SymbolKind.INTERFACE: "Interface",
    SymbolKind.FUNCTION: "Function",
    SymbolKind.VARIABLE: "Variable",
    SymbolKind.CONSTANT: "Constant",
    SymbolKind.STRING: "String",
    SymbolKind.NUMBER: "Number",
    SymbolKind.BOOLEAN: "Boolean",
    SymbolKind.ARRAY: "Array",
    SymbolKind.OBJECT: "Object",
    SymbolKind.KEY: "Key",
    SymbolKind.NULL: "Null",
    SymbolKind.ENUM_MEMBER: "EnumMember",
    SymbolKind.STRUCT: "Struct",
    SymbolKind.EVENT: "Event",
    SymbolKind.OPERATOR: "Operator",
    SymbolKind.TYPE_PARAMETER: "TypeParameter",
}


def symbol_kind_label(kind: int) -> str:
    try:
        return SYMBOL_KIND_LABELS[SymbolKind(kind)]
    except ValueError:
        return "Unknown"


def severity_label(severity: Optional[int]) -> str:
    # The protocol says a missing severity is up to the client; treat it as an error.
    if severity is None:
        return SEVERITY_LABELS[DiagnosticSeverity.ERROR]
    try:
        return SEVERITY_LABELS[DiagnosticSeverity(severity)]
    except ValueError:
        return "Unknown"


class Position(BaseModel):
    """Represents a zero-based line/character location in a text document."""

    line: int = Field(..., ge=0, description="Zero-based line index.")
    character: int = Field(..., ge=0, description="Zero-based character offset.")

    @classmethod
    def from_lsp(cls, data: dict[str, Any]) -> "Position":
        return cls(line=data["line"], character=data["character"])

    def to_lsp(self) -> dict[str, int]:
        return {"line": self.line, "character": self.character}


class Range(BaseModel):
    start: Position
    end: Position

    @classmethod
    def from_lsp(cls, data: Optional[dict[str, Any]]) -> "Range":
        data = data or {}
        origin = {"line": 0, "character": 0}
        return cls(
            start=Position.from_lsp(data.get("start", origin)),
            end=Position.from_lsp(data.get("end", origin)),
        )


class Location(BaseModel):
    """Represents a location inside a resource, such as a line inside a text file."""

    uri: str = Field(..., description="file:// URI where the symbol is located.")
    range: Range

    @classmethod
    def from_lsp(cls, data: dict[str, Any]) -> "Location":
        # LocationLink carries the target under different keys.
        if "targetUri" in data:
            return cls(
                uri=data["targetUri"],
                range=Range.from_lsp(
                    data.get("targetSelectionRange") or data.get("targetRange")
                ),
            )
        return cls(uri=data["uri"], range=Range.from_lsp(data.get("range")))


def parse_locations(raw: Any) -> List[Location]:
    """Normalize a `Location | Location[] | LocationLink[] | null` reply."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = [raw]
    return [
        Location.from_lsp(item)
        for item in raw
        if isinstance(item, dict) and ("uri" in item or "targetUri" in item)
    ]


class PlainText(BaseModel):
    """A bare string hover payload."""

    kind: Literal["plain"] = "plain"
    value: str


class MarkedString(BaseModel):
    """A `{language, value}` code fragment."""

    kind: Literal["marked"] = "marked"
    language: Optional[str] = None
    value: str


class MarkupContent(BaseModel):
    """A `{kind: plaintext|markdown, value}` hover payload."""

    kind: Literal["markup"] = "markup"
    format: str = "plaintext"
    value: str


class FragmentList(BaseModel):
    """An ordered list of plain or marked fragments."""

    kind: Literal["fragments"] = "fragments"
    items: List[Union[PlainText, MarkedString]] = Field(default_factory=list)


HoverContents = Union[PlainText, MarkedString, MarkupContent, FragmentList]


def _parse_fragment(item: Any) -> Union[PlainText, MarkedString]:
    if isinstance(item, dict):
        return MarkedString(language=item.get("language"), value=item.get("value") or "")
    return PlainText(value="" if item is None else str(item))


def parse_hover_contents(raw: Any) -> HoverContents:
    """Classify the `contents` field of a hover reply into one tagged shape."""
    if isinstance(raw, list):
        return FragmentList(items=[_parse_fragment(item) for item in raw])
    if isinstance(raw, dict):
        if "kind" in raw:
            return MarkupContent(format=raw.get("kind") or "plaintext", value=raw.get("value") or "")
        return MarkedString(language=raw.get("language"), value=raw.get("value") or "")
    return PlainText(value="" if raw is None else str(raw))


def render_hover_contents(contents: HoverContents) -> str:
    """Flatten hover contents to text, joining fragments in order with newlines."""
    match contents:
        case PlainText() | MarkedString() | MarkupContent():
            return contents.value
        case FragmentList():
            return "\n".join(render_hover_contents(item) for item in contents.items)
    raise TypeError(f"Unsupported hover contents: {type(contents).__name__}")


class HoverResult(BaseModel):
    """Hover response structure."""

    contents: HoverContents
    range: Optional[Range] = None

    @classmethod
    def from_lsp(cls, data: Any) -> Optional["HoverResult"]:
        if not isinstance(data, dict) or data.get("contents") is None:
            return None
        range_data = data.get("range")
        return cls(
            contents=parse_hover_contents(data["contents"]),
            range=Range.from_lsp(range_data) if range_data else None,
        )


class SymbolInformation(BaseModel):
    """Workspace symbol metadata."""

    name: str = Field(..., description="Symbol name.")
    kind: int = Field(..., description="Symbol kind (SymbolKind value).")
    location: Location = Field(..., description="Where the symbol is located.")
    container_name: Optional[str] = Field(
        None, description="Optional enclosing symbol name."
    )

    @classmethod
    def from_lsp(cls, data: dict[str, Any]) -> "SymbolInformation":
        # WorkspaceSymbol may omit the range and carry only a uri.
        location_data = data.get("location") or {}
        return cls(
            name=data.get("name", ""),
            kind=data.get("kind", 0),
            location=Location(
                uri=location_data.get("uri", ""),
                range=Range.from_lsp(location_data.get("range")),
            ),
            container_name=data.get("containerName"),
        )


class Diagnostic(BaseModel):
    range: Range
    severity: Optional[int] = None
    message: str = ""
    source: Optional[str] = None
    code: Optional[Union[int, str]] = None

    @classmethod
    def from_lsp(cls, data: dict[str, Any]) -> "Diagnostic":
        return cls(
            range=Range.from_lsp(data.get("range")),
            severity=data.get("severity"),
            message=data.get("message", ""),
            source=data.get("source"),
            code=data.get("code"),
        )
