"""
Shared plumbing for the agent-facing tools.

Tools take filesystem paths and 1-based line/column numbers; the language
server wants file:// URIs and 0-based positions. Everything that converts
between the two lives here, together with the error boundary every tool runs
behind.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Optional, Tuple, Type
from urllib.parse import unquote, urlparse

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

from sourcekit_bridge.exceptions import BridgeError, ValidationError
from sourcekit_bridge.logger import log_context, setup_logger
from sourcekit_bridge.lsp.session import LspSession
from sourcekit_bridge.lsp.types import Location, Position

logger = setup_logger(__name__)

FILE_NOT_FOUND_TAG = "file_not_found"
INTERNAL_ERROR_TAG = "internal_error"


class ToolResponse(BaseModel):
    """Rendered tool output: one text payload plus an optional error tag."""

    text: str = Field(..., description="Human-readable result or failure message.")
    error: Optional[str] = Field(
        None, description="Machine-readable failure kind; None on success."
    )

    @property
    def ok(self) -> bool:
        return self.error is None


class FileToolInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    file: str = Field(..., description="Path to Swift file")


class PositionToolInput(FileToolInput):
    line: int = Field(..., description="Line number (1-based)")
    column: int = Field(..., description="Column number (1-based)")


def path_to_uri(path: str) -> str:
    return Path(path).expanduser().resolve().as_uri()


def uri_to_path(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        return uri
    return unquote(parsed.path)


def require_file(file: str) -> None:
    if not file or not file.strip():
        raise ValidationError("file must be a non-empty path")


def to_lsp_position(line: int, column: int) -> Position:
    """Validate 1-based coordinates and convert them to a 0-based position."""
    if line < 1:
        raise ValidationError(f"line must be >= 1, got {line}")
    if column < 1:
        raise ValidationError(f"column must be >= 1, got {column}")
    return Position(line=line - 1, character=column - 1)


def format_location(location: Location, with_column: bool = True) -> str:
    start = location.range.start
    text = f"{uri_to_path(location.uri)}:{start.line + 1}"
    if with_column:
        text += f":{start.character + 1}"
    return text


def pluralize(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def read_document(file: str) -> Tuple[str, str]:
    """Return ``(uri, content)`` for ``file``."""
    path = Path(file).expanduser()
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"File not found: {file}") from exc
    return path_to_uri(file), content


class BaseLspTool:
    """
    One externally exposed operation.

    Subclasses implement `_execute`; `arun` wraps it so that no exception
    escapes and every failure comes back as text prefixed with
    ``failure_prefix``.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    args_schema: ClassVar[Type[BaseModel]]
    failure_prefix: ClassVar[str] = "Operation failed"

    def __init__(self, session: LspSession) -> None:
        self.session = session

    async def _execute(self, **kwargs: Any) -> ToolResponse:
        raise NotImplementedError

    async def _ensure_open(self, file: str) -> str:
        """Read ``file`` from disk and sync it with the server; returns its URI."""
        require_file(file)
        uri, content = read_document(file)
        await self.session.open_document(uri, content)
        return uri

    async def arun(self, **kwargs: Any) -> ToolResponse:
        with log_context(tool=self.name):
            logger.info("Running tool {} with {}", self.name, kwargs)
            try:
                return await self._execute(**kwargs)
            except ValidationError as exc:
                return ToolResponse(text=f"Validation error: {exc}", error=exc.error_tag)
            except FileNotFoundError as exc:
                return self._failure(exc, FILE_NOT_FOUND_TAG)
            except BridgeError as exc:
                logger.warning("Tool {} failed: {}", self.name, exc)
                return self._failure(exc, exc.error_tag)
            except Exception as exc:
                logger.exception("Tool {} raised unexpectedly", self.name)
                return self._failure(exc, INTERNAL_ERROR_TAG)

    def _failure(self, exc: BaseException, tag: str) -> ToolResponse:
        return ToolResponse(text=f"{self.failure_prefix}: {exc}", error=tag)

    async def _arun_dict(self, **kwargs: Any) -> dict:
        response = await self.arun(**kwargs)
        return response.model_dump()

    def as_structured_tool(self) -> StructuredTool:
        return StructuredTool.from_function(
            coroutine=self._arun_dict,
            name=self.name,
            description=self.description,
            args_schema=self.args_schema,
        )
