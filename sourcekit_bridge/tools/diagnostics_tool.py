import asyncio
from typing import List

from sourcekit_bridge.lsp.session import LspSession
from sourcekit_bridge.lsp.types import Diagnostic, DiagnosticSeverity, severity_label
from sourcekit_bridge.tools.base import (
    BaseLspTool,
    FileToolInput,
    ToolResponse,
    pluralize,
)

NO_DIAGNOSTICS_MESSAGE = "No diagnostics (errors or warnings) found for this file"


def format_diagnostic(diagnostic: Diagnostic) -> str:
    start = diagnostic.range.start
    source = f" [{diagnostic.source}]" if diagnostic.source else ""
    return (
        f"{severity_label(diagnostic.severity)} at {start.line + 1}:{start.character + 1}: "
        f"{diagnostic.message}{source}"
    )


def summarize(diagnostics: List[Diagnostic]) -> str:
    # A missing severity counts as an error, matching severity_label.
    errors = sum(
        1 for d in diagnostics if d.severity in (None, DiagnosticSeverity.ERROR)
    )
    warnings = sum(1 for d in diagnostics if d.severity == DiagnosticSeverity.WARNING)
    others = len(diagnostics) - errors - warnings

    parts = []
    if errors:
        parts.append(pluralize(errors, "error"))
    if warnings:
        parts.append(pluralize(warnings, "warning"))
    if others:
        parts.append(pluralize(others, "other"))
    return ", ".join(parts)


class DiagnosticsTool(BaseLspTool):
    name = "swift-diagnostics"
    description = "Get compiler diagnostics (errors and warnings) for a file"
    args_schema = FileToolInput
    failure_prefix = "Failed to get diagnostics"

    def __init__(self, session: LspSession, settle_seconds: float = 0.1) -> None:
        super().__init__(session)
        self.settle_seconds = settle_seconds

    async def _execute(self, file: str) -> ToolResponse:
        uri = await self._ensure_open(file)

        # Diagnostics are pushed by the server on its own schedule.
        if self.settle_seconds:
            await asyncio.sleep(self.settle_seconds)

        diagnostics = self.session.get_diagnostics(uri)
        if not diagnostics:
            return ToolResponse(text=NO_DIAGNOSTICS_MESSAGE)

        listing = "\n".join(f"- {format_diagnostic(d)}" for d in diagnostics)
        return ToolResponse(
            text=(
                f"Found {pluralize(len(diagnostics), 'diagnostic')} "
                f"({summarize(diagnostics)}):\n{listing}"
            )
        )
