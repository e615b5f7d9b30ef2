from pydantic import Field

from sourcekit_bridge.lsp.types import parse_locations
from sourcekit_bridge.tools.base import (
    BaseLspTool,
    PositionToolInput,
    ToolResponse,
    format_location,
    pluralize,
    to_lsp_position,
)

NO_REFERENCES_MESSAGE = "No references found for this symbol"


class ReferencesToolInput(PositionToolInput):
    include_declaration: bool = Field(
        True, description="Include declaration in results"
    )


class ReferencesTool(BaseLspTool):
    name = "swift-references"
    description = "Find all references to a symbol at a specific position"
    args_schema = ReferencesToolInput
    failure_prefix = "Failed to find references"

    async def _execute(
        self, file: str, line: int, column: int, include_declaration: bool = True
    ) -> ToolResponse:
        position = to_lsp_position(line, column)
        uri = await self._ensure_open(file)

        raw = await self.session.references(
            uri, position.line, position.character, include_declaration=include_declaration
        )
        locations = parse_locations(raw)
        if not locations:
            return ToolResponse(text=NO_REFERENCES_MESSAGE)

        listing = "\n".join(f"- {format_location(location)}" for location in locations)
        return ToolResponse(
            text=f"Found {pluralize(len(locations), 'reference')}:\n{listing}"
        )
