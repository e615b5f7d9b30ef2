from sourcekit_bridge.lsp.types import parse_locations
from sourcekit_bridge.tools.base import (
    BaseLspTool,
    PositionToolInput,
    ToolResponse,
    format_location,
    to_lsp_position,
)

NO_DEFINITION_MESSAGE = "No definition found at this position"


class DefinitionTool(BaseLspTool):
    name = "swift-definition"
    description = "Find the definition of a symbol at a specific position"
    args_schema = PositionToolInput
    failure_prefix = "Failed to find definition"

    async def _execute(self, file: str, line: int, column: int) -> ToolResponse:
        position = to_lsp_position(line, column)
        uri = await self._ensure_open(file)

        raw = await self.session.definition(uri, position.line, position.character)
        locations = parse_locations(raw)
        if not locations:
            return ToolResponse(text=NO_DEFINITION_MESSAGE)

        definitions = [format_location(location) for location in locations]
        if len(definitions) == 1:
            return ToolResponse(text=f"Definition found at: {definitions[0]}")
        listing = "\n".join(f"- {definition}" for definition in definitions)
        return ToolResponse(text=f"Multiple definitions found:\n{listing}")
