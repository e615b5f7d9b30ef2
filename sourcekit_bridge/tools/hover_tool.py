from sourcekit_bridge.lsp.types import HoverResult, render_hover_contents
from sourcekit_bridge.tools.base import (
    BaseLspTool,
    PositionToolInput,
    ToolResponse,
    to_lsp_position,
)

NO_HOVER_MESSAGE = "No type information available at this position"


class HoverTool(BaseLspTool):
    name = "swift-hover"
    description = (
        "Get type information and documentation for a symbol at a specific position"
    )
    args_schema = PositionToolInput
    failure_prefix = "Failed to get hover information"

    async def _execute(self, file: str, line: int, column: int) -> ToolResponse:
        position = to_lsp_position(line, column)
        uri = await self._ensure_open(file)

        raw = await self.session.hover(uri, position.line, position.character)
        hover = HoverResult.from_lsp(raw)
        if hover is None:
            return ToolResponse(text=NO_HOVER_MESSAGE)

        text = render_hover_contents(hover.contents)
        return ToolResponse(text=text or NO_HOVER_MESSAGE)
