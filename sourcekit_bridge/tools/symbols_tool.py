from pydantic import BaseModel, ConfigDict, Field

from sourcekit_bridge.exceptions import ValidationError
from sourcekit_bridge.lsp.types import SymbolInformation, symbol_kind_label
from sourcekit_bridge.tools.base import (
    BaseLspTool,
    ToolResponse,
    format_location,
    pluralize,
)


class SymbolsToolInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(..., description="Search query for symbol names")


def format_symbol(symbol: SymbolInformation) -> str:
    text = f"{symbol.name} ({symbol_kind_label(symbol.kind)})"
    if symbol.container_name:
        text += f" in {symbol.container_name}"
    return f"{text} - {format_location(symbol.location, with_column=False)}"


class SymbolsTool(BaseLspTool):
    name = "swift-symbols"
    description = "Search for symbols in the workspace"
    args_schema = SymbolsToolInput
    failure_prefix = "Failed to search symbols"

    async def _execute(self, query: str) -> ToolResponse:
        if not query or not query.strip():
            raise ValidationError("query must be a non-empty string")

        raw = await self.session.workspace_symbols(query)
        symbols = [
            SymbolInformation.from_lsp(item) for item in raw or [] if isinstance(item, dict)
        ]
        if not symbols:
            return ToolResponse(text=f'No symbols found matching "{query}"')

        listing = "\n".join(f"- {format_symbol(symbol)}" for symbol in symbols)
        return ToolResponse(
            text=f'Found {pluralize(len(symbols), "symbol")} matching "{query}":\n{listing}'
        )
