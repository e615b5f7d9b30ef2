from typing import Any, Dict, List, Mapping, Optional

from langchain_core.tools import StructuredTool
from pydantic import ValidationError as SchemaValidationError

from sourcekit_bridge.lsp.session import LspSession
from sourcekit_bridge.tools.base import BaseLspTool, ToolResponse
from sourcekit_bridge.tools.definition_tool import DefinitionTool
from sourcekit_bridge.tools.diagnostics_tool import DiagnosticsTool
from sourcekit_bridge.tools.hover_tool import HoverTool
from sourcekit_bridge.tools.references_tool import ReferencesTool
from sourcekit_bridge.tools.symbols_tool import SymbolsTool

UNKNOWN_TOOL_TAG = "unknown_tool"


class ToolService:
    """Owns one instance of every tool, all bound to the same session."""

    def __init__(self, session: LspSession, diagnostics_settle_seconds: float = 0.1):
        self.session = session
        tools: List[BaseLspTool] = [
            HoverTool(session),
            DefinitionTool(session),
            ReferencesTool(session),
            SymbolsTool(session),
            DiagnosticsTool(session, settle_seconds=diagnostics_settle_seconds),
        ]
        self.tools: Dict[str, BaseLspTool] = {tool.name: tool for tool in tools}

    def get_tool(self, name: str) -> Optional[BaseLspTool]:
        return self.tools.get(name)

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.args_schema.model_json_schema(),
            }
            for tool in self.tools.values()
        ]

    def get_tools(self) -> List[StructuredTool]:
        return [tool.as_structured_tool() for tool in self.tools.values()]

    async def call(self, name: str, arguments: Optional[Mapping[str, Any]]) -> ToolResponse:
        """Validate raw arguments against the tool schema and run it."""
        tool = self.tools.get(name)
        if tool is None:
            return ToolResponse(text=f"Error: Unknown tool: {name}", error=UNKNOWN_TOOL_TAG)
        if arguments is None:
            return ToolResponse(
                text="Error: No arguments provided", error="validation_error"
            )
        try:
            parsed = tool.args_schema.model_validate(dict(arguments))
        except SchemaValidationError as exc:
            problems = ", ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'root'} {err['msg']}"
                for err in exc.errors()
            )
            return ToolResponse(text=f"Validation error: {problems}", error="validation_error")
        return await tool.arun(**parsed.model_dump())
