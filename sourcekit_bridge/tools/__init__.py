from sourcekit_bridge.tools.base import BaseLspTool, ToolResponse
from sourcekit_bridge.tools.definition_tool import DefinitionTool
from sourcekit_bridge.tools.diagnostics_tool import DiagnosticsTool
from sourcekit_bridge.tools.hover_tool import HoverTool
from sourcekit_bridge.tools.references_tool import ReferencesTool
from sourcekit_bridge.tools.symbols_tool import SymbolsTool
from sourcekit_bridge.tools.tool_service import ToolService

__all__ = [
    "BaseLspTool",
    "DefinitionTool",
    "DiagnosticsTool",
    "HoverTool",
    "ReferencesTool",
    "SymbolsTool",
    "ToolResponse",
    "ToolService",
]
