# tool_registry.py
# Description: Catalog of callable tools with capability and parameter checks
#
# Imports
from typing import Any, Dict, List, Optional, Tuple
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
from .tool_base import Tool, ToolExecutionContext
from ..Sessions.session_models import DestructiveAction, ToolCategory
#
#######################################################################################################################
#
# Classes:

# Action assumed for a tool that does not name one itself
CATEGORY_ACTIONS: Dict[ToolCategory, DestructiveAction] = {
    ToolCategory.VAULT_OPERATIONS: DestructiveAction.MODIFY_FILES,
    ToolCategory.EXTERNAL_MCP: DestructiveAction.EXTERNAL_API_CALLS,
}

_JSON_TYPES = {
    "string": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "array": "array",
    "object": "object",
}


def _json_type_of(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if value is None:
        return "null"
    return "object"


class ToolRegistry:
    """
    Holds the tools by name and answers the per-session questions the
    execution engine asks: is this tool enabled, does this call need a
    confirmation, are these arguments acceptable.
    """

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register_tool(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.warning(f"Tool {tool.name} is already registered, overwriting")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name} ({tool.category.value})")

    def unregister_tool(self, name: str) -> bool:
        removed = self._tools.pop(name, None) is not None
        if removed:
            logger.debug(f"Unregistered tool: {name}")
        return removed

    def get_tool(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def get_all_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def get_tools_by_category(self, category: ToolCategory) -> List[Tool]:
        return [tool for tool in self._tools.values() if tool.category == category]

    def is_tool_enabled(self, tool: Tool, context: ToolExecutionContext) -> bool:
        return tool.category in context.session.context.enabled_tools

    def get_enabled_tools(self, context: ToolExecutionContext) -> List[Tool]:
        """Tools whose category the session has enabled."""
        return [tool for tool in self._tools.values() if self.is_tool_enabled(tool, context)]

    async def requires_confirmation(
        self,
        tool_name: str,
        context: ToolExecutionContext,
        params: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Whether a call must be confirmed before it runs.

        True when the tool always asks, or when the destructive action of the
        call is listed in the session's confirmation set.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            return False
        if tool.requires_confirmation:
            return True

        action = await tool.action_for(params or {}, context)
        if action is None:
            action = CATEGORY_ACTIONS.get(tool.category)
        return action is not None and action in context.session.context.require_confirmation

    def get_tool_descriptions(self, context: ToolExecutionContext) -> List[dict]:
        """Enabled tools in OpenAI function-calling format."""
        return [tool.to_openai_format() for tool in self.get_enabled_tools(context)]

    def validate_parameters(self, tool_name: str, params: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Check call arguments against the tool's parameter schema.

        Returns:
            (valid, errors)
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            return False, [f"Tool {tool_name} not found"]

        schema = tool.parameters or {}
        properties: Dict[str, dict] = schema.get("properties", {})
        errors = []

        for required in schema.get("required", []):
            if required not in params:
                errors.append(f"Missing required parameter: {required}")

        for key, value in params.items():
            prop = properties.get(key)
            if prop is None:
                errors.append(f"Unknown parameter: {key}")
                continue

            expected = _JSON_TYPES.get(prop.get("type", ""))
            actual = _json_type_of(value)
            if expected and expected != actual:
                errors.append(f"Parameter {key} should be {expected} but got {actual}")
                continue
            if prop.get("type") == "integer" and isinstance(value, float) and not value.is_integer():
                errors.append(f"Parameter {key} should be integer but got number")
                continue

            allowed = prop.get("enum")
            if allowed and value not in allowed:
                errors.append(f"Parameter {key} must be one of: {', '.join(str(a) for a in allowed)}")

        return not errors, errors

#
# End of tool_registry.py
#######################################################################################################################
