"""Tool Registry.

Holds the static, ordered list of tools registered at startup and
resolves them by exact name.
"""

from typing import Any, Optional

from shared.logging import get_logger
from shared.models import ToolDefinition
from shared.schema import validate_schema

logger = get_logger(__name__)


class ToolRegistry:
    """
    Registry of exposed tools.

    Tools are registered once at startup and never removed. Iteration
    order is registration order.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug("Tool registered", tool=tool.name)

    def register_many(self, tools: list[ToolDefinition]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, tool_name: str) -> Optional[ToolDefinition]:
        """Exact-match lookup; None means the tool does not exist."""
        return self._tools.get(tool_name)

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def list_public(self) -> list[dict[str, Any]]:
        """Tool descriptions without their handlers, as clients see them."""
        return [tool.public_view() for tool in self._tools.values()]

    def validate_input(
        self,
        tool_name: str,
        arguments: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate arguments against a tool's input schema.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        tool = self.get(tool_name)
        if not tool:
            return False, [f"Tool '{tool_name}' not found"]

        return validate_schema(arguments, tool.input_schema)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._tools


def create_registry() -> ToolRegistry:
    """Build a registry holding every domain's tools."""
    from domains import load_all_domains

    registry = ToolRegistry()
    load_all_domains(registry)
    logger.info("Tool registry loaded", tool_count=len(registry))
    return registry
