"""Base class for Google API domain adapters.

An adapter owns the tool definitions of one Google API surface and
the functions behind them. Every handler it hands to the registry is
wrapped so that no exception leaves it: failures come back as a
ToolResult with ``isError`` set.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from googleapiclient.errors import HttpError

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolHandler, ToolResult

logger = get_logger(__name__)

# Functions behind tools return the success text and raise on failure.
ActionFunction = Callable[[Any, dict[str, Any]], str]

GOOGLE_APPS_PREFIX = "application/vnd.google-apps"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class ToolInputError(ValueError):
    """The arguments or the target resource cannot be handled by the tool."""
    pass


def describe_error(error: Exception) -> str:
    """Human-readable message for a failed remote call."""
    if isinstance(error, HttpError):
        reason = getattr(error, "reason", None) or error.resp.reason
        return f"{reason} (HTTP {error.resp.status})"
    return str(error) or error.__class__.__name__


class BaseAdapter(ABC):
    """
    Base class for domain adapters.

    Subclasses define their tools in ``_define_tools`` via ``_add_tool``.
    """

    domain: str = "base"

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._define_tools()

    @abstractmethod
    def _define_tools(self) -> None:
        """Create the tool definitions of this domain."""
        pass

    @property
    def tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def _add_tool(
        self,
        name: str,
        description: str,
        input_schema: dict[str, Any],
        action: ActionFunction,
        error_prefix: str
    ) -> None:
        self._tools[name] = ToolDefinition(
            name=name,
            description=description,
            input_schema=input_schema,
            handler=self._guard(name, action, error_prefix),
        )

    def _guard(self, name: str, action: ActionFunction, error_prefix: str) -> ToolHandler:
        def handler(client: Any, arguments: dict[str, Any]) -> ToolResult:
            try:
                return ToolResult.success(action(client, arguments))
            except ToolInputError as e:
                logger.info("Tool rejected input", tool=name, error=str(e))
                return ToolResult.failure(f"{error_prefix}: {e}")
            except Exception as e:
                logger.warning(
                    "Remote operation failed",
                    tool=name,
                    domain=self.domain,
                    error=describe_error(e)
                )
                return ToolResult.failure(f"{error_prefix}: {describe_error(e)}")

        handler.__name__ = name
        return handler
