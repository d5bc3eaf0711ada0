"""Tool Router.

Runs a tool call: requires credentials, looks the tool up, validates
the arguments and invokes the handler off the event loop.
"""

import asyncio
import functools
import time

from shared.logging import get_logger
from shared.models import ToolCall, ToolResult
from gdrive_server.credentials import CredentialsUnavailable, CredentialStore
from gdrive_server.registry import ToolRegistry

logger = get_logger(__name__)


class ToolNotFound(Exception):
    """The requested tool is not in the registry."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class ToolRouter:
    """
    Routes tool calls to registered handlers.

    Credential and lookup failures raise, so each transport can map them
    to its own error format. Handler failures come back as ToolResult.
    """

    def __init__(self, registry: ToolRegistry, credentials: CredentialStore) -> None:
        self.registry = registry
        self.credentials = credentials

    async def execute(self, call: ToolCall) -> ToolResult:
        """
        Execute a tool call.

        Raises:
            CredentialsUnavailable: If no access token is set
            ToolNotFound: If the tool name is unknown
        """
        start_time = time.time()
        tool_name = call.tool_name

        if not self.credentials.has_token():
            logger.warning("Tool call without access token", tool=tool_name)
            raise CredentialsUnavailable()

        tool = self.registry.get(tool_name)
        if tool is None:
            logger.warning("Unknown tool requested", tool=tool_name)
            raise ToolNotFound(tool_name)

        is_valid, errors = self.registry.validate_input(tool_name, call.arguments)
        if not is_valid:
            logger.info("Tool arguments rejected", tool=tool_name, errors=errors)
            return ToolResult.failure(
                f"Invalid arguments for {tool_name}: {'; '.join(errors)}"
            )

        client = self.credentials.resolve()

        logger.debug(
            "Executing tool",
            tool=tool_name,
            request_id=call.context.request_id,
            source=call.context.source
        )

        # googleapiclient is blocking; keep it off the event loop
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, functools.partial(tool.handler, client, call.arguments)
        )

        logger.info(
            "Tool executed",
            tool=tool_name,
            is_error=result.is_error,
            execution_time_ms=round((time.time() - start_time) * 1000, 2)
        )
        return result
