"""Shared models, configuration and logging for the Google Drive MCP server."""

from shared.models import (
    ExecutionContext,
    JsonRpcErrorCode,
    JsonRpcMethod,
    TextContent,
    ToolCall,
    ToolDefinition,
    ToolResult,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "ExecutionContext",
    "JsonRpcErrorCode",
    "JsonRpcMethod",
    "TextContent",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
