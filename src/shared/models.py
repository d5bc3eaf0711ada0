"""Core data models for the Google Drive MCP server.

Wire-level JSON-RPC structures, tool descriptors and the uniform
tool result envelope shared by the transport, router and domains.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"


class JsonRpcMethod(str, Enum):
    """JSON-RPC methods understood by the /mcp endpoint."""
    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"


class JsonRpcErrorCode(IntEnum):
    """Error codes written in JSON-RPC error objects."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INTERNAL_ERROR = -32603
    CREDENTIALS_UNAVAILABLE = -32001


class TextContent(BaseModel):
    """A single text block of a tool result."""
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """
    Result envelope returned by every tool handler.

    Success and failure share this shape; ``is_error`` is the only
    success signal the transport looks at.
    """
    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def success(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)], is_error=False)

    @classmethod
    def failure(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)], is_error=True)

    @property
    def text(self) -> str:
        """Concatenated text of all content blocks."""
        return "\n".join(block.text for block in self.content)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# Handlers receive the resolved Google clients and the tool arguments.
ToolHandler = Callable[[Any, dict[str, Any]], ToolResult]


class ToolDefinition(BaseModel):
    """
    Immutable description of an exposed tool.

    The handler is never serialized; ``public_view`` is the projection
    clients see from tools/list and GET /tools.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique tool name, e.g. gdrive_search")
    description: str = Field(..., description="Human-readable description")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON Schema for the tool arguments"
    )
    handler: ToolHandler = Field(..., exclude=True)

    def public_view(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ExecutionContext(BaseModel):
    """Request metadata used to correlate log lines of one tool call."""
    request_id: str = Field(..., description="Unique request identifier")
    source: str = Field(default="jsonrpc", description="jsonrpc or rest")
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ToolCall(BaseModel):
    """A request to execute a named tool with arguments."""
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    context: ExecutionContext


class JsonRpcError(BaseModel):
    """Error member of a JSON-RPC response."""
    code: int
    message: str


class JsonRpcResponse(BaseModel):
    """A single chunk written to the /mcp response stream."""
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Optional[Any] = None
    method: Optional[str] = None
    params: Optional[dict[str, Any]] = None
    result: Optional[dict[str, Any]] = None
    error: Optional[JsonRpcError] = None

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        # id is always echoed, even when null
        data["id"] = self.id
        return data
