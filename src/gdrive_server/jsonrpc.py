"""JSON-RPC dispatch for the /mcp endpoint.

A request produces a stream of JSON-RPC chunks. Most methods yield a
single response; ``tools/call`` yields a "call started" notification
followed by the result chunk, which is the authoritative one.
"""

import uuid
from typing import Any, AsyncIterator, Callable, Optional

from shared.logging import get_logger
from shared.models import (
    JSONRPC_VERSION,
    ExecutionContext,
    JsonRpcError as JsonRpcErrorModel,
    JsonRpcErrorCode,
    JsonRpcMethod,
    JsonRpcResponse,
    ToolCall,
)
from gdrive_server.credentials import CredentialsUnavailable
from gdrive_server.registry import ToolRegistry
from gdrive_server.router import ToolNotFound, ToolRouter

logger = get_logger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CALL_STARTED_METHOD = "notifications/tools/call_started"

Chunk = dict[str, Any]
MethodHandler = Callable[[dict[str, Any], Any], AsyncIterator[Chunk]]


class JsonRpcError(Exception):
    """A protocol-level failure rendered as a JSON-RPC error object."""

    def __init__(self, code: JsonRpcErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def error_chunk(code: JsonRpcErrorCode, message: str, request_id: Any = None) -> Chunk:
    return JsonRpcResponse(
        id=request_id,
        error=JsonRpcErrorModel(code=int(code), message=message),
    ).to_wire()


def result_chunk(result: dict[str, Any], request_id: Any) -> Chunk:
    return JsonRpcResponse(id=request_id, result=result).to_wire()


class JsonRpcDispatcher:
    """
    Dispatches JSON-RPC requests to method handlers.

    Every member of JsonRpcMethod has exactly one handler.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        router: ToolRouter,
        server_name: str = "gdrive-mcp-server",
        server_version: str = "0.1.0"
    ) -> None:
        self.registry = registry
        self.router = router
        self.server_info = {"name": server_name, "version": server_version}
        self._handlers: dict[JsonRpcMethod, MethodHandler] = {
            JsonRpcMethod.INITIALIZE: self._initialize,
            JsonRpcMethod.INITIALIZED: self._initialized,
            JsonRpcMethod.PING: self._ping,
            JsonRpcMethod.TOOLS_LIST: self._tools_list,
            JsonRpcMethod.TOOLS_CALL: self._tools_call,
        }
        missing = set(JsonRpcMethod) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for JSON-RPC methods: {sorted(m.value for m in missing)}")

    async def dispatch(self, payload: Any) -> AsyncIterator[Chunk]:
        """
        Handle one decoded request body.

        Yields:
            JSON-RPC chunks to write, one per line
        """
        request_id: Optional[Any] = payload.get("id") if isinstance(payload, dict) else None

        try:
            method, params = self._parse(payload)
            async for chunk in self._handlers[method](params, request_id):
                yield chunk
        except JsonRpcError as e:
            logger.warning("JSON-RPC request failed", code=int(e.code), error=e.message)
            yield error_chunk(e.code, e.message, request_id)
        except Exception as e:
            logger.error("JSON-RPC dispatch failed", error=str(e), exc_info=True)
            yield error_chunk(JsonRpcErrorCode.INTERNAL_ERROR, f"Internal error: {e}", request_id)

    def _parse(self, payload: Any) -> tuple[JsonRpcMethod, dict[str, Any]]:
        if not isinstance(payload, dict) or payload.get("jsonrpc") != JSONRPC_VERSION:
            raise JsonRpcError(
                JsonRpcErrorCode.INVALID_REQUEST,
                f"Invalid Request: jsonrpc must be '{JSONRPC_VERSION}'"
            )

        raw_method = payload.get("method")
        try:
            method = JsonRpcMethod(raw_method)
        except ValueError:
            raise JsonRpcError(
                JsonRpcErrorCode.METHOD_NOT_FOUND,
                f"Method not found: {raw_method}"
            )

        params = payload.get("params") or {}
        if not isinstance(params, dict):
            raise JsonRpcError(JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request: params must be an object")
        return method, params

    async def _initialize(self, params: dict[str, Any], request_id: Any) -> AsyncIterator[Chunk]:
        logger.info("Client initialized", client=params.get("clientInfo"))
        yield result_chunk(
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": self.server_info,
            },
            request_id
        )

    async def _initialized(self, params: dict[str, Any], request_id: Any) -> AsyncIterator[Chunk]:
        logger.debug("Client initialization acknowledged")
        return
        yield  # async generator with no chunks

    async def _ping(self, params: dict[str, Any], request_id: Any) -> AsyncIterator[Chunk]:
        yield result_chunk({}, request_id)

    async def _tools_list(self, params: dict[str, Any], request_id: Any) -> AsyncIterator[Chunk]:
        yield result_chunk({"tools": self.registry.list_public()}, request_id)

    async def _tools_call(self, params: dict[str, Any], request_id: Any) -> AsyncIterator[Chunk]:
        name = params.get("name")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        elif not isinstance(arguments, dict):
            raise JsonRpcError(JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request: arguments must be an object")

        if not self.router.credentials.has_token():
            raise JsonRpcError(
                JsonRpcErrorCode.CREDENTIALS_UNAVAILABLE,
                "Access token not set. Use /set-token or x-access-token header."
            )
        if not isinstance(name, str) or self.registry.get(name) is None:
            raise JsonRpcError(JsonRpcErrorCode.METHOD_NOT_FOUND, f"Tool not found: {name}")

        yield JsonRpcResponse(
            id=request_id,
            method=CALL_STARTED_METHOD,
            params={"id": request_id, "name": name, "arguments": arguments},
        ).to_wire()

        call = ToolCall(
            tool_name=name,
            arguments=arguments,
            context=ExecutionContext(request_id=str(request_id or uuid.uuid4()), source="jsonrpc"),
        )
        try:
            result = await self.router.execute(call)
        except CredentialsUnavailable as e:
            raise JsonRpcError(JsonRpcErrorCode.CREDENTIALS_UNAVAILABLE, str(e))
        except ToolNotFound as e:
            raise JsonRpcError(JsonRpcErrorCode.METHOD_NOT_FOUND, str(e))

        wire = result.to_wire()
        chunk = JsonRpcResponse(
            id=request_id,
            method=JsonRpcMethod.TOOLS_CALL.value,
            result=wire,
        ).to_wire()
        # content and isError are also mirrored at the top level of the chunk
        chunk.update(wire)
        yield chunk
