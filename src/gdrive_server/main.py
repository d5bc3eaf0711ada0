"""Google Drive MCP Server - FastAPI Application.

Serves the JSON-RPC /mcp endpoint and a plain REST surface over the
same tool registry. Authentication is a bearer token supplied by the
caller, not a server identity.
"""

import json
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from shared.config import Settings, get_settings
from shared.logging import bind_context, clear_context, get_logger, setup_logging
from shared.models import ExecutionContext, JsonRpcErrorCode, ToolCall
from gdrive_server import __version__
from gdrive_server.credentials import CredentialsUnavailable, CredentialStore
from gdrive_server.jsonrpc import JsonRpcDispatcher, error_chunk
from gdrive_server.registry import ToolRegistry, create_registry
from gdrive_server.router import ToolNotFound, ToolRouter
from domains.drive import list_files

logger = get_logger(__name__)

SERVICE_NAME = "gdrive-mcp-server"
ACCESS_TOKEN_HEADER = "x-access-token"
NDJSON_MEDIA_TYPE = "application/x-ndjson"
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 1000


# Request/Response Models
class SetTokenRequest(BaseModel):
    """Body of POST /set-token."""
    access_token: Optional[str] = Field(default=None, alias="accessToken")


class HealthResponse(BaseModel):
    """Health check response."""
    model_config = {"populate_by_name": True}

    status: str
    service: str
    version: str
    has_token: bool = Field(alias="hasToken")
    tool_count: int = Field(alias="toolCount")


class ToolListResponse(BaseModel):
    """Tools exposed by the server."""
    tools: list[dict[str, Any]]


def parse_page_size(raw: Optional[str]) -> int:
    """Parse the pageSize query value, falling back to the default when unusable."""
    try:
        page_size = int(raw) if raw is not None else DEFAULT_PAGE_SIZE
    except ValueError:
        return DEFAULT_PAGE_SIZE
    if page_size < 1:
        return DEFAULT_PAGE_SIZE
    return min(page_size, MAX_PAGE_SIZE)


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_registry(request: Request) -> ToolRegistry:
    return request.app.state.registry


def get_router(request: Request) -> ToolRouter:
    return request.app.state.router


def get_dispatcher(request: Request) -> JsonRpcDispatcher:
    return request.app.state.dispatcher


def require_token(credentials: CredentialStore = Depends(get_credentials)) -> CredentialStore:
    """Dependency rejecting REST calls made before any token is set."""
    if not credentials.has_token():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(CredentialsUnavailable()),
        )
    return credentials


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    logger.info(
        "Starting Google Drive MCP Server",
        host=settings.server.host,
        port=settings.server.port,
        tool_count=len(app.state.registry),
        has_token=app.state.credentials.has_token()
    )

    yield

    logger.info("Shutting down Google Drive MCP Server")


def create_app(
    settings: Optional[Settings] = None,
    credentials: Optional[CredentialStore] = None,
    registry: Optional[ToolRegistry] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to environment/YAML)
        credentials: Credential holder shared by every request
        registry: Tool registry (defaults to all domains)
    """
    if settings is None:
        settings = get_settings()
    if credentials is None:
        credentials = CredentialStore(env_token=settings.google.drive_access_token)
    if registry is None:
        registry = create_registry()
    router = ToolRouter(registry=registry, credentials=credentials)

    app = FastAPI(
        title="Google Drive MCP Server",
        description="Google Drive and Sheets tools over JSON-RPC and REST",
        version=__version__,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.credentials = credentials
    app.state.registry = registry
    app.state.router = router
    app.state.dispatcher = JsonRpcDispatcher(
        registry=registry,
        router=router,
        server_name=SERVICE_NAME,
        server_version=__version__
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def access_token_middleware(request: Request, call_next):
        """Take the token from the x-access-token header before routing."""
        clear_context()
        bind_context(request_id=request.headers.get("x-request-id") or str(uuid.uuid4()))

        token = request.headers.get(ACCESS_TOKEN_HEADER)
        if token:
            request.app.state.credentials.set_token(token)
        return await call_next(request)

    _add_routes(app)
    return app


def _add_routes(app: FastAPI) -> None:

    @app.get("/health", response_model=HealthResponse, response_model_by_alias=True, tags=["System"])
    async def health_check(
        credentials: CredentialStore = Depends(get_credentials),
        registry: ToolRegistry = Depends(get_registry)
    ):
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            version=__version__,
            has_token=credentials.has_token(),
            tool_count=len(registry)
        )

    @app.post("/set-token", tags=["Auth"])
    async def set_token(
        body: SetTokenRequest,
        credentials: CredentialStore = Depends(get_credentials)
    ):
        """Validate an access token against the Drive API and make it current."""
        if not body.access_token:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Access token is required"
            )

        is_valid = await run_in_threadpool(credentials.validate, body.access_token)
        if not is_valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid access token"
            )

        credentials.set_token(body.access_token)
        return {"success": True, "message": "Access token set successfully"}

    @app.get("/tools", response_model=ToolListResponse, tags=["Tools"])
    async def list_tools(registry: ToolRegistry = Depends(get_registry)):
        """List all available tools."""
        return ToolListResponse(tools=registry.list_public())

    @app.get("/tools/{tool_name}", tags=["Tools"])
    async def get_tool(tool_name: str, registry: ToolRegistry = Depends(get_registry)):
        """Get the description and input schema of one tool."""
        tool = registry.get(tool_name)
        if not tool:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Tool '{tool_name}' not found"
            )
        return tool.public_view()

    @app.post("/tools/{tool_name}", tags=["Execution"])
    async def call_tool(
        tool_name: str,
        request: Request,
        router: ToolRouter = Depends(get_router)
    ):
        """Execute a tool with the JSON body as its arguments."""
        try:
            arguments = await request.json()
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Request body must be a JSON object"
            )
        if not isinstance(arguments, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Request body must be a JSON object"
            )
        return await _run_tool(router, tool_name, arguments)

    @app.get("/files", tags=["Files"])
    async def get_files(
        page_size: Optional[str] = Query(default=None, alias="pageSize"),
        page_token: Optional[str] = Query(default=None, alias="pageToken"),
        credentials: CredentialStore = Depends(require_token)
    ):
        """List one page of Drive files."""
        try:
            return await run_in_threadpool(
                list_files, credentials.resolve(), parse_page_size(page_size), page_token
            )
        except Exception as e:
            logger.error("Error listing files", error=str(e), exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal server error"
            )

    @app.get("/files/{file_id}/content", tags=["Files"])
    async def get_file_content(file_id: str, router: ToolRouter = Depends(get_router)):
        """Read a file through the gdrive_read_file tool."""
        return await _run_tool(router, "gdrive_read_file", {"fileId": file_id})

    @app.post("/mcp", tags=["JSON-RPC"])
    async def mcp_endpoint(
        request: Request,
        dispatcher: JsonRpcDispatcher = Depends(get_dispatcher)
    ):
        """JSON-RPC endpoint streaming newline-delimited response chunks."""
        try:
            payload = json.loads(await request.body())
        except ValueError:
            chunk = error_chunk(JsonRpcErrorCode.PARSE_ERROR, "Parse error")
            return StreamingResponse(_ndjson(_single(chunk)), media_type=NDJSON_MEDIA_TYPE)

        return StreamingResponse(_ndjson(dispatcher.dispatch(payload)), media_type=NDJSON_MEDIA_TYPE)


async def _run_tool(router: ToolRouter, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    call = ToolCall(
        tool_name=tool_name,
        arguments=arguments,
        context=ExecutionContext(request_id=str(uuid.uuid4()), source="rest"),
    )
    try:
        result = await router.execute(call)
    except CredentialsUnavailable as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except ToolNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tool not found")
    except Exception as e:
        logger.error("Tool execution failed", tool=tool_name, error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )
    return result.to_wire()


async def _single(chunk: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
    yield chunk


async def _ndjson(chunks: AsyncIterator[dict[str, Any]]) -> AsyncIterator[str]:
    async for chunk in chunks:
        yield json.dumps(chunk, default=str) + "\n"


def main():
    """Run the Google Drive MCP Server."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    main()
