"""Google Drive MCP Server - credentials, tool registry, routing and transport.

Serves Google Drive and Sheets tools to MCP clients over HTTP, acting
with whichever bearer token the caller supplied most recently.
"""

__version__ = "0.1.0"

from gdrive_server.credentials import CredentialsUnavailable, CredentialStore, GoogleClients
from gdrive_server.registry import ToolRegistry, create_registry
from gdrive_server.router import ToolNotFound, ToolRouter

__all__ = [
    "__version__",
    "CredentialsUnavailable",
    "CredentialStore",
    "GoogleClients",
    "ToolRegistry",
    "create_registry",
    "ToolNotFound",
    "ToolRouter",
]
