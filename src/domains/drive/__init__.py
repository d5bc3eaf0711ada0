"""Drive domain - file search, read, create, delete and sharing tools.

Each tool issues a single Drive v3 call with the client resolved for
the current request and formats the response as text.
"""

import io
from typing import Any, Optional

from googleapiclient.http import MediaIoBaseUpload

from shared.logging import get_logger
from domains.base import (
    FOLDER_MIME_TYPE,
    GOOGLE_APPS_PREFIX,
    BaseAdapter,
    ToolInputError,
)

logger = get_logger(__name__)

SEARCH_PAGE_SIZE = 10

# Export formats for Google-native documents
EXPORT_MIME_TYPES = {
    "application/vnd.google-apps.document": "text/markdown",
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
    "application/vnd.google-apps.drawing": "image/svg+xml",
}

PERMISSION_ROLES = ["reader", "writer", "owner", "commenter"]
PERMISSION_TYPES = ["user", "group", "domain", "anyone"]


def escape_query(value: str) -> str:
    """Escape a literal for use inside a quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_search_query(query: str) -> str:
    return f"fullText contains '{escape_query(query)}' and trashed = false"


def decode_text(data: Any) -> Optional[str]:
    """Decode downloaded content as UTF-8, or None if it is binary."""
    if isinstance(data, str):
        return data
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        return None


def list_files(client: Any, page_size: int = 10, page_token: Optional[str] = None) -> dict[str, Any]:
    """
    List one page of files visible to the current token.

    Returns:
        Dict with ``files`` (id, name, mimeType, uri) and ``nextPageToken``
    """
    params: dict[str, Any] = {
        "pageSize": page_size,
        "fields": "nextPageToken, files(id, name, mimeType)",
    }
    if page_token:
        params["pageToken"] = page_token

    response = client.drive.files().list(**params).execute()
    return {
        "files": [
            {
                "id": f["id"],
                "name": f["name"],
                "mimeType": f.get("mimeType"),
                "uri": f"gdrive:///{f['id']}",
            }
            for f in response.get("files", [])
        ],
        "nextPageToken": response.get("nextPageToken"),
    }


class DriveAdapter(BaseAdapter):
    """
    Drive domain adapter.

    Provides tools for:
    - Full-text search
    - Reading file content (exporting Google-native types)
    - Creating files and folders
    - Deleting and sharing files
    """

    domain = "drive"

    def _define_tools(self) -> None:
        self._add_tool(
            name="gdrive_search",
            description="Search for files in Google Drive",
            input_schema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query"
                    }
                },
                "required": ["query"]
            },
            action=self._search,
            error_prefix="Error searching files"
        )

        self._add_tool(
            name="gdrive_read_file",
            description="Read contents of a file from Google Drive",
            input_schema={
                "type": "object",
                "properties": {
                    "fileId": {
                        "type": "string",
                        "description": "ID of the file to read"
                    }
                },
                "required": ["fileId"]
            },
            action=self._read_file,
            error_prefix="Error reading file"
        )

        self._add_tool(
            name="gdrive_create_file",
            description="Create a new file in Google Drive",
            input_schema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Name of the file to create"
                    },
                    "mimeType": {
                        "type": "string",
                        "description": "MIME type of the file (e.g., 'text/plain', 'application/vnd.google-apps.document')"
                    },
                    "content": {
                        "type": "string",
                        "description": "Content of the file (for text files)"
                    },
                    "parentFolderId": {
                        "type": "string",
                        "description": "ID of the parent folder (optional, defaults to root)"
                    }
                },
                "required": ["name", "mimeType"]
            },
            action=self._create_file,
            error_prefix="Error creating file"
        )

        self._add_tool(
            name="gdrive_create_folder",
            description="Create a new folder in Google Drive",
            input_schema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Name of the folder to create"
                    },
                    "parentFolderId": {
                        "type": "string",
                        "description": "ID of the parent folder (optional, defaults to root)"
                    }
                },
                "required": ["name"]
            },
            action=self._create_folder,
            error_prefix="Error creating folder"
        )

        self._add_tool(
            name="gdrive_delete_file",
            description="Delete a file from Google Drive",
            input_schema={
                "type": "object",
                "properties": {
                    "fileId": {
                        "type": "string",
                        "description": "ID of the file to delete"
                    }
                },
                "required": ["fileId"]
            },
            action=self._delete_file,
            error_prefix="Error deleting file"
        )

        self._add_tool(
            name="gdrive_share_file",
            description="Share a file with specific permissions in Google Drive",
            input_schema={
                "type": "object",
                "properties": {
                    "fileId": {
                        "type": "string",
                        "description": "ID of the file to share"
                    },
                    "emailAddress": {
                        "type": "string",
                        "description": "Email address of the person to share with"
                    },
                    "role": {
                        "type": "string",
                        "description": "Role to assign (reader, writer, owner, commenter)",
                        "enum": PERMISSION_ROLES
                    },
                    "type": {
                        "type": "string",
                        "description": "Type of permission (user, group, domain, anyone)",
                        "enum": PERMISSION_TYPES,
                        "default": "user"
                    },
                    "sendNotificationEmail": {
                        "type": "boolean",
                        "description": "Whether to send notification email",
                        "default": True
                    }
                },
                "required": ["fileId", "emailAddress", "role"]
            },
            action=self._share_file,
            error_prefix="Error sharing file"
        )

    def _search(self, client: Any, params: dict[str, Any]) -> str:
        query = params["query"]
        response = client.drive.files().list(
            q=build_search_query(query),
            pageSize=SEARCH_PAGE_SIZE,
            fields="files(id, name, mimeType, modifiedTime, size)",
        ).execute()

        files = response.get("files", [])
        logger.debug("Drive search", query=query, matches=len(files))
        if not files:
            return f"No files found matching '{query}'"

        lines = [f"{f['name']} ({f.get('mimeType', 'unknown')}) - ID: {f['id']}" for f in files]
        return f"Found {len(files)} files:\n" + "\n".join(lines)

    def _read_file(self, client: Any, params: dict[str, Any]) -> str:
        file_id = params["fileId"]
        files = client.drive.files()
        meta = files.get(fileId=file_id, fields="id, name, mimeType").execute()
        name = meta.get("name", file_id)
        mime_type = meta.get("mimeType", "")

        if mime_type.startswith(GOOGLE_APPS_PREFIX):
            export_type = EXPORT_MIME_TYPES.get(mime_type)
            if export_type is None:
                raise ToolInputError(f"Unsupported Google Workspace type {mime_type} for {name}")
            data = files.export(fileId=file_id, mimeType=export_type).execute()
        else:
            data = files.get_media(fileId=file_id).execute()

        text = decode_text(data)
        if text is None:
            raise ToolInputError(f"Cannot read binary file {name} ({mime_type or 'unknown type'})")

        return f"Contents of {name}:\n\n{text}"

    def _create_file(self, client: Any, params: dict[str, Any]) -> str:
        mime_type = params["mimeType"]
        metadata: dict[str, Any] = {"name": params["name"], "mimeType": mime_type}
        if params.get("parentFolderId"):
            metadata["parents"] = [params["parentFolderId"]]

        request: dict[str, Any] = {"body": metadata, "fields": "id,name,mimeType,webViewLink"}
        content = params.get("content")
        if content and not mime_type.startswith(GOOGLE_APPS_PREFIX):
            request["media_body"] = MediaIoBaseUpload(
                io.BytesIO(content.encode("utf-8")),
                mimetype=mime_type,
                resumable=False,
            )

        created = client.drive.files().create(**request).execute()
        logger.info("File created", file_id=created.get("id"), mime_type=mime_type)
        return (
            "File created successfully!\n\n"
            f"Name: {created.get('name')}\n"
            f"ID: {created.get('id')}\n"
            f"Type: {created.get('mimeType')}\n"
            f"Link: {created.get('webViewLink')}"
        )

    def _create_folder(self, client: Any, params: dict[str, Any]) -> str:
        metadata: dict[str, Any] = {"name": params["name"], "mimeType": FOLDER_MIME_TYPE}
        if params.get("parentFolderId"):
            metadata["parents"] = [params["parentFolderId"]]

        folder = client.drive.files().create(
            body=metadata,
            fields="id,name,mimeType,webViewLink",
        ).execute()
        logger.info("Folder created", file_id=folder.get("id"))
        return (
            "Folder created successfully!\n\n"
            f"Name: {folder.get('name')}\n"
            f"ID: {folder.get('id')}\n"
            f"Link: {folder.get('webViewLink')}"
        )

    def _delete_file(self, client: Any, params: dict[str, Any]) -> str:
        file_id = params["fileId"]
        client.drive.files().delete(fileId=file_id).execute()
        logger.info("File deleted", file_id=file_id)
        return f"File with ID {file_id} has been deleted successfully."

    def _share_file(self, client: Any, params: dict[str, Any]) -> str:
        role = params["role"]
        permission = {
            "type": params.get("type") or "user",
            "role": role,
            "emailAddress": params["emailAddress"],
        }

        request: dict[str, Any] = {
            "fileId": params["fileId"],
            "body": permission,
            "sendNotificationEmail": params.get("sendNotificationEmail") is not False,
            "fields": "id,emailAddress,role,type",
        }
        # Drive rejects owner grants unless ownership transfer is explicit
        if role == "owner":
            request["transferOwnership"] = True

        created = client.drive.permissions().create(**request).execute()
        return (
            "File shared successfully!\n\n"
            f"Permission ID: {created.get('id')}\n"
            f"Email: {created.get('emailAddress')}\n"
            f"Role: {created.get('role')}\n"
            f"Type: {created.get('type')}"
        )


def register_drive_domain(registry) -> DriveAdapter:
    """Register the Drive tools with the registry."""
    adapter = DriveAdapter()
    registry.register_many(adapter.tools)
    logger.info("Domain registered", domain=adapter.domain, tool_count=len(adapter.tools))
    return adapter
