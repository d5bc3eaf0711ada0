"""End-to-end tests for the JSON-RPC and REST surfaces."""

import json

import pytest
from fastapi.testclient import TestClient

from shared.config import Settings
from shared.models import ToolDefinition


def read_chunks(response) -> list[dict]:
    """Decode a newline-delimited JSON response body."""
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


def rpc(method: str, params: dict | None = None, request_id=1) -> dict:
    return {"jsonrpc": "2.0", "method": method, "params": params or {}, "id": request_id}


@pytest.fixture
def app(credentials):
    from gdrive_server.main import create_app

    return create_app(settings=Settings(), credentials=credentials)


@pytest.fixture
def client(app):
    return TestClient(app)


class TestJsonRpcEndpoint:
    """Tests for POST /mcp."""

    def test_initialize(self, client):
        """Test initialize returns server info and tool capability."""
        response = client.post("/mcp", json=rpc("initialize", request_id="init-1"))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        [chunk] = read_chunks(response)
        assert chunk["id"] == "init-1"
        assert chunk["result"]["serverInfo"]["name"] == "gdrive-mcp-server"
        assert "tools" in chunk["result"]["capabilities"]

    def test_wrong_protocol_version(self, client):
        """Test a jsonrpc tag other than 2.0 is an invalid request echoing the id."""
        response = client.post("/mcp", json={"jsonrpc": "1.0", "method": "tools/list", "id": 7})

        [chunk] = read_chunks(response)
        assert chunk["error"]["code"] == -32600
        assert chunk["id"] == 7
        assert "result" not in chunk

    def test_unparseable_body(self, client):
        """Test invalid JSON is a parse error with a null id."""
        response = client.post("/mcp", content=b"{not json", headers={"content-type": "application/json"})

        [chunk] = read_chunks(response)
        assert chunk["error"]["code"] == -32700
        assert chunk["id"] is None

    def test_non_object_body(self, client):
        """Test valid JSON that is not an object is an invalid request with a null id."""
        for body in ([rpc("ping")], "x"):
            response = client.post("/mcp", json=body)

            [chunk] = read_chunks(response)
            assert chunk["error"]["code"] == -32600
            assert chunk["id"] is None

    def test_ping(self, client):
        """Test ping answers with an empty result."""
        response = client.post("/mcp", json=rpc("ping", request_id="p-1"))

        [chunk] = read_chunks(response)
        assert chunk == {"jsonrpc": "2.0", "id": "p-1", "result": {}}

    def test_unknown_method(self, client):
        """Test unknown methods return method not found."""
        response = client.post("/mcp", json=rpc("resources/list", request_id=3))

        [chunk] = read_chunks(response)
        assert chunk["error"]["code"] == -32601
        assert chunk["id"] == 3

    def test_initialized_notification_has_no_chunks(self, client):
        """Test the initialized notification is acknowledged without output."""
        response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert response.status_code == 200
        assert read_chunks(response) == []

    def test_tools_list_hides_handlers(self, client, app):
        """Test tools/list matches the registry without handlers."""
        response = client.post("/mcp", json=rpc("tools/list"))

        [chunk] = read_chunks(response)
        tools = chunk["result"]["tools"]
        assert tools == [tool.public_view() for tool in app.state.registry.list_tools()]
        assert len(tools) == 8
        for tool in tools:
            assert "handler" not in tool

    def test_tools_call_without_token(self, client, clients, client_factory):
        """Test tools/call before any token is set fails without remote calls."""
        response = client.post("/mcp", json=rpc(
            "tools/call", {"name": "gdrive_search", "arguments": {"query": "x"}}, request_id=5
        ))

        [chunk] = read_chunks(response)
        assert chunk["error"]["code"] == -32001
        assert chunk["id"] == 5
        client_factory.assert_not_called()
        assert clients.mock_calls == []

    def test_tools_call_unknown_tool(self, client):
        """Test an unknown tool name is method not found and names the tool."""
        response = client.post(
            "/mcp",
            json=rpc("tools/call", {"name": "nonexistent", "arguments": {}}, request_id=9),
            headers={"x-access-token": "tok"},
        )

        [chunk] = read_chunks(response)
        assert chunk["error"]["code"] == -32601
        assert "nonexistent" in chunk["error"]["message"]
        assert chunk["id"] == 9

    def test_tools_call_non_object_arguments(self, client, client_factory):
        """Test non-object arguments are rejected before the call starts."""
        for arguments in ("quarterly", []):
            response = client.post(
                "/mcp",
                json=rpc("tools/call", {"name": "gdrive_search", "arguments": arguments}, request_id=2),
                headers={"x-access-token": "tok"},
            )

            [chunk] = read_chunks(response)
            assert chunk["error"]["code"] == -32600
            assert "arguments must be an object" in chunk["error"]["message"]
            assert chunk["id"] == 2

        client_factory.return_value.drive.files.assert_not_called()

    def test_tools_call_search_streams_two_chunks(self, client, clients):
        """Test a search call streams a started chunk and then the result."""
        clients.drive.files.return_value.list.return_value.execute.return_value = {
            "files": [
                {"id": "F1", "name": "Quarterly report Q1", "mimeType": "application/pdf"},
                {"id": "F2", "name": "Quarterly report Q2", "mimeType": "application/pdf"},
            ]
        }

        response = client.post(
            "/mcp",
            json=rpc("tools/call", {"name": "gdrive_search", "arguments": {"query": "quarterly report"}}),
            headers={"x-access-token": "tok"},
        )

        started, result = read_chunks(response)
        assert started["method"] == "notifications/tools/call_started"
        assert started["params"]["id"] == 1
        assert started["params"]["arguments"] == {"query": "quarterly report"}

        assert result["method"] == "tools/call"
        assert result["id"] == 1
        assert result["result"]["isError"] is False
        assert result["isError"] is False
        assert result["content"] == result["result"]["content"]
        text = result["content"][0]["text"]
        assert "Quarterly report Q1" in text and "F1" in text
        assert "Quarterly report Q2" in text and "F2" in text

    def test_tools_call_remote_failure_is_data(self, client, clients, http_error):
        """Test remote failures arrive as isError results, not protocol errors."""
        clients.drive.files.return_value.delete.return_value.execute.side_effect = http_error(404, "File not found: F1.")

        for _ in range(2):
            response = client.post(
                "/mcp",
                json=rpc("tools/call", {"name": "gdrive_delete_file", "arguments": {"fileId": "F1"}}),
                headers={"x-access-token": "tok"},
            )
            chunks = read_chunks(response)
            assert chunks[-1]["result"]["isError"] is True
            assert "error" not in chunks[-1]

    def test_token_persists_across_requests(self, client, credentials, clients):
        """Test a header token stays current for later requests without it."""
        client.get("/health", headers={"x-access-token": "from-header"})
        clients.sheets.spreadsheets.return_value.values.return_value.get.return_value.execute.return_value = {
            "values": [["1"]]
        }

        response = client.post("/mcp", json=rpc(
            "tools/call", {"name": "gsheets_read", "arguments": {"spreadsheetId": "S1", "range": "A1"}}
        ))

        assert credentials.current_token == "from-header"
        assert read_chunks(response)[-1]["result"]["isError"] is False

    def test_internal_fault(self, credentials):
        """Test an exception escaping a handler becomes an internal error."""
        from gdrive_server.main import create_app
        from gdrive_server.registry import ToolRegistry

        def explode(client, arguments):
            raise RuntimeError("boom")

        registry = ToolRegistry()
        registry.register(ToolDefinition(name="explode", description="Always fails", handler=explode))
        client = TestClient(create_app(settings=Settings(), credentials=credentials, registry=registry))
        credentials.set_token("tok")

        response = client.post("/mcp", json=rpc("tools/call", {"name": "explode"}, request_id=11))

        chunk = read_chunks(response)[-1]
        assert chunk["error"]["code"] == -32603
        assert "boom" in chunk["error"]["message"]
        assert chunk["id"] == 11


class TestRestEndpoints:
    """Tests for the REST convenience surface."""

    def test_health(self, client):
        """Test the health endpoint reports token state."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["hasToken"] is False

        body = client.get("/health", headers={"x-access-token": "tok"}).json()
        assert body["hasToken"] is True

    def test_list_tools(self, client):
        """Test GET /tools lists public tool descriptions."""
        response = client.get("/tools")

        names = [t["name"] for t in response.json()["tools"]]
        assert "gdrive_search" in names
        assert "gsheets_update_cell" in names

    def test_get_tool_not_found(self, client):
        """Test GET /tools/{name} for an unknown tool."""
        assert client.get("/tools/nonexistent").status_code == 404

    def test_update_cell(self, client, clients):
        """Test POST /tools/gsheets_update_cell end to end."""
        values = clients.sheets.spreadsheets.return_value.values.return_value
        values.update.return_value.execute.return_value = {"updatedRange": "Sheet1!A1"}

        response = client.post(
            "/tools/gsheets_update_cell",
            json={"spreadsheetId": "S1", "range": "Sheet1!A1", "value": "42"},
            headers={"x-access-token": "tok"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["isError"] is False
        assert "Sheet1!A1" in body["content"][0]["text"]

    def test_tool_call_without_token(self, client, client_factory):
        """Test REST tool calls need a token."""
        response = client.post("/tools/gdrive_search", json={"query": "x"})

        assert response.status_code == 401
        client_factory.assert_not_called()

    def test_tool_call_unknown_tool(self, client):
        """Test REST calls to unknown tools return 404."""
        response = client.post("/tools/nonexistent", json={}, headers={"x-access-token": "tok"})

        assert response.status_code == 404

    def test_set_token(self, client, credentials, clients):
        """Test /set-token validates then stores the token."""
        clients.drive.files.return_value.list.return_value.execute.return_value = {"files": []}

        response = client.post("/set-token", json={"accessToken": "new-token"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert credentials.current_token == "new-token"

    def test_set_token_invalid(self, client, credentials, clients, http_error):
        """Test tokens failing validation are rejected and not stored."""
        clients.drive.files.return_value.list.return_value.execute.side_effect = http_error(401, "Invalid Credentials")

        response = client.post("/set-token", json={"accessToken": "bad"})

        assert response.status_code == 400
        assert not credentials.has_token()

    def test_set_token_missing(self, client):
        """Test /set-token requires accessToken."""
        assert client.post("/set-token", json={}).status_code == 400

    def test_list_files(self, client, clients):
        """Test GET /files returns one page with gdrive URIs."""
        files = clients.drive.files.return_value
        files.list.return_value.execute.return_value = {
            "files": [{"id": "F1", "name": "a.txt", "mimeType": "text/plain"}],
            "nextPageToken": "page-2",
        }

        response = client.get("/files?pageSize=5", headers={"x-access-token": "tok"})

        assert response.status_code == 200
        body = response.json()
        assert body["files"][0]["uri"] == "gdrive:///F1"
        assert body["nextPageToken"] == "page-2"
        assert files.list.call_args.kwargs["pageSize"] == 5

    def test_list_files_bad_page_size(self, client, clients):
        """Test unusable pageSize values fall back to the default page size."""
        files = clients.drive.files.return_value
        files.list.return_value.execute.return_value = {"files": []}

        for raw in ("abc", "0"):
            response = client.get(f"/files?pageSize={raw}", headers={"x-access-token": "tok"})

            assert response.status_code == 200
            assert files.list.call_args.kwargs["pageSize"] == 10

        client.get("/files?pageSize=5000", headers={"x-access-token": "tok"})
        assert files.list.call_args.kwargs["pageSize"] == 1000

    def test_list_files_without_token(self, client):
        """Test GET /files needs a token."""
        assert client.get("/files").status_code == 401

    def test_file_content(self, client, clients):
        """Test GET /files/{id}/content reads through gdrive_read_file."""
        files = clients.drive.files.return_value
        files.get.return_value.execute.return_value = {"id": "T1", "name": "t.txt", "mimeType": "text/plain"}
        files.get_media.return_value.execute.return_value = b"hello"

        response = client.get("/files/T1/content", headers={"x-access-token": "tok"})

        assert response.status_code == 200
        assert "hello" in response.json()["content"][0]["text"]
