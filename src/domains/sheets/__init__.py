"""Sheets domain - read a value range and update a single cell."""

import json
from typing import Any

from shared.logging import get_logger
from domains.base import BaseAdapter

logger = get_logger(__name__)


class SheetsAdapter(BaseAdapter):
    """Sheets v4 adapter over the spreadsheets.values collection."""

    domain = "sheets"

    def _define_tools(self) -> None:
        self._add_tool(
            name="gsheets_read",
            description="Read data from a Google Spreadsheet range",
            input_schema={
                "type": "object",
                "properties": {
                    "spreadsheetId": {
                        "type": "string",
                        "description": "ID of the spreadsheet"
                    },
                    "range": {
                        "type": "string",
                        "description": "Range to read in A1 notation (e.g., 'Sheet1!A1:C10')"
                    }
                },
                "required": ["spreadsheetId", "range"]
            },
            action=self._read,
            error_prefix="Error reading spreadsheet"
        )

        self._add_tool(
            name="gsheets_update_cell",
            description="Update a cell value in a Google Spreadsheet",
            input_schema={
                "type": "object",
                "properties": {
                    "spreadsheetId": {
                        "type": "string",
                        "description": "ID of the spreadsheet"
                    },
                    "range": {
                        "type": "string",
                        "description": "Cell range in A1 notation (e.g., 'Sheet1!A1')"
                    },
                    "value": {
                        "type": "string",
                        "description": "New cell value"
                    }
                },
                "required": ["spreadsheetId", "range", "value"]
            },
            action=self._update_cell,
            error_prefix="Error updating cell"
        )

    def _read(self, client: Any, params: dict[str, Any]) -> str:
        cell_range = params["range"]
        response = client.sheets.spreadsheets().values().get(
            spreadsheetId=params["spreadsheetId"],
            range=cell_range,
        ).execute()

        rows = response.get("values", [])
        if not rows:
            return f"No data found in range {cell_range}"

        return f"Values in {response.get('range', cell_range)}:\n{json.dumps(rows, indent=2)}"

    def _update_cell(self, client: Any, params: dict[str, Any]) -> str:
        value = params["value"]
        response = client.sheets.spreadsheets().values().update(
            spreadsheetId=params["spreadsheetId"],
            range=params["range"],
            valueInputOption="USER_ENTERED",
            body={"values": [[value]]},
        ).execute()

        updated_range = response.get("updatedRange") or params["range"]
        logger.info("Cell updated", spreadsheet_id=params["spreadsheetId"], range=updated_range)
        return f"Updated cell {updated_range} to value: {value}"


def register_sheets_domain(registry) -> SheetsAdapter:
    """Register the Sheets tools with the registry."""
    adapter = SheetsAdapter()
    registry.register_many(adapter.tools)
    logger.info("Domain registered", domain=adapter.domain, tool_count=len(adapter.tools))
    return adapter
