"""
Smartsheet Sheet MCP Tools

This module provides MCP tools for reading and writing Smartsheet sheets and rows.
"""

import logging
from typing import Any, Dict, List, Optional

from core.server import server
from core.smartsheet_client import (
    SmartsheetAPIError,
    SmartsheetClient,
    get_smartsheet_client,
)
from core.utils import (
    UserInputError,
    handle_http_errors,
    sheet_token_from_url,
    to_json_text,
)

logger = logging.getLogger(__name__)


@server.tool()
@handle_http_errors("get_sheet", is_read_only=True, resource_type="sheet")
async def get_sheet(sheet_id: str, include: Optional[str] = None) -> str:
    """
    Retrieves the current state of a sheet, including rows, columns, and cells.

    Args:
        sheet_id (str): The ID of the sheet to retrieve. Required.
        include (Optional[str]): Comma-separated list of elements to include (e.g., "format,objectValue").

    Returns:
        str: The sheet as JSON.
    """
    logger.info(f"[get_sheet] Invoked. Sheet: {sheet_id}, Include: {include}")
    sheet = await get_smartsheet_client().get_sheet(sheet_id, include)
    return to_json_text(sheet)


async def _get_sheet_by_url_impl(
    client: SmartsheetClient, url: str, include: Optional[str] = None
) -> str:
    """Internal implementation for get_sheet_by_url."""
    token = sheet_token_from_url(url)
    sheet = await client.get_sheet(token, include)
    return to_json_text(sheet)


@server.tool()
@handle_http_errors("get_sheet_by_url", is_read_only=True, resource_type="sheet")
async def get_sheet_by_url(url: str, include: Optional[str] = None) -> str:
    """
    Retrieves the current state of a sheet from its URL.

    Args:
        url (str): The URL of the sheet, as shown in the browser. Required.
        include (Optional[str]): Comma-separated list of elements to include.

    Returns:
        str: The sheet as JSON.
    """
    logger.info(f"[get_sheet_by_url] Invoked. URL: {url}")
    return await _get_sheet_by_url_impl(get_smartsheet_client(), url, include)


@server.tool()
@handle_http_errors("get_sheet_version", is_read_only=True, resource_type="sheet")
async def get_sheet_version(sheet_id: str) -> str:
    """
    Gets the current version number of a sheet.

    Args:
        sheet_id (str): The ID of the sheet. Required.
    """
    logger.info(f"[get_sheet_version] Invoked. Sheet: {sheet_id}")
    return to_json_text(await get_smartsheet_client().get_sheet_version(sheet_id))


@server.tool()
@handle_http_errors("get_cell_history", is_read_only=True, resource_type="cell")
async def get_cell_history(
    sheet_id: str,
    row_id: str,
    column_id: str,
    include: Optional[str] = None,
    page_size: Optional[int] = None,
    page: Optional[int] = None,
) -> str:
    """
    Retrieves the history of changes for a specific cell.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        row_id (str): The ID of the row. Required.
        column_id (str): The ID of the column. Required.
        include (Optional[str]): Extra elements to include, e.g. "columnType,formula,format".
        page_size (Optional[int]): Number of history entries per page.
        page (Optional[int]): Page number to return.

    Returns:
        str: The history page as JSON.
    """
    logger.info(
        f"[get_cell_history] Invoked. Sheet: {sheet_id}, Row: {row_id}, Column: {column_id}"
    )
    history = await get_smartsheet_client().get_cell_history(
        sheet_id, row_id, column_id, include, page_size, page
    )
    return to_json_text(history)


def _validate_rows(rows: List[Dict[str, Any]], require_id: bool) -> None:
    if not rows:
        raise UserInputError("At least one row is required.")
    for index, row in enumerate(rows):
        if require_id and not row.get("id"):
            raise UserInputError(f"Row {index} is missing its 'id'.")
        if not isinstance(row.get("cells"), list):
            raise UserInputError(f"Row {index} must carry a 'cells' list.")
        for cell in row["cells"]:
            if cell.get("columnId") in (None, ""):
                raise UserInputError(f"A cell in row {index} is missing its 'columnId'.")


@server.tool()
@handle_http_errors("update_rows", resource_type="sheet")
async def update_rows(sheet_id: str, rows: List[Dict[str, Any]]) -> str:
    """
    Updates rows in a sheet, including cell values, formatting, and formulae.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        rows (List[Dict]): Rows to update, each {"id": ..., "cells": [{"columnId": ..., "value" | "formula": ..., "format": ...}]}. Required.

    Returns:
        str: The API response as JSON.
    """
    logger.info(f"[update_rows] Invoked. Sheet: {sheet_id}, Rows: {len(rows)}")
    _validate_rows(rows, require_id=True)
    return to_json_text(await get_smartsheet_client().update_rows(sheet_id, rows))


@server.tool()
@handle_http_errors("add_rows", resource_type="sheet")
async def add_rows(sheet_id: str, rows: List[Dict[str, Any]]) -> str:
    """
    Adds new rows to a sheet.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        rows (List[Dict]): Rows to add, each {"toTop" | "toBottom": true, "cells": [...]}. Required.

    Returns:
        str: The API response as JSON.
    """
    logger.info(f"[add_rows] Invoked. Sheet: {sheet_id}, Rows: {len(rows)}")
    _validate_rows(rows, require_id=False)
    return to_json_text(await get_smartsheet_client().add_rows(sheet_id, rows))


@server.tool()
@handle_http_errors("delete_rows", resource_type="sheet")
async def delete_rows(
    sheet_id: str, row_ids: List[str], ignore_rows_not_found: bool = True
) -> str:
    """
    Deletes rows from a sheet. Only available when ALLOW_DELETE_TOOLS=true.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        row_ids (List[str]): IDs of the rows to delete. Required.
        ignore_rows_not_found (bool): Don't fail when some rows no longer exist. Defaults to True.
    """
    logger.info(f"[delete_rows] Invoked. Sheet: {sheet_id}, Rows: {len(row_ids)}")
    if not row_ids:
        raise UserInputError("At least one row ID is required.")
    result = await get_smartsheet_client().delete_rows(
        sheet_id, row_ids, ignore_rows_not_found
    )
    return to_json_text(result)


@server.tool()
@handle_http_errors("get_sheet_location", is_read_only=True, resource_type="sheet")
async def get_sheet_location(sheet_id: str) -> str:
    """
    Gets the workspace a sheet is located in.

    Args:
        sheet_id (str): The ID of the sheet. Required.
    """
    logger.info(f"[get_sheet_location] Invoked. Sheet: {sheet_id}")
    return to_json_text(await get_smartsheet_client().get_sheet_location(sheet_id))


async def _copy_sheet_impl(
    client: SmartsheetClient,
    sheet_id: str,
    destination_name: str,
    destination_folder_id: Optional[str] = None,
) -> str:
    """Internal implementation for copy_sheet.

    Without a destination folder the copy lands in the source sheet's workspace,
    or in the user's home when the location cannot be read.
    """
    workspace_id = None
    if not destination_folder_id:
        try:
            location = await client.get_sheet_location(sheet_id)
            workspace_id = location.get("workspaceId")
        except SmartsheetAPIError as error:
            logger.warning(
                f"[copy_sheet] Could not read location of sheet {sheet_id}, copying to home: {error.message}"
            )
    result = await client.copy_sheet(
        sheet_id,
        destination_name,
        destination_folder_id=destination_folder_id,
        workspace_id=workspace_id,
    )
    return to_json_text(result)


@server.tool()
@handle_http_errors("copy_sheet", resource_type="sheet")
async def copy_sheet(
    sheet_id: str,
    destination_name: str,
    destination_folder_id: Optional[str] = None,
) -> str:
    """
    Creates a copy of the specified sheet.

    Args:
        sheet_id (str): The ID of the sheet to copy. Required.
        destination_name (str): Name for the sheet copy. Required.
        destination_folder_id (Optional[str]): Destination folder. Defaults to the source sheet's workspace.
    """
    logger.info(f"[copy_sheet] Invoked. Sheet: {sheet_id}, Name: {destination_name}")
    return await _copy_sheet_impl(
        get_smartsheet_client(), sheet_id, destination_name, destination_folder_id
    )


@server.tool()
@handle_http_errors("create_sheet", resource_type="sheet")
async def create_sheet(
    name: str,
    columns: List[Dict[str, Any]],
    folder_id: Optional[str] = None,
) -> str:
    """
    Creates a new sheet.

    Args:
        name (str): Name for the new sheet. Required.
        columns (List[Dict]): Columns as {"title": str, "type": str, "primary": bool}; exactly one must be primary. Required.
        folder_id (Optional[str]): Folder to create the sheet in. Defaults to the user's home.
    """
    logger.info(f"[create_sheet] Invoked. Name: {name}, Columns: {len(columns)}")
    if not columns:
        raise UserInputError("A sheet needs at least one column.")
    primaries = [column for column in columns if column.get("primary")]
    if len(primaries) != 1:
        raise UserInputError(
            f"Exactly one column must be primary, got {len(primaries)}."
        )
    result = await get_smartsheet_client().create_sheet(name, columns, folder_id)
    return to_json_text(result)


@server.tool()
@handle_http_errors("create_update_request", resource_type="sheet")
async def create_update_request(
    sheet_id: str,
    send_to: List[str],
    row_ids: Optional[List[int]] = None,
    column_ids: Optional[List[int]] = None,
    include_attachments: bool = False,
    include_discussions: bool = False,
    message: Optional[str] = None,
    subject: Optional[str] = None,
    cc_me: bool = False,
) -> str:
    """
    Sends an update request asking recipients to update rows of a sheet.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        send_to (List[str]): Recipient email addresses. Required.
        row_ids (Optional[List[int]]): Rows to include.
        column_ids (Optional[List[int]]): Columns to include.
        include_attachments (bool): Include attachments. Defaults to False.
        include_discussions (bool): Include discussions. Defaults to False.
        message (Optional[str]): Message body.
        subject (Optional[str]): Email subject.
        cc_me (bool): Copy the sender. Defaults to False.
    """
    logger.info(f"[create_update_request] Invoked. Sheet: {sheet_id}, Recipients: {len(send_to)}")
    if not send_to:
        raise UserInputError("At least one recipient email is required.")
    options: Dict[str, Any] = {
        "sendTo": [{"email": email} for email in send_to],
        "includeAttachments": include_attachments,
        "includeDiscussions": include_discussions,
        "ccMe": cc_me,
    }
    if row_ids:
        options["rowIds"] = row_ids
    if column_ids:
        options["columnIds"] = column_ids
    if message:
        options["message"] = message
    if subject:
        options["subject"] = subject
    result = await get_smartsheet_client().create_update_request(sheet_id, options)
    return to_json_text(result)
