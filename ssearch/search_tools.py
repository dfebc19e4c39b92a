"""
Smartsheet Search MCP Tools

This module provides MCP tools for searching sheets, folders, workspaces,
reports and dashboards.
"""

import logging
from typing import Any, Dict

from core.server import server
from core.smartsheet_client import SmartsheetClient, get_smartsheet_client
from core.utils import (
    UserInputError,
    handle_http_errors,
    sheet_token_from_url,
    to_json_text,
)

logger = logging.getLogger(__name__)

SHEET_SEARCH_SCOPES = "sheetNames,cellData,summaryFields"


def _require_query(query: str) -> str:
    cleaned = (query or "").strip()
    if not cleaned:
        raise UserInputError("Search query must not be empty.")
    return cleaned


def _filter_results(response: Dict[str, Any], object_type: str) -> Dict[str, Any]:
    """Keep only search hits of one objectType."""
    results = [
        item
        for item in (response or {}).get("results") or []
        if item.get("objectType") == object_type
    ]
    return {"totalCount": len(results), "results": results}


async def _search_by_type_impl(
    client: SmartsheetClient, query: str, object_type: str
) -> str:
    """Internal implementation shared by the typed search tools."""
    response = await client.search(_require_query(query))
    return to_json_text(_filter_results(response, object_type))


async def _sheet_id_from_url(client: SmartsheetClient, url: str) -> Any:
    sheet = await client.get_sheet(sheet_token_from_url(url))
    return sheet.get("id")


async def _search_in_sheet_by_url_impl(client: SmartsheetClient, url: str, query: str) -> str:
    """Internal implementation for search_in_sheet_by_url."""
    cleaned = _require_query(query)
    sheet_id = await _sheet_id_from_url(client, url)
    return to_json_text(await client.search_sheet(sheet_id, cleaned))


async def _what_am_i_assigned_to_impl(client: SmartsheetClient, sheet_id: str) -> str:
    """Internal implementation for what_am_i_assigned_to_by_sheet_id."""
    user = await client.get_current_user()
    email = user.get("email")
    if not email:
        raise UserInputError("The current user has no email address to search for.")
    return to_json_text(await client.search_sheet(sheet_id, email))


async def _what_am_i_assigned_to_by_url_impl(client: SmartsheetClient, url: str) -> str:
    """Internal implementation for what_am_i_assigned_to_by_sheet_url."""
    sheet_id = await _sheet_id_from_url(client, url)
    return await _what_am_i_assigned_to_impl(client, sheet_id)


@server.tool()
@handle_http_errors("search_sheets", is_read_only=True, resource_type="sheet")
async def search_sheets(query: str) -> str:
    """
    Searches for sheets by name, cell data, or summary fields.

    Args:
        query (str): Text to search for. Required.
    """
    logger.info(f"[search_sheets] Invoked. Query: {query}")
    result = await get_smartsheet_client().search(
        _require_query(query), scopes=SHEET_SEARCH_SCOPES
    )
    return to_json_text(result)


@server.tool()
@handle_http_errors("search_in_sheet", is_read_only=True, resource_type="sheet")
async def search_in_sheet(sheet_id: str, query: str) -> str:
    """
    Searches cell data and summary fields of a single sheet.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        query (str): Text to search for. Required.
    """
    logger.info(f"[search_in_sheet] Invoked. Sheet: {sheet_id}, Query: {query}")
    result = await get_smartsheet_client().search_sheet(sheet_id, _require_query(query))
    return to_json_text(result)


@server.tool()
@handle_http_errors("search_in_sheet_by_url", is_read_only=True, resource_type="sheet")
async def search_in_sheet_by_url(url: str, query: str) -> str:
    """
    Searches cell data and summary fields of a single sheet identified by its URL.

    Args:
        url (str): The URL of the sheet, as shown in the browser. Required.
        query (str): Text to search for. Required.
    """
    logger.info(f"[search_in_sheet_by_url] Invoked. URL: {url}, Query: {query}")
    return await _search_in_sheet_by_url_impl(get_smartsheet_client(), url, query)


@server.tool()
@handle_http_errors("what_am_i_assigned_to_by_sheet_id", is_read_only=True, resource_type="sheet")
async def what_am_i_assigned_to_by_sheet_id(sheet_id: str) -> str:
    """
    Searches a sheet for rows that mention the current user's email, e.g. assigned tasks.

    Args:
        sheet_id (str): The ID of the sheet. Required.
    """
    logger.info(f"[what_am_i_assigned_to_by_sheet_id] Invoked. Sheet: {sheet_id}")
    return await _what_am_i_assigned_to_impl(get_smartsheet_client(), sheet_id)


@server.tool()
@handle_http_errors("what_am_i_assigned_to_by_sheet_url", is_read_only=True, resource_type="sheet")
async def what_am_i_assigned_to_by_sheet_url(url: str) -> str:
    """
    Searches a sheet, identified by its URL, for rows that mention the current user's email.

    Args:
        url (str): The URL of the sheet, as shown in the browser. Required.
    """
    logger.info(f"[what_am_i_assigned_to_by_sheet_url] Invoked. URL: {url}")
    return await _what_am_i_assigned_to_by_url_impl(get_smartsheet_client(), url)


@server.tool()
@handle_http_errors("search_folders", is_read_only=True, resource_type="folder")
async def search_folders(query: str) -> str:
    """
    Searches for folders by name.

    Args:
        query (str): Text to search for in folder names. Required.
    """
    logger.info(f"[search_folders] Invoked. Query: {query}")
    return await _search_by_type_impl(get_smartsheet_client(), query, "folder")


@server.tool()
@handle_http_errors("search_workspaces", is_read_only=True, resource_type="workspace")
async def search_workspaces(query: str) -> str:
    """
    Searches for workspaces by name.

    Args:
        query (str): Text to search for in workspace names. Required.
    """
    logger.info(f"[search_workspaces] Invoked. Query: {query}")
    return await _search_by_type_impl(get_smartsheet_client(), query, "workspace")


@server.tool()
@handle_http_errors("search_reports", is_read_only=True, resource_type="report")
async def search_reports(query: str) -> str:
    """
    Searches for reports by name.

    Args:
        query (str): Text to search for in report names. Required.
    """
    logger.info(f"[search_reports] Invoked. Query: {query}")
    return await _search_by_type_impl(get_smartsheet_client(), query, "report")


@server.tool()
@handle_http_errors("search_dashboards", is_read_only=True, resource_type="dashboard")
async def search_dashboards(query: str) -> str:
    """
    Searches for dashboards by name.

    Args:
        query (str): Text to search for in dashboard names. Required.
    """
    logger.info(f"[search_dashboards] Invoked. Query: {query}")
    return await _search_by_type_impl(get_smartsheet_client(), query, "sight")
