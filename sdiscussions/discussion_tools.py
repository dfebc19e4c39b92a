"""
Smartsheet Discussion MCP Tools

This module provides MCP tools for reading and starting discussions on sheets and rows.
"""

import logging
from typing import Optional

from core.server import server
from core.smartsheet_client import get_smartsheet_client
from core.utils import UserInputError, handle_http_errors, to_json_text

logger = logging.getLogger(__name__)


def _require_comment(comment_text: str) -> str:
    text = (comment_text or "").strip()
    if not text:
        raise UserInputError("Comment text must not be empty.")
    return text


@server.tool()
@handle_http_errors("get_discussions_by_sheet_id", is_read_only=True, resource_type="sheet")
async def get_discussions_by_sheet_id(
    sheet_id: str,
    include: Optional[str] = None,
    page_size: Optional[int] = None,
    page: Optional[int] = None,
    include_all: Optional[bool] = None,
) -> str:
    """
    Gets the discussions of a sheet.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        include (Optional[str]): Extra elements to include, e.g. "attachments,comments".
        page_size (Optional[int]): Discussions per page.
        page (Optional[int]): Page number to return.
        include_all (Optional[bool]): Return all results without paging.
    """
    logger.info(f"[get_discussions_by_sheet_id] Invoked. Sheet: {sheet_id}")
    result = await get_smartsheet_client().get_sheet_discussions(
        sheet_id, include, page_size, page, include_all
    )
    return to_json_text(result)


@server.tool()
@handle_http_errors("get_discussions_by_row_id", is_read_only=True, resource_type="row")
async def get_discussions_by_row_id(sheet_id: str, row_id: str) -> str:
    """
    Gets the discussions of a single row.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        row_id (str): The ID of the row. Required.
    """
    logger.info(f"[get_discussions_by_row_id] Invoked. Sheet: {sheet_id}, Row: {row_id}")
    return to_json_text(await get_smartsheet_client().get_row_discussions(sheet_id, row_id))


@server.tool()
@handle_http_errors("create_sheet_discussion", resource_type="sheet")
async def create_sheet_discussion(sheet_id: str, comment_text: str) -> str:
    """
    Starts a new discussion on a sheet.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        comment_text (str): Text of the first comment. Required.
    """
    logger.info(f"[create_sheet_discussion] Invoked. Sheet: {sheet_id}")
    text = _require_comment(comment_text)
    return to_json_text(
        await get_smartsheet_client().create_sheet_discussion(sheet_id, text)
    )


@server.tool()
@handle_http_errors("create_row_discussion", resource_type="row")
async def create_row_discussion(sheet_id: str, row_id: str, comment_text: str) -> str:
    """
    Starts a new discussion on a row.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        row_id (str): The ID of the row. Required.
        comment_text (str): Text of the first comment. Required.
    """
    logger.info(f"[create_row_discussion] Invoked. Sheet: {sheet_id}, Row: {row_id}")
    text = _require_comment(comment_text)
    return to_json_text(
        await get_smartsheet_client().create_row_discussion(sheet_id, row_id, text)
    )
