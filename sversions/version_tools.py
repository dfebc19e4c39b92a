"""
Smartsheet Version MCP Tools

Tools that look at sheet content as of a past timestamp.
"""

import logging
from typing import Optional

from core.server import server
from core.smartsheet_client import SmartsheetClient, get_smartsheet_client
from core.utils import handle_http_errors, to_json_text
from sversions.backup_workflow import (
    VersionBackupRequest,
    create_version_backup as run_version_backup,
    history_include_params,
)
from sversions.history import history_entries, parse_timestamp, resolve_cell_value_at

logger = logging.getLogger(__name__)


async def _create_version_backup_impl(
    client: SmartsheetClient, request: VersionBackupRequest
) -> str:
    """Internal implementation for create_version_backup."""
    request.validate()
    result = await run_version_backup(client, request)
    if result["success"]:
        details = result["details"]
        logger.info(
            f"[create_version_backup] Archive {details['archiveSheetId']} created from "
            f"sheet {details['sourceSheetId']} ({details['rowsProcessed']} rows)"
        )
    else:
        logger.warning(
            f"[create_version_backup] Backup of sheet {request.sheet_id} failed: "
            f"{result['error']['code']}"
        )
    return to_json_text(result)


@server.tool()
@handle_http_errors("create_version_backup", resource_type="sheet")
async def create_version_backup(
    sheet_id: str,
    timestamp: str,
    archive_name: Optional[str] = None,
    include_formulas: bool = True,
    include_formatting: bool = True,
    batch_size: int = 100,
    max_concurrent_requests: int = 5,
) -> str:
    """
    Creates a backup sheet holding the content of a sheet as it was at a past timestamp.

    The backup is a copy of the sheet placed in a "Backup of <sheet name>" folder of the
    sheet's workspace, with every cell restored from its change history.

    Args:
        sheet_id (str): The ID of the source sheet. It must be in a workspace. Required.
        timestamp (str): ISO-8601 point in time to restore, e.g. "2025-03-27T17:00:00Z". Required.
        archive_name (Optional[str]): Name for the backup sheet. Defaults to "Version as of <timestamp>".
        include_formulas (bool): Restore formulas as formulas rather than values. Defaults to True.
        include_formatting (bool): Restore formats, hyperlinks, images and object values. Defaults to True.
        batch_size (int): Rows written per request. Defaults to 100.
        max_concurrent_requests (int): Cell history lookups in flight at once. Defaults to 5.

    Returns:
        str: JSON result with success flag and either details or an error code.
    """
    logger.info(
        f"[create_version_backup] Invoked. Sheet: {sheet_id}, Timestamp: {timestamp}"
    )
    request = VersionBackupRequest(
        sheet_id=sheet_id,
        timestamp=timestamp,
        archive_name=archive_name,
        include_formulas=include_formulas,
        include_formatting=include_formatting,
        batch_size=batch_size,
        max_concurrent_requests=max_concurrent_requests,
    )
    return await _create_version_backup_impl(get_smartsheet_client(), request)


async def _get_cell_value_at_time_impl(
    client: SmartsheetClient,
    sheet_id: str,
    row_id: str,
    column_id: str,
    timestamp: str,
) -> str:
    """Internal implementation for get_cell_value_at_time."""
    target = parse_timestamp(timestamp)
    response = await client.get_cell_history(
        sheet_id,
        row_id,
        column_id,
        include=history_include_params(include_formatting=True),
    )
    entries = history_entries(response)
    value = resolve_cell_value_at(entries, target)
    if value is None:
        return (
            f"No history entry for row {row_id}, column {column_id} in sheet {sheet_id} "
            f"predates {timestamp} ({len(entries)} entries checked)."
        )
    return to_json_text(value)


@server.tool()
@handle_http_errors("get_cell_value_at_time", is_read_only=True, resource_type="cell")
async def get_cell_value_at_time(
    sheet_id: str,
    row_id: str,
    column_id: str,
    timestamp: str,
) -> str:
    """
    Gets the value a single cell held at a past timestamp, from its change history.

    Args:
        sheet_id (str): The ID of the sheet. Required.
        row_id (str): The ID of the row. Required.
        column_id (str): The ID of the column. Required.
        timestamp (str): ISO-8601 point in time. Required.

    Returns:
        str: JSON of the historical cell (value, formula, format, ...) or a message when
            the cell has no history that old.
    """
    logger.info(
        f"[get_cell_value_at_time] Invoked. Sheet: {sheet_id}, Row: {row_id}, "
        f"Column: {column_id}, Timestamp: {timestamp}"
    )
    return await _get_cell_value_at_time_impl(
        get_smartsheet_client(), sheet_id, row_id, column_id, timestamp
    )
