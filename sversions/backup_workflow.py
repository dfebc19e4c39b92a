"""
Version backup workflow

Rebuilds a sheet as it was at a past timestamp into a new "archive" sheet:

  1. read the source sheet and require it to live in a workspace;
  2. find or create the "Backup of <sheet name>" folder in that workspace;
  3. copy the sheet structure into the folder and read the copy back;
  4. pick the cells that existed at the timestamp and fetch their history in
     concurrent batches, tolerating per-cell failures;
  5. map row and column ids from source to copy, skipping system columns;
  6. materialize every cell, delete the copy's rows and re-add the
     reconstructed rows in batches.

The run is not transactional and holds no locks: a failure after the delete
leaves the archive partially filled, and concurrent edits to the archive are
not detected.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.smartsheet_client import SmartsheetAPIError, SmartsheetClient
from core.utils import UserInputError, chunk_list
from sversions.history import (
    cells_existing_at,
    history_entries,
    parse_timestamp,
    resolve_cell_value_at,
)
from sversions.identity import (
    identify_system_columns,
    is_system_column,
    map_column_ids,
    map_row_ids,
)
from sversions.materializer import materialize_cell

logger = logging.getLogger(__name__)

HISTORY_BATCH_DELAY_SECONDS = 0.1
ADD_BATCH_DELAY_SECONDS = 0.1
BACKUP_FOLDER_PREFIX = "Backup of "
COLUMN_ID_PATTERN = re.compile(r"columnId (\d+)")


class BackupPreconditionError(Exception):
    """The source sheet cannot be backed up as requested."""


@dataclass
class VersionBackupRequest:
    sheet_id: str
    timestamp: str
    archive_name: Optional[str] = None
    include_formulas: bool = True
    include_formatting: bool = True
    batch_size: int = 100
    max_concurrent_requests: int = 5

    def validate(self) -> None:
        if not str(self.sheet_id or "").strip():
            raise UserInputError("sheet_id is required.")
        parse_timestamp(self.timestamp)
        if self.batch_size < 1:
            raise UserInputError(f"batch_size must be at least 1, got {self.batch_size}.")
        if self.max_concurrent_requests < 1:
            raise UserInputError(
                "max_concurrent_requests must be at least 1, "
                f"got {self.max_concurrent_requests}."
            )


@dataclass
class HistoryFetchResult:
    """Resolved values keyed by source row id then source column id."""

    values: Dict[Any, Dict[Any, Dict[str, Any]]] = field(default_factory=dict)
    succeeded: int = 0
    failed: List[Dict[str, Any]] = field(default_factory=list)


def history_include_params(include_formatting: bool) -> str:
    # columnType is required for the API to return formats on formula cells
    params = ["columnType", "formula", "format"]
    if include_formatting:
        params.extend(["conditionalFormat", "hyperlink", "image", "objectValue"])
    return ",".join(params)


def default_archive_name(timestamp: str) -> str:
    return f"Version as of {parse_timestamp(timestamp):%Y-%m-%d %H:%M:%S} UTC"


def _listed_items(response: Any) -> List[Dict[str, Any]]:
    if isinstance(response, list):
        return response
    return list((response or {}).get("data") or [])


def _created_id(response: Dict[str, Any]) -> Any:
    result = (response or {}).get("result") or {}
    created_id = result.get("id")
    if created_id is None:
        raise SmartsheetAPIError("Smartsheet did not return the id of the created object")
    return created_id


async def ensure_backup_folder(
    client: SmartsheetClient, workspace_id: Any, folder_name: str
) -> Any:
    """Return the id of the workspace folder named `folder_name`, creating it if absent."""
    folders = _listed_items(await client.list_workspace_folders(workspace_id))
    for folder in folders:
        if folder.get("name") == folder_name:
            logger.info(
                "[Workflow] Found existing backup folder '%s' (%s)",
                folder_name,
                folder.get("id"),
            )
            return folder.get("id")

    logger.info("[Workflow] Creating backup folder '%s'", folder_name)
    folder_id = _created_id(await client.create_workspace_folder(workspace_id, folder_name))
    logger.info("[Workflow] Created backup folder with ID: %s", folder_id)
    return folder_id


async def fetch_historical_values(
    client: SmartsheetClient,
    sheet_id: str,
    cells: List[Dict[str, Any]],
    timestamp: str,
    include_formatting: bool,
    max_concurrent_requests: int,
) -> HistoryFetchResult:
    """
    Fetch and resolve history for `cells`, `max_concurrent_requests` at a time.

    Each batch is awaited as a whole before the next starts. A failed lookup is
    recorded in the result and does not stop the run.
    """
    include = history_include_params(include_formatting)
    result = HistoryFetchResult()

    async def fetch_one(cell: Dict[str, Any]) -> None:
        row_id, column_id = cell["rowId"], cell["columnId"]
        try:
            response = await client.get_cell_history(sheet_id, row_id, column_id, include)
            historical_value = resolve_cell_value_at(history_entries(response), timestamp)
        except Exception as error:
            message = getattr(error, "message", None) or str(error) or type(error).__name__
            logger.error(
                "[Workflow] Failed to get history for cell at row %s, column %s: %s",
                row_id,
                column_id,
                message,
            )
            result.failed.append(
                {
                    "rowId": row_id,
                    "columnId": column_id,
                    "statusCode": getattr(error, "status_code", None),
                    "error": message,
                }
            )
            return

        result.succeeded += 1
        if historical_value is not None:
            result.values.setdefault(row_id, {})[column_id] = historical_value

    batches = chunk_list(cells, max_concurrent_requests)
    for index, batch in enumerate(batches):
        logger.info(
            "[Workflow] Processing history batch %d/%d (%d cells)",
            index + 1,
            len(batches),
            len(batch),
        )
        await asyncio.gather(*(fetch_one(cell) for cell in batch))
        if index < len(batches) - 1:
            await asyncio.sleep(HISTORY_BATCH_DELAY_SECONDS)

    return result


def build_rows_to_add(
    source_sheet: Dict[str, Any],
    historical_values: Dict[Any, Dict[Any, Dict[str, Any]]],
    column_id_map: Dict[Any, Any],
    system_column_ids: set,
    include_formulas: bool,
) -> List[Dict[str, Any]]:
    """Materialize one new row per source row that has resolved history."""
    rows_to_add = []
    source_columns = source_sheet.get("columns") or []

    for source_row in source_sheet.get("rows") or []:
        row_history = historical_values.get(source_row.get("id"))
        if not row_history:
            continue

        current_cells = {
            cell.get("columnId"): cell for cell in source_row.get("cells") or []
        }
        cells = []
        for source_column in source_columns:
            source_column_id = source_column.get("id")
            target_column_id = column_id_map.get(source_column_id)
            if target_column_id is None:
                continue
            if target_column_id in system_column_ids or is_system_column(source_column):
                logger.debug(
                    "Skipping system column: %s (%s -> %s)",
                    source_column.get("title"),
                    source_column_id,
                    target_column_id,
                )
                continue

            payload = materialize_cell(
                source_column,
                row_history.get(source_column_id),
                current_cells.get(source_column_id),
                target_column_id,
                include_formulas=include_formulas,
            )
            cells.append(payload.to_dict())

        if cells:
            rows_to_add.append({"toBottom": True, "cells": cells})

    return rows_to_add


def count_rows_updated(
    historical_values: Dict[Any, Dict[Any, Dict[str, Any]]],
    row_id_map: Dict[Any, Any],
    column_id_map: Dict[Any, Any],
    system_column_ids: set,
) -> int:
    """Rows with a counterpart in the copy and at least one writable resolved cell."""
    updated = 0
    for source_row_id, row_history in historical_values.items():
        if source_row_id not in row_id_map:
            logger.warning(
                "No matching row found in archive sheet for source row %s", source_row_id
            )
            continue
        if any(
            column_id_map.get(column_id, column_id) not in system_column_ids
            for column_id in row_history
        ):
            updated += 1
    return updated


async def replace_rows(
    client: SmartsheetClient,
    sheet_id: Any,
    existing_row_ids: List[Any],
    rows_to_add: List[Dict[str, Any]],
    batch_size: int,
) -> None:
    """Delete every existing row of `sheet_id`, then add `rows_to_add` in batches."""
    if existing_row_ids:
        logger.info("[Workflow] Deleting %d rows in archive sheet", len(existing_row_ids))
        for row_ids in chunk_list(existing_row_ids, batch_size):
            await client.delete_rows(sheet_id, row_ids)

    add_batches = chunk_list(rows_to_add, batch_size)
    logger.info(
        "[Workflow] Adding %d rows in %d batches of up to %d",
        len(rows_to_add),
        len(add_batches),
        batch_size,
    )
    for index, batch in enumerate(add_batches):
        await client.add_rows(sheet_id, batch)
        if index < len(add_batches) - 1:
            await asyncio.sleep(ADD_BATCH_DELAY_SECONDS)


def classify_backup_error(error: Exception, request: VersionBackupRequest) -> Dict[str, Any]:
    """Translate a failure into the structured error of a backup result."""
    message = getattr(error, "message", None) or str(error) or "Archive sheet creation failed"
    details: Dict[str, Any] = {"sheetId": request.sheet_id, "timestamp": request.timestamp}
    code = "ARCHIVE_FAILED"

    status_code = getattr(error, "status_code", None)
    if status_code == 404:
        code = "RESOURCE_NOT_FOUND"
        detail = getattr(error, "detail", None)
        resource_type = detail.get("resourceType") if isinstance(detail, dict) else None
        details["resourceType"] = resource_type or "unknown"
    elif status_code == 403:
        code = "PERMISSION_DENIED"
    elif status_code == 429:
        code = "RATE_LIMIT_EXCEEDED"
        details["retryAfter"] = getattr(error, "retry_after", None)
    else:
        match = COLUMN_ID_PATTERN.search(message)
        if "INVALID_COLUMN_ID" in message.upper() or (
            match and "invalid" in message.lower()
        ):
            code = "INVALID_COLUMN_ID"
            if match:
                details["columnId"] = match.group(1)

    if status_code is not None:
        details["statusCode"] = status_code
    return {"code": code, "message": message, "details": details}


async def create_version_backup(
    client: SmartsheetClient, request: VersionBackupRequest
) -> Dict[str, Any]:
    """
    Create an archive sheet holding the source sheet's content as of
    `request.timestamp`.

    Returns:
        {"success": True, "message", "details": {...}} on success, otherwise
        {"success": False, "error": {"code", "message", "details"}}. Upstream
        failures are reported in the result, never raised.
    """
    try:
        request.validate()
        sheet_id, timestamp = request.sheet_id, request.timestamp

        logger.info("[Workflow] Getting source sheet details for %s", sheet_id)
        source_sheet = await client.get_sheet(
            sheet_id, include="format" if request.include_formatting else None
        )

        workspace_id = (source_sheet.get("workspace") or {}).get("id")
        if not workspace_id:
            raise BackupPreconditionError(
                "Sheet must be in a workspace to create an archive"
            )

        folder_name = f"{BACKUP_FOLDER_PREFIX}{source_sheet.get('name', sheet_id)}"
        backup_folder_id = await ensure_backup_folder(client, workspace_id, folder_name)

        archive_sheet_name = request.archive_name or default_archive_name(timestamp)
        logger.info(
            "[Workflow] Creating archive sheet '%s' in folder %s",
            archive_sheet_name,
            backup_folder_id,
        )
        archive_sheet_id = _created_id(
            await client.copy_sheet(
                sheet_id, archive_sheet_name, destination_folder_id=backup_folder_id
            )
        )
        archive_sheet = await client.get_sheet(archive_sheet_id)

        existing_cells = cells_existing_at(source_sheet, timestamp)
        logger.info(
            "[Workflow] Found %d cells that existed at %s", len(existing_cells), timestamp
        )

        history = await fetch_historical_values(
            client,
            sheet_id,
            existing_cells,
            timestamp,
            request.include_formatting,
            request.max_concurrent_requests,
        )
        if history.failed:
            logger.warning(
                "[Workflow] History lookup failed for %d of %d cells; continuing",
                len(history.failed),
                len(existing_cells),
            )

        archive_columns = archive_sheet.get("columns") or []
        row_id_map = map_row_ids(source_sheet.get("rows") or [], archive_sheet.get("rows") or [])
        column_id_map = map_column_ids(source_sheet.get("columns") or [], archive_columns)
        system_column_ids = identify_system_columns(archive_columns)

        rows_to_add = build_rows_to_add(
            source_sheet,
            history.values,
            column_id_map,
            system_column_ids,
            request.include_formulas,
        )
        rows_updated = count_rows_updated(
            history.values, row_id_map, column_id_map, system_column_ids
        )

        await replace_rows(
            client,
            archive_sheet_id,
            [row.get("id") for row in archive_sheet.get("rows") or []],
            rows_to_add,
            request.batch_size,
        )

        return {
            "success": True,
            "message": f"Archive sheet created with data from {timestamp}",
            "details": {
                "sourceSheetId": sheet_id,
                "archiveSheetId": archive_sheet_id,
                "archiveSheetName": archive_sheet_name,
                "timestamp": timestamp,
                "rowsProcessed": len(history.values),
                "cellsProcessed": history.succeeded,
                "rowsUpdated": rows_updated,
                "cellsFailed": len(history.failed),
                "failedCells": history.failed,
            },
        }
    except Exception as error:
        logger.error("[Workflow] Archive sheet creation failed: %s", error, exc_info=True)
        return {"success": False, "error": classify_backup_error(error, request)}
