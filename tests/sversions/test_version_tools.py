"""
Unit tests for the version MCP tools

Tests the internal implementation functions with a mocked client
"""

import json
import sys
import os
from unittest.mock import AsyncMock, Mock

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core.utils import UserInputError
from sversions.backup_workflow import VersionBackupRequest
from sversions.version_tools import (
    _create_version_backup_impl,
    _get_cell_value_at_time_impl,
)


@pytest.mark.asyncio
async def test_get_cell_value_at_time_returns_resolved_entry():
    client = Mock()
    client.get_cell_history = AsyncMock(
        return_value={
            "data": [
                {"modifiedAt": "2025-03-27T13:00:00Z", "value": "late"},
                {"modifiedAt": "2025-03-27T11:00:00Z", "value": "on time", "format": "f"},
            ]
        }
    )

    result = await _get_cell_value_at_time_impl(
        client, "1", "2", "3", "2025-03-27T12:00:00Z"
    )

    assert json.loads(result) == {"value": "on time", "format": "f"}
    args = client.get_cell_history.call_args
    assert args.args[:3] == ("1", "2", "3")
    assert "objectValue" in args.kwargs["include"]


@pytest.mark.asyncio
async def test_get_cell_value_at_time_without_old_history():
    client = Mock()
    client.get_cell_history = AsyncMock(
        return_value={"data": [{"modifiedAt": "2025-03-28T00:00:00Z", "value": 1}]}
    )

    result = await _get_cell_value_at_time_impl(
        client, "1", "2", "3", "2025-03-27T12:00:00Z"
    )

    assert result.startswith("No history entry")
    assert "1 entries checked" in result


@pytest.mark.asyncio
async def test_get_cell_value_at_time_rejects_bad_timestamp():
    client = Mock()
    client.get_cell_history = AsyncMock()

    with pytest.raises(UserInputError):
        await _get_cell_value_at_time_impl(client, "1", "2", "3", "soon")
    client.get_cell_history.assert_not_called()


@pytest.mark.asyncio
async def test_create_version_backup_rejects_bad_batch_size():
    request = VersionBackupRequest(sheet_id="1", timestamp="2025-03-27T12:00:00Z", batch_size=0)

    with pytest.raises(UserInputError):
        await _create_version_backup_impl(Mock(), request)


@pytest.mark.asyncio
async def test_create_version_backup_returns_failure_as_json():
    client = Mock()
    client.get_sheet = AsyncMock(return_value={"id": 1, "name": "No workspace"})
    request = VersionBackupRequest(sheet_id="1", timestamp="2025-03-27T12:00:00Z")

    result = json.loads(await _create_version_backup_impl(client, request))

    assert result["success"] is False
    assert result["error"]["code"] == "ARCHIVE_FAILED"
    assert result["error"]["details"]["sheetId"] == "1"
