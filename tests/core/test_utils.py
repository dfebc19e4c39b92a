"""
Unit tests for shared tool helpers
"""

import sys
import os

import pytest
from fastmcp.exceptions import ToolError

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core.smartsheet_client import SmartsheetAPIError
from core.utils import (
    UserInputError,
    chunk_list,
    describe_api_error,
    handle_http_errors,
)


def test_chunk_list():
    assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk_list([], 3) == []
    with pytest.raises(ValueError):
        chunk_list([1], 0)


def test_describe_api_error_messages():
    assert "not found" in describe_api_error(SmartsheetAPIError("x", status_code=404), "sheet")
    assert "Permission denied" in describe_api_error(SmartsheetAPIError("x", status_code=403))
    assert "Retry after 5 seconds" in describe_api_error(
        SmartsheetAPIError("x", status_code=429, retry_after=5)
    )
    assert describe_api_error(SmartsheetAPIError("timeout")).startswith("Could not reach")


@pytest.mark.asyncio
async def test_handle_http_errors_raises_tool_error():
    @handle_http_errors("broken_tool", is_read_only=True, resource_type="sheet")
    async def broken_tool():
        raise SmartsheetAPIError("Not Found", status_code=404)

    with pytest.raises(ToolError) as exc_info:
        await broken_tool()

    assert "sheet was not found" in str(exc_info.value)
    assert broken_tool.__name__ == "broken_tool"


@pytest.mark.asyncio
async def test_handle_http_errors_surfaces_input_errors():
    @handle_http_errors("picky_tool")
    async def picky_tool():
        raise UserInputError("sheet_id is required.")

    with pytest.raises(ToolError, match="sheet_id is required"):
        await picky_tool()
