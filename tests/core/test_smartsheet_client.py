"""
Unit tests for the Smartsheet REST client

Requests go through httpx.MockTransport; retry sleeps are captured instead of
awaited.
"""

import json
import sys
import os

import httpx
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core import smartsheet_client
from core.smartsheet_client import (
    MAX_RETRIES,
    SmartsheetAPIError,
    SmartsheetClient,
    _serialize_query_params,
    compute_retry_delay_ms,
)

BASE_URL = "https://api.example.test/2.0"


def _client(handler):
    return SmartsheetClient("token-123", BASE_URL, transport=httpx.MockTransport(handler))


@pytest.fixture
def recorded_sleeps(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(smartsheet_client.asyncio, "sleep", fake_sleep)
    return sleeps


@pytest.mark.asyncio
async def test_request_sends_auth_and_decodes_json():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"id": 42})

    result = await _client(handler).get_sheet("42", include="format")

    assert result == {"id": 42}
    assert seen["auth"] == "Bearer token-123"
    assert seen["url"] == f"{BASE_URL}/sheets/42?include=format"


@pytest.mark.asyncio
async def test_empty_body_returns_empty_dict():
    result = await _client(lambda request: httpx.Response(200)).get_current_user()
    assert result == {}


@pytest.mark.asyncio
async def test_retry_after_header_is_a_lower_bound(recorded_sleeps):
    responses = [
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200, json={"ok": True}),
    ]

    result = await _client(lambda request: responses.pop(0)).get_sheet("1")

    assert result == {"ok": True}
    assert len(recorded_sleeps) == 1
    assert recorded_sleeps[0] >= 2


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(recorded_sleeps):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, json={"errorCode": 4003, "message": "Rate limit exceeded."})

    with pytest.raises(SmartsheetAPIError) as exc_info:
        await _client(handler).get_sheet("1")

    assert exc_info.value.status_code == 429
    assert exc_info.value.error_code == 4003
    assert exc_info.value.retry_after == 1
    assert len(calls) == MAX_RETRIES + 1
    assert len(recorded_sleeps) == MAX_RETRIES
    # Backoff grows with each attempt
    assert recorded_sleeps[2] >= 4


@pytest.mark.asyncio
async def test_error_response_fields():
    def handler(request):
        return httpx.Response(
            404,
            json={"errorCode": 1006, "message": "Not Found", "detail": {"resourceType": "sheet"}},
        )

    with pytest.raises(SmartsheetAPIError) as exc_info:
        await _client(handler).get_sheet("missing")

    error = exc_info.value
    assert error.status_code == 404
    assert error.error_code == 1006
    assert error.message == "Not Found"
    assert error.detail == {"resourceType": "sheet"}


@pytest.mark.asyncio
async def test_transport_failure_has_no_status():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(SmartsheetAPIError) as exc_info:
        await _client(handler).get_workspaces()

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_delete_rows_query_and_copy_sheet_body():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"result": {"id": 9}})

    client = _client(handler)
    await client.delete_rows("5", [1, 2, 3])
    await client.copy_sheet("5", "Copy", destination_folder_id="77")

    delete_request, copy_request = seen
    assert delete_request.method == "DELETE"
    assert delete_request.url.params["ids"] == "1,2,3"
    assert delete_request.url.params["ignoreRowsNotFound"] == "true"
    assert copy_request.url.path.endswith("/sheets/5/copy")
    assert json.loads(copy_request.content) == {
        "newName": "Copy",
        "destinationType": "folder",
        "destinationId": "77",
    }


def test_serialize_query_params():
    assert _serialize_query_params(
        {"include": None, "includeAll": False, "ids": [1, 2], "page": 3}
    ) == {"includeAll": "false", "ids": "1,2", "page": "3"}


def test_compute_retry_delay_bounds():
    for attempt in range(MAX_RETRIES):
        delay = compute_retry_delay_ms(0, attempt)
        assert 2**attempt * 1000 <= delay <= 2**attempt * 1000 + 1000
    assert compute_retry_delay_ms(10, 0) == 10000


def test_client_requires_token():
    with pytest.raises(ValueError):
        SmartsheetClient("", BASE_URL)


@pytest.mark.asyncio
async def test_non_json_success_body_raises_api_error():
    def handler(request):
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(SmartsheetAPIError) as exc_info:
        await _client(handler).get_sheet("1")

    assert exc_info.value.status_code == 200
    assert "Invalid JSON" in exc_info.value.message


@pytest.mark.asyncio
async def test_cell_history_path_and_paging_params():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    await _client(handler).get_cell_history(
        "1", "11", "101", include="columnType,formula,format", page_size=50, page=2
    )

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/2.0/sheets/1/rows/11/columns/101/history"
    assert dict(request.url.params) == {
        "include": "columnType,formula,format",
        "pageSize": "50",
        "page": "2",
    }


@pytest.mark.asyncio
async def test_workspace_folder_listing_and_creation():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"result": {"id": 900}})

    client = _client(handler)
    await client.list_workspace_folders("7")
    await client.create_workspace_folder("7", "Backup of Plan")

    listing, creation = seen
    assert (listing.method, listing.url.path) == ("GET", "/2.0/workspaces/7/folders")
    assert (creation.method, creation.url.path) == ("POST", "/2.0/workspaces/7/folders")
    assert json.loads(creation.content) == {"name": "Backup of Plan"}


@pytest.mark.asyncio
async def test_list_users_path():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": []})

    await _client(handler).list_users()

    assert (seen[0].method, seen[0].url.path) == ("GET", "/2.0/users")
