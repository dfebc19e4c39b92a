"""
Smartsheet REST Client

Thin async request issuer for the Smartsheet 2.0 API. Every call goes through
SmartsheetClient.request, which retries rate-limited (HTTP 429) responses with
backoff and raises SmartsheetAPIError for everything else.
"""

import asyncio
import functools
import logging
import random
from typing import Any, Dict, List, Optional

import httpx

from core.config import get_api_key, get_endpoint, get_request_timeout

logger = logging.getLogger(__name__)

USER_AGENT = "smartsheet-mcp-python"
MAX_RETRIES = 3
DEFAULT_RETRY_AFTER_SECONDS = 1


class SmartsheetAPIError(Exception):
    """An upstream failure with the fields callers branch on."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[int] = None,
        detail: Any = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.detail = detail
        self.retry_after = retry_after

    def __repr__(self) -> str:
        return (
            f"SmartsheetAPIError(status_code={self.status_code!r}, "
            f"error_code={self.error_code!r}, message={self.message!r})"
        )


def _serialize_query_params(query_params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Drop unset entries and stringify the rest the way the API expects."""
    params: Dict[str, str] = {}
    for key, value in (query_params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple, set)):
            params[key] = ",".join(str(item) for item in value)
        else:
            params[key] = str(value)
    return params


def _parse_retry_after(response: httpx.Response) -> int:
    raw = response.headers.get("retry-after")
    if not raw:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        return max(0, int(float(raw)))
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS


def compute_retry_delay_ms(retry_after_seconds: int, attempt: int) -> float:
    """
    Delay before retry `attempt` (0-based) of a rate-limited request.

    The server's Retry-After is a floor; exponential backoff with up to one
    second of jitter keeps concurrent callers from retrying in lockstep.
    """
    backoff_ms = (2**attempt) * 1000 + random.uniform(0, 1000)
    return max(retry_after_seconds * 1000, backoff_ms)


def _error_from_response(response: httpx.Response) -> SmartsheetAPIError:
    payload: Dict[str, Any] = {}
    try:
        body = response.json()
        if isinstance(body, dict):
            payload = body
    except ValueError:
        pass

    message = (
        payload.get("message")
        or response.reason_phrase
        or f"HTTP {response.status_code}"
    )
    retry_after = (
        _parse_retry_after(response) if response.status_code == 429 else None
    )
    return SmartsheetAPIError(
        message,
        status_code=response.status_code,
        error_code=payload.get("errorCode"),
        detail=payload.get("detail"),
        retry_after=retry_after,
    )


class SmartsheetClient:
    """
    Async client for the Smartsheet API.

    Args:
        access_token: Smartsheet API access token, sent as a bearer token.
        base_url: API root, e.g. https://api.smartsheet.com/2.0.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        access_token: str,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not access_token:
            raise ValueError("A Smartsheet access token is required.")
        if not base_url:
            raise ValueError("A Smartsheet API base URL is required.")
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        query_params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue one API call and return the decoded JSON body.

        Rate-limited responses are retried up to MAX_RETRIES times. Any other
        failure, or a 429 after the last retry, raises SmartsheetAPIError.
        """
        url = f"{self.base_url}{path}"
        params = _serialize_query_params(query_params)
        attempt = 0

        while True:
            logger.debug("API Request: %s %s params=%s", method, url, params)
            try:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout), transport=self._transport
                ) as http:
                    response = await http.request(
                        method,
                        url,
                        params=params or None,
                        json=body,
                        headers=self._headers(),
                    )
            except httpx.HTTPError as exc:
                logger.error("API request %s %s failed: %s", method, path, exc)
                raise SmartsheetAPIError(
                    str(exc) or type(exc).__name__
                ) from exc

            if response.status_code == 429 and attempt < MAX_RETRIES:
                delay_ms = compute_retry_delay_ms(_parse_retry_after(response), attempt)
                logger.warning(
                    "[Rate Limit] %s %s throttled; retry %d/%d in %.0fms",
                    method,
                    path,
                    attempt + 1,
                    MAX_RETRIES,
                    delay_ms,
                )
                await asyncio.sleep(delay_ms / 1000)
                attempt += 1
                continue

            if response.is_error:
                error = _error_from_response(response)
                logger.error(
                    "API Error: %s %s -> %s %s",
                    method,
                    path,
                    error.status_code,
                    error.message,
                )
                raise error

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                logger.error(
                    "API response for %s %s is not JSON (status %s)",
                    method,
                    path,
                    response.status_code,
                )
                raise SmartsheetAPIError(
                    f"Invalid JSON in response: {exc}",
                    status_code=response.status_code,
                ) from exc

    # Sheets

    async def get_sheet(self, sheet_id: str, include: Optional[str] = None) -> Dict:
        return await self.request("GET", f"/sheets/{sheet_id}", query_params={"include": include})

    async def get_sheet_version(self, sheet_id: str) -> Dict:
        return await self.request("GET", f"/sheets/{sheet_id}/version")

    async def get_cell_history(
        self,
        sheet_id: str,
        row_id: str,
        column_id: str,
        include: Optional[str] = None,
        page_size: Optional[int] = None,
        page: Optional[int] = None,
    ) -> Any:
        return await self.request(
            "GET",
            f"/sheets/{sheet_id}/rows/{row_id}/columns/{column_id}/history",
            query_params={"include": include, "pageSize": page_size, "page": page},
        )

    async def update_rows(self, sheet_id: str, rows: List[Dict]) -> Any:
        return await self.request("PUT", f"/sheets/{sheet_id}/rows", body=rows)

    async def add_rows(self, sheet_id: str, rows: List[Dict]) -> Any:
        return await self.request("POST", f"/sheets/{sheet_id}/rows", body=rows)

    async def delete_rows(
        self, sheet_id: str, row_ids: List[str], ignore_rows_not_found: bool = True
    ) -> Any:
        return await self.request(
            "DELETE",
            f"/sheets/{sheet_id}/rows",
            query_params={
                "ids": ",".join(str(row_id) for row_id in row_ids),
                "ignoreRowsNotFound": ignore_rows_not_found,
            },
        )

    async def get_sheet_location(self, sheet_id: str) -> Dict:
        sheet = await self.get_sheet(sheet_id)
        workspace_id = (sheet.get("workspace") or {}).get("id")
        return {
            "folderId": workspace_id,
            "folderType": "workspace",
            "workspaceId": workspace_id,
        }

    async def copy_sheet(
        self,
        sheet_id: str,
        new_name: str,
        destination_folder_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
    ) -> Dict:
        body: Dict[str, Any] = {"newName": new_name}
        if destination_folder_id:
            body["destinationType"] = "folder"
            body["destinationId"] = destination_folder_id
        elif workspace_id:
            body["destinationType"] = "workspace"
            body["destinationId"] = workspace_id
        else:
            body["destinationType"] = "home"
        return await self.request("POST", f"/sheets/{sheet_id}/copy", body=body)

    async def create_sheet(
        self, name: str, columns: List[Dict], folder_id: Optional[str] = None
    ) -> Dict:
        path = f"/folders/{folder_id}/sheets" if folder_id else "/sheets"
        return await self.request("POST", path, body={"name": name, "columns": columns})

    async def create_update_request(self, sheet_id: str, options: Dict) -> Dict:
        return await self.request("POST", f"/sheets/{sheet_id}/updaterequests", body=options)

    # Workspaces and folders

    async def get_workspaces(self) -> Any:
        return await self.request("GET", "/workspaces")

    async def get_workspace(self, workspace_id: str) -> Dict:
        return await self.request("GET", f"/workspaces/{workspace_id}")

    async def create_workspace(self, name: str) -> Dict:
        return await self.request("POST", "/workspaces", body={"name": name})

    async def list_workspace_folders(self, workspace_id: str) -> Any:
        return await self.request("GET", f"/workspaces/{workspace_id}/folders")

    async def create_workspace_folder(self, workspace_id: str, name: str) -> Dict:
        return await self.request(
            "POST", f"/workspaces/{workspace_id}/folders", body={"name": name}
        )

    async def get_folder(self, folder_id: str) -> Dict:
        return await self.request("GET", f"/folders/{folder_id}")

    async def create_folder(self, parent_folder_id: str, name: str) -> Dict:
        return await self.request(
            "POST", f"/folders/{parent_folder_id}/folders", body={"name": name}
        )

    # Discussions

    async def get_sheet_discussions(
        self,
        sheet_id: str,
        include: Optional[str] = None,
        page_size: Optional[int] = None,
        page: Optional[int] = None,
        include_all: Optional[bool] = None,
    ) -> Any:
        return await self.request(
            "GET",
            f"/sheets/{sheet_id}/discussions",
            query_params={
                "include": include,
                "pageSize": page_size,
                "page": page,
                "includeAll": include_all,
            },
        )

    async def get_row_discussions(self, sheet_id: str, row_id: str) -> Any:
        return await self.request("GET", f"/sheets/{sheet_id}/rows/{row_id}/discussions")

    async def create_sheet_discussion(self, sheet_id: str, comment_text: str) -> Dict:
        return await self.request(
            "POST",
            f"/sheets/{sheet_id}/discussions",
            body={"comment": {"text": comment_text}},
        )

    async def create_row_discussion(
        self, sheet_id: str, row_id: str, comment_text: str
    ) -> Dict:
        return await self.request(
            "POST",
            f"/sheets/{sheet_id}/rows/{row_id}/discussions",
            body={"comment": {"text": comment_text}},
        )

    # Users

    async def get_current_user(self) -> Dict:
        return await self.request("GET", "/users/me")

    async def get_user(self, user_id: str) -> Dict:
        return await self.request("GET", f"/users/{user_id}")

    async def list_users(self) -> Any:
        return await self.request("GET", "/users")

    # Search

    async def search(self, query: str, scopes: Optional[str] = None) -> Dict:
        return await self.request(
            "GET", "/search", query_params={"query": query, "scopes": scopes}
        )

    async def search_sheet(self, sheet_id: str, query: str) -> Dict:
        return await self.request(
            "GET", f"/search/sheets/{sheet_id}", query_params={"query": query}
        )


@functools.lru_cache(maxsize=1)
def get_smartsheet_client() -> SmartsheetClient:
    """Process-wide client built from the environment.

    Cached; call get_smartsheet_client.cache_clear() after changing the
    environment.
    """
    api_key = get_api_key()
    if not api_key:
        raise RuntimeError("SMARTSHEET_API_KEY environment variable is not set")
    return SmartsheetClient(api_key, get_endpoint(), timeout=get_request_timeout())
