"""
Shared helpers for the Smartsheet MCP tools: input errors, upstream error
translation and JSON rendering of API payloads.
"""

import functools
import json
import logging
import re
from typing import Any, Callable, List, Sequence, TypeVar

from fastmcp.exceptions import ToolError

from core.smartsheet_client import SmartsheetAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SHEET_URL_TOKEN_RE = re.compile(r"/sheets/([^?/]+)")


class UserInputError(Exception):
    """Raised when a tool receives arguments it cannot act on."""


def sheet_token_from_url(url: str) -> str:
    """Extract the sheet id token from a Smartsheet sheet URL."""
    match = SHEET_URL_TOKEN_RE.search(url or "")
    if not match:
        raise UserInputError(
            f"Invalid sheet URL '{url}'. Expected something like https://app.smartsheet.com/sheets/<id>."
        )
    return match.group(1)


def to_json_text(payload: Any) -> str:
    """Render an API payload the way every tool returns it: indented JSON text."""
    return json.dumps(payload, indent=2, default=str)


def chunk_list(items: Sequence[T], size: int) -> List[List[T]]:
    """Split a sequence into consecutive lists of at most `size` items."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}.")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def describe_api_error(error: SmartsheetAPIError, resource_type: str = "") -> str:
    """Build a user-facing message for an upstream failure."""
    subject = resource_type or "resource"
    if error.status_code == 404:
        return f"The requested Smartsheet {subject} was not found: {error.message}"
    if error.status_code == 403:
        return (
            f"Permission denied for Smartsheet {subject}: {error.message}. "
            "Check that the API token has access to it."
        )
    if error.status_code == 429:
        retry_hint = (
            f" Retry after {error.retry_after} seconds."
            if error.retry_after is not None
            else ""
        )
        return f"Smartsheet rate limit exceeded.{retry_hint}"
    if error.status_code is None:
        return f"Could not reach Smartsheet: {error.message}"
    code = f" (errorCode {error.error_code})" if error.error_code is not None else ""
    return f"Smartsheet API error {error.status_code}{code}: {error.message}"


def handle_http_errors(
    tool_name: str, is_read_only: bool = False, resource_type: str = ""
) -> Callable:
    """
    Decorator translating SmartsheetAPIError into a ToolError for the MCP client.

    Args:
        tool_name: Name used in log lines.
        is_read_only: Whether the tool only reads; logged with failures so write
            failures stand out.
        resource_type: Resource named in the error message (sheet, folder, ...).
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except UserInputError as error:
                logger.warning("[%s] Rejected input: %s", tool_name, error)
                raise ToolError(str(error)) from error
            except SmartsheetAPIError as error:
                mode = "read" if is_read_only else "write"
                logger.error(
                    "[%s] Smartsheet %s request failed: status=%s errorCode=%s message=%s",
                    tool_name,
                    mode,
                    error.status_code,
                    error.error_code,
                    error.message,
                )
                raise ToolError(describe_api_error(error, resource_type)) from error

        return wrapper

    return decorator
