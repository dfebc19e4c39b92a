"""
Smartsheet MCP Configuration

Environment-driven settings shared by the server, the Smartsheet client and
the tool modules. Values are read lazily so a `.env` loaded by main.py is
picked up.
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SMARTSHEET_ENDPOINT = "https://api.smartsheet.com/2.0"
DEFAULT_REQUEST_TIMEOUT = 30.0

_transport_mode = "stdio"


def _parse_bool_env(value: str) -> bool:
    """Parse environment variable string to boolean."""
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_api_key() -> Optional[str]:
    """Bearer token for the Smartsheet API, or None when unset."""
    return os.getenv("SMARTSHEET_API_KEY", "").strip() or None


def get_endpoint() -> str:
    endpoint = os.getenv("SMARTSHEET_ENDPOINT", "").strip() or DEFAULT_SMARTSHEET_ENDPOINT
    return endpoint.rstrip("/")


def get_request_timeout() -> float:
    raw = os.getenv("SMARTSHEET_REQUEST_TIMEOUT", "").strip()
    if not raw:
        return DEFAULT_REQUEST_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logger.warning(
            "Invalid SMARTSHEET_REQUEST_TIMEOUT=%r, falling back to %s",
            raw,
            DEFAULT_REQUEST_TIMEOUT,
        )
        return DEFAULT_REQUEST_TIMEOUT
    return value if value > 0 else DEFAULT_REQUEST_TIMEOUT


def is_delete_tools_allowed() -> bool:
    """Whether destructive tools (row deletion) may be registered."""
    return _parse_bool_env(os.getenv("ALLOW_DELETE_TOOLS", "false"))


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def set_transport_mode(mode: str) -> None:
    global _transport_mode
    _transport_mode = mode


def get_transport_mode() -> str:
    return _transport_mode
