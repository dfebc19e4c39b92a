"""
Smartsheet User MCP Tools
"""

import logging

from core.server import server
from core.smartsheet_client import get_smartsheet_client
from core.utils import handle_http_errors, to_json_text

logger = logging.getLogger(__name__)


@server.tool()
@handle_http_errors("get_current_user", is_read_only=True, resource_type="user")
async def get_current_user() -> str:
    """
    Gets the profile of the user that owns the API token.
    """
    logger.info("[get_current_user] Invoked.")
    return to_json_text(await get_smartsheet_client().get_current_user())


@server.tool()
@handle_http_errors("get_user", is_read_only=True, resource_type="user")
async def get_user(user_id: str) -> str:
    """
    Gets a user's profile by ID.

    Args:
        user_id (str): The ID of the user. Required.
    """
    logger.info(f"[get_user] Invoked. User: {user_id}")
    return to_json_text(await get_smartsheet_client().get_user(user_id))


@server.tool()
@handle_http_errors("list_users", is_read_only=True, resource_type="user")
async def list_users() -> str:
    """
    Lists the users of the organization account.
    """
    logger.info("[list_users] Invoked.")
    return to_json_text(await get_smartsheet_client().list_users())
