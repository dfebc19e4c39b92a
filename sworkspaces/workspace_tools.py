"""
Smartsheet Workspace and Folder MCP Tools

This module provides MCP tools for browsing and creating workspaces and folders.
"""

import logging

from core.server import server
from core.smartsheet_client import get_smartsheet_client
from core.utils import UserInputError, handle_http_errors, to_json_text

logger = logging.getLogger(__name__)


def _require_name(name: str, kind: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise UserInputError(f"A {kind} name is required.")
    return cleaned


@server.tool()
@handle_http_errors("get_workspaces", is_read_only=True, resource_type="workspace")
async def get_workspaces() -> str:
    """
    Lists the workspaces the user can access.
    """
    logger.info("[get_workspaces] Invoked.")
    return to_json_text(await get_smartsheet_client().get_workspaces())


@server.tool()
@handle_http_errors("get_workspace", is_read_only=True, resource_type="workspace")
async def get_workspace(workspace_id: str) -> str:
    """
    Retrieves a workspace and its contents (sheets, reports, folders).

    Args:
        workspace_id (str): The ID of the workspace. Required.
    """
    logger.info(f"[get_workspace] Invoked. Workspace: {workspace_id}")
    return to_json_text(await get_smartsheet_client().get_workspace(workspace_id))


@server.tool()
@handle_http_errors("create_workspace", resource_type="workspace")
async def create_workspace(workspace_name: str) -> str:
    """
    Creates a new workspace.

    Args:
        workspace_name (str): Name of the workspace. Required.
    """
    logger.info(f"[create_workspace] Invoked. Name: {workspace_name}")
    name = _require_name(workspace_name, "workspace")
    return to_json_text(await get_smartsheet_client().create_workspace(name))


@server.tool()
@handle_http_errors("list_workspace_folders", is_read_only=True, resource_type="workspace")
async def list_workspace_folders(workspace_id: str) -> str:
    """
    Lists the top-level folders of a workspace.

    Args:
        workspace_id (str): The ID of the workspace. Required.
    """
    logger.info(f"[list_workspace_folders] Invoked. Workspace: {workspace_id}")
    return to_json_text(await get_smartsheet_client().list_workspace_folders(workspace_id))


@server.tool()
@handle_http_errors("create_workspace_folder", resource_type="workspace")
async def create_workspace_folder(workspace_id: str, folder_name: str) -> str:
    """
    Creates a new folder in a workspace.

    Args:
        workspace_id (str): The ID of the workspace. Required.
        folder_name (str): Name of the folder. Required.
    """
    logger.info(
        f"[create_workspace_folder] Invoked. Workspace: {workspace_id}, Name: {folder_name}"
    )
    name = _require_name(folder_name, "folder")
    result = await get_smartsheet_client().create_workspace_folder(workspace_id, name)
    return to_json_text(result)


@server.tool()
@handle_http_errors("get_folder", is_read_only=True, resource_type="folder")
async def get_folder(folder_id: str) -> str:
    """
    Retrieves a folder and its contents, which can be sheets, reports, or other folders.

    Args:
        folder_id (str): The ID of the folder. Required.
    """
    logger.info(f"[get_folder] Invoked. Folder: {folder_id}")
    return to_json_text(await get_smartsheet_client().get_folder(folder_id))


@server.tool()
@handle_http_errors("create_folder", resource_type="folder")
async def create_folder(folder_id: str, folder_name: str) -> str:
    """
    Creates a new folder inside another folder.

    Args:
        folder_id (str): The ID of the parent folder. Required.
        folder_name (str): Name of the new folder. Required.
    """
    logger.info(f"[create_folder] Invoked. Parent: {folder_id}, Name: {folder_name}")
    name = _require_name(folder_name, "folder")
    return to_json_text(await get_smartsheet_client().create_folder(folder_id, name))
