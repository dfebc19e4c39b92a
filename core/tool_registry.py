"""
Tool Registry for Conditional Tool Registration

Tools are registered through @server.tool() at import time; this module removes
the destructive ones when the current configuration does not allow deletes.
"""

import logging
from typing import Optional, Set

from core.config import is_delete_tools_allowed

logger = logging.getLogger(__name__)

# Tools that remove data from Smartsheet
DELETE_TOOLS: Set[str] = {"delete_rows"}


def is_tool_enabled(tool_name: str, allow_delete: Optional[bool] = None) -> bool:
    """Check whether a tool survives filtering."""
    if allow_delete is None:
        allow_delete = is_delete_tools_allowed()
    return allow_delete or tool_name not in DELETE_TOOLS


def filter_server_tools(server, allow_delete: Optional[bool] = None) -> int:
    """Remove disabled tools from the server after registration.

    Returns:
        Number of tools removed.
    """
    if allow_delete is None:
        allow_delete = is_delete_tools_allowed()

    tool_manager = getattr(server, "_tool_manager", None)
    tool_registry = getattr(tool_manager, "_tools", None)
    if tool_registry is None:
        logger.warning("Tool filtering skipped: server exposes no tool registry")
        return 0

    tools_to_remove = [
        name
        for name in list(tool_registry.keys())
        if not is_tool_enabled(name, allow_delete=allow_delete)
    ]
    for tool_name in tools_to_remove:
        del tool_registry[tool_name]
        logger.info(
            f"Delete operations are disabled: removed '{tool_name}'. "
            "Set ALLOW_DELETE_TOOLS=true to enable it."
        )

    if tools_to_remove:
        logger.info(
            f"Tool filtering: removed {len(tools_to_remove)} tools, "
            f"{len(tool_registry)} remain registered"
        )
    return len(tools_to_remove)
