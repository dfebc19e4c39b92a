"""
CLI Handler for Smartsheet MCP

Runs registered MCP tools directly from the command line without starting a
transport.

Usage:
    smartsheet-mcp --cli                                  # List available tools
    smartsheet-mcp --cli <tool_name> --help               # Show tool details
    smartsheet-mcp --cli <tool_name> --args '{"sheet_id": "123"}'
    echo '{"sheet_id": "123"}' | smartsheet-mcp --cli <tool_name>
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from core.config import set_transport_mode

logger = logging.getLogger(__name__)

# Tool module -> service label used when listing
SERVICE_LABELS = {
    "ssheets": "sheets",
    "sworkspaces": "workspaces",
    "sdiscussions": "discussions",
    "susers": "users",
    "ssearch": "search",
    "sversions": "versions",
}


def get_registered_tools(server) -> Dict[str, Any]:
    """Map tool names to the FastMCP tool objects registered on `server`."""
    tool_manager = getattr(server, "_tool_manager", None)
    return dict(getattr(tool_manager, "_tools", None) or {})


def _tool_function(tool) -> Any:
    return getattr(tool, "fn", None) or tool


def _summary(tool) -> str:
    description = getattr(tool, "description", None)
    if not description:
        fn = _tool_function(tool)
        description = (getattr(fn, "__doc__", None) or "").strip()
    for line in description.splitlines():
        if line.strip():
            return line.strip()
    return "(no description)"


def _service_of(tool) -> str:
    module = getattr(_tool_function(tool), "__module__", "") or ""
    return SERVICE_LABELS.get(module.split(".")[0], "other")


def _parameters(tool) -> Dict[str, Dict[str, Any]]:
    schema = getattr(tool, "parameters", None)
    if not isinstance(schema, dict):
        return {}
    required = set(schema.get("required", []))
    return {
        name: {
            "type": prop.get("type", "any"),
            "required": name in required,
            "default": prop.get("default"),
        }
        for name, prop in schema.get("properties", {}).items()
    }


def list_tools(server, output_format: str = "text") -> str:
    tools = get_registered_tools(server)

    if output_format == "json":
        return json.dumps(
            {
                "tools": [
                    {
                        "name": name,
                        "service": _service_of(tool),
                        "description": _summary(tool),
                        "parameters": _parameters(tool),
                    }
                    for name, tool in sorted(tools.items())
                ]
            },
            indent=2,
        )

    by_service: Dict[str, List[str]] = {}
    for name, tool in tools.items():
        by_service.setdefault(_service_of(tool), []).append(name)

    lines = [f"Available tools ({len(tools)}):", ""]
    for service in sorted(by_service):
        lines.append(f"  {service.upper()}:")
        for name in sorted(by_service[service]):
            summary = _summary(tools[name])
            if len(summary) > 70:
                summary = summary[:67] + "..."
            lines.append(f"    {name}")
            lines.append(f"      {summary}")
        lines.append("")
    lines.append("Use --cli <tool_name> --help for details")
    lines.append("Use --cli <tool_name> --args '{...}' to run a tool")
    return "\n".join(lines)


def show_tool_help(server, tool_name: str) -> str:
    tools = get_registered_tools(server)
    if tool_name not in tools:
        return f"Error: Tool '{tool_name}' not found. Run --cli to list tools."

    tool = tools[tool_name]
    docstring = (getattr(_tool_function(tool), "__doc__", None) or "").strip()
    lines = [
        f"Tool: {tool_name} ({_service_of(tool)})",
        "",
        docstring or "(no documentation)",
        "",
        "Parameters:",
    ]
    params = _parameters(tool)
    if not params:
        lines.append("  (no parameters)")
    for name, info in params.items():
        requirement = "required" if info["required"] else "optional"
        default = f", default {info['default']!r}" if info["default"] is not None else ""
        lines.append(f"  {name}: {info['type']} ({requirement}{default})")
    return "\n".join(lines)


async def run_tool(server, tool_name: str, args: Dict[str, Any]) -> str:
    """Call a registered tool's function with `args` and return its text result."""
    tools = get_registered_tools(server)
    if tool_name not in tools:
        raise ValueError(f"Tool '{tool_name}' not found")

    fn = getattr(tools[tool_name], "fn", None)
    if fn is None:
        raise ValueError(f"Tool '{tool_name}' has no callable function")

    logger.debug(f"[CLI] Executing {tool_name} with args: {sorted(args)}")
    try:
        result = fn(**args)
        if asyncio.iscoroutine(result):
            result = await result
    except TypeError as e:
        required = [n for n, p in _parameters(tools[tool_name]).items() if p["required"]]
        return (
            f"Error calling {tool_name}: {e}\n"
            f"Required parameters: {required}\n"
            f"Provided parameters: {sorted(args)}"
        )
    return result if isinstance(result, str) else json.dumps(result, indent=2, default=str)


def parse_cli_args(args: List[str]) -> Dict[str, Any]:
    """
    Parse the arguments that follow --cli.

    Returns:
        {"command": "list" | "help" | "run", "tool_name", "tool_args", "output_format"}
    """
    parsed: Dict[str, Any] = {
        "command": "list",
        "tool_name": None,
        "tool_args": {},
        "output_format": "text",
    }
    wants_help = False
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--json", "-j"):
            parsed["output_format"] = "json"
        elif arg in ("help", "--help", "-h"):
            wants_help = True
        elif arg in ("--args", "-a"):
            if i + 1 >= len(args):
                raise ValueError("--args requires a JSON object")
            try:
                tool_args = json.loads(args[i + 1])
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in --args: {e}")
            if not isinstance(tool_args, dict):
                raise ValueError("--args must be a JSON object")
            parsed["tool_args"] = tool_args
            i += 1
        elif arg in ("list", "--list", "-l"):
            parsed["command"] = "list"
        elif not arg.startswith("-") and parsed["tool_name"] is None:
            parsed["tool_name"] = arg
            parsed["command"] = "run"
        i += 1

    if wants_help:
        parsed["command"] = "help" if parsed["tool_name"] else "list"
    return parsed


def read_stdin_args() -> Dict[str, Any]:
    """Read a JSON object of tool arguments from stdin when it is piped."""
    if sys.stdin.isatty():
        return {}
    data = sys.stdin.read().strip()
    if not data:
        return {}
    try:
        tool_args = json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON from stdin: {e}")
    if not isinstance(tool_args, dict):
        raise ValueError("JSON from stdin must be an object")
    return tool_args


async def handle_cli_mode(server, cli_args: List[str], stdin_args: Optional[Dict[str, Any]] = None) -> int:
    """
    Entry point for CLI mode.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    set_transport_mode("cli")
    try:
        parsed = parse_cli_args(cli_args)
        if parsed["command"] == "list":
            print(list_tools(server, parsed["output_format"]))
            return 0
        if parsed["command"] == "help":
            print(show_tool_help(server, parsed["tool_name"]))
            return 0

        args = read_stdin_args() if stdin_args is None else dict(stdin_args)
        args.update(parsed["tool_args"])
        print(await run_tool(server, parsed["tool_name"], args))
        return 0
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"[CLI] Unexpected error: {e}", exc_info=True)
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
