import argparse
import logging
import os
import socket
import sys
from importlib import import_module
from dotenv import load_dotenv

# CLI mode wants clean stdout, so it is detected before logging is configured
_CLI_MODE = "--cli" in sys.argv

dotenv_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env")
load_dotenv(dotenv_path=dotenv_path)

from core.config import get_api_key, get_endpoint, get_log_level, is_delete_tools_allowed  # noqa: E402
from core.server import server, set_transport_mode, get_version  # noqa: E402
from core.tool_registry import filter_server_tools  # noqa: E402

logging.basicConfig(
    level=get_log_level(), format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Suppress httpx/httpcore INFO logs, which echo every request URL
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Import tool modules to register them with the MCP server via decorators
TOOL_MODULES = {
    "sheets": "ssheets.sheets_tools",
    "workspaces": "sworkspaces.workspace_tools",
    "discussions": "sdiscussions.discussion_tools",
    "users": "susers.user_tools",
    "search": "ssearch.search_tools",
    "versions": "sversions.version_tools",
}

TOOL_DESCRIPTIONS = {
    "sheets": "Sheets, rows, cell history and update requests",
    "workspaces": "Workspaces and folders",
    "discussions": "Sheet and row discussions",
    "users": "User profiles",
    "search": "Search across sheets, folders, workspaces, reports and dashboards",
    "versions": "Point-in-time cell values and version backups",
}


def safe_print(text):
    # Don't print in CLI mode - we want clean output
    if _CLI_MODE:
        return

    # Don't print to stderr when running as MCP server over stdio to avoid JSON parsing errors
    if not sys.stderr.isatty():
        logger.debug(f"[MCP Server] {text}")
        return

    try:
        print(text, file=sys.stderr)
    except UnicodeEncodeError:
        print(text.encode("ascii", errors="replace").decode(), file=sys.stderr)


def _redact(secret):
    if not secret:
        return "Not Set"
    return f"{secret[:4]}...{secret[-4:]}" if len(secret) > 8 else "Set (too short to show)"


def main():
    """
    Main entry point for the Smartsheet MCP server.
    Uses FastMCP's native streamable-http transport.
    Supports CLI mode for direct tool invocation without running the server.
    """
    if _CLI_MODE:
        # Suppress logging output in CLI mode for clean output
        logging.getLogger().setLevel(logging.ERROR)
        logging.getLogger("core").setLevel(logging.ERROR)

    parser = argparse.ArgumentParser(description="Smartsheet MCP Server")
    parser.add_argument(
        "--tools",
        nargs="*",
        choices=list(TOOL_MODULES),
        help="Specify which tool groups to register. If not provided, all tools are registered.",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "streamable-http"],
        default="stdio",
        help="Transport mode: stdio (default) or streamable-http",
    )
    parser.add_argument(
        "--allow-delete",
        action="store_true",
        help="Register destructive tools (delete_rows). Same as ALLOW_DELETE_TOOLS=true.",
    )
    parser.add_argument(
        "--cli",
        nargs=argparse.REMAINDER,
        metavar="COMMAND",
        help="Run in CLI mode for direct tool invocation. Use --cli to list tools, --cli <tool_name> to run a tool.",
    )
    args = parser.parse_args()

    if args.cli is not None:
        args.cli = [a for a in args.cli if a]

    port = int(os.getenv("PORT", os.getenv("SMARTSHEET_MCP_PORT", 8000)))
    host = os.getenv("SMARTSHEET_MCP_HOST", "0.0.0.0")
    allow_delete = args.allow_delete or is_delete_tools_allowed()

    safe_print("🔧 Smartsheet MCP Server")
    safe_print("=" * 35)
    safe_print("📋 Server Information:")
    safe_print(f"   📦 Version: {get_version()}")
    safe_print(f"   🌐 Transport: {args.transport}")
    if args.transport == "streamable-http":
        safe_print(f"   🔗 URL: http://{host}:{port}")
    safe_print(f"   🐍 Python: {sys.version.split()[0]}")
    safe_print("")

    safe_print("⚙️ Active Configuration:")
    config_vars = {
        "SMARTSHEET_API_KEY": _redact(get_api_key()),
        "SMARTSHEET_ENDPOINT": get_endpoint(),
        "ALLOW_DELETE_TOOLS": str(allow_delete).lower(),
        "LOG_LEVEL": get_log_level(),
    }
    for key, value in config_vars.items():
        safe_print(f"   - {key}: {value}")
    safe_print("")

    if not get_api_key():
        safe_print("⚠️  SMARTSHEET_API_KEY is not set; tool calls will fail until it is.")
        safe_print("")

    tools_to_import = args.tools if args.tools is not None else list(TOOL_MODULES)

    safe_print(
        f"🛠️  Loading {len(tools_to_import)} tool module{'s' if len(tools_to_import) != 1 else ''}:"
    )
    for tool in tools_to_import:
        try:
            import_module(TOOL_MODULES[tool])
            safe_print(f"   - {tool.title()}: {TOOL_DESCRIPTIONS[tool]}")
        except ModuleNotFoundError as exc:
            logger.error("Failed to import tool '%s': %s", tool, exc, exc_info=True)
            safe_print(f"   ⚠️ Failed to load {tool.title()} tool module ({exc}).")
    safe_print("")

    removed = filter_server_tools(server, allow_delete=allow_delete)
    if removed and not allow_delete:
        safe_print("🔒 Delete tools disabled (use --allow-delete or ALLOW_DELETE_TOOLS=true)")
        safe_print("")

    # Handle CLI mode - execute tool and exit
    if args.cli is not None:
        import asyncio
        from core.cli_handler import handle_cli_mode

        exit_code = asyncio.run(handle_cli_mode(server, args.cli))
        sys.exit(exit_code)

    try:
        set_transport_mode(args.transport)

        if args.transport == "streamable-http":
            safe_print(f"🚀 Starting HTTP server on http://{host}:{port}")
        else:
            safe_print("🚀 Starting STDIO server")
        safe_print("✅ Ready for MCP connections")
        safe_print("")

        if args.transport == "streamable-http":
            # Check port availability before starting HTTP server
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.bind((host, port))
            except OSError as e:
                safe_print(f"Socket error: {e}")
                safe_print(f"❌ Port {port} is already in use. Cannot start HTTP server.")
                sys.exit(1)

            server.run(transport="streamable-http", host=host, port=port)
        else:
            server.run()
    except KeyboardInterrupt:
        safe_print("\n👋 Server shutdown requested")
        sys.exit(0)
    except Exception as e:
        safe_print(f"\n❌ Server error: {e}")
        logger.error(f"Unexpected error running server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
