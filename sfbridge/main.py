# sfbridge/main.py
import logging
import sys

from sfbridge.config import get_settings
from sfbridge.mcp.server import mcp_server, tool_registry

# Importing the package runs tool discovery so every @register_tool executes.
import sfbridge.mcp.tools  # noqa: F401,E402


def main():
    settings = get_settings()
    # stdout carries the MCP stdio protocol; logs go to stderr.
    logging.basicConfig(stream=sys.stderr, level=settings.log_level.upper())
    logging.info("MCP starting (stdio)")
    logging.info("Tools: %s", ", ".join(tool_registry.keys()) or "(none)")
    mcp_server.run(transport="stdio")


if __name__ == "__main__":
    main()
