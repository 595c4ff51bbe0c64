"""Entry point for running MCP server as a module.

This allows running the server with: python -m analytics.services.mcp_server
"""

import sys

if __name__ == "__main__":
    # Import main module which registers all tools
    from analytics.services.mcp_server.main import mcp

    try:
        mcp.run()
    except Exception as e:
        print(f"Error: Failed to start MCP server: {e}", file=sys.stderr)
        sys.exit(1)
