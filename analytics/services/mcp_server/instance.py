"""
MCP Server Instance

This module provides the global FastMCP instance that all tools register with.
It must be imported before tools are loaded to avoid circular imports.

Architecture:
- instance.py: Creates the mcp object (imported by main.py and all tool modules)
- main.py: Configures logging and lifespan, registers tools and runs the server
- tools/*.py: Import mcp from this module and register tools with @mcp.tool()
"""

from fastmcp import FastMCP

VERSION = "1.0.0"

# Note: lifespan is configured in main.py before running
mcp = FastMCP(name="Customer Segmentation", version=VERSION)
