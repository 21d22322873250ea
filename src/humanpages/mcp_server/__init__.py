"""MCP surface: operation registry, renderers and FastMCP tools."""
