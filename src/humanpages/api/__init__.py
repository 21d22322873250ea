"""HTTP surface of the MCP server: middleware and health route."""
