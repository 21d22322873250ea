"""Command-line entry point.

    python -m humanpages                                  # MCP over stdio
    MCP_TRANSPORT=streamable-http python -m humanpages    # MCP over HTTP at /mcp
"""

from __future__ import annotations

from humanpages.config import get_settings
from humanpages.logging_config import get_logger, setup_logging


def main() -> None:
    settings = get_settings()
    setup_logging(log_level=settings.app_log_level, json_logs=not settings.is_development)
    logger = get_logger("humanpages")

    if settings.mcp_transport == "stdio":
        from humanpages.mcp_server.tools import mcp

        logger.info("mcp.starting", transport="stdio", backend=settings.api_root)
        mcp.run(transport="stdio")
        return

    import uvicorn

    logger.info("mcp.starting", transport="streamable-http", host=settings.http_host, port=settings.http_port)
    uvicorn.run("humanpages.main:app", host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    main()
