"""Structured logging for the MCP server and the sandbox backend.

JSON lines in production, colored console output in development. Logs go
to stderr: under the stdio MCP transport stdout carries the protocol
stream and must stay clean.

Credentials never reach a sink. Agent keys, callback secrets and payment
proofs are masked by ``mask_secrets`` wherever they appear in an event,
including nested header and argument mappings.

Usage:
    from humanpages.logging_config import setup_logging, get_logger
    setup_logging(log_level="DEBUG", json_logs=False)
    logger = get_logger(__name__)
    logger.info("jobs.offer_created", job_id="job_123", human_id="hum_ana")
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog

MASK = "***"

# Compared case-insensitively with "-" folded to "_", so "X-Agent-Key" matches too
SECRET_KEYS = frozenset(
    {
        "agent_key",
        "api_key",
        "callback_secret",
        "payment_proof",
        "x_payment",
        "x_agent_key",
        "secret",
        "webhook_secret",
    }
)

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "mcp.server.lowlevel")


def _is_secret(key: object) -> bool:
    return isinstance(key, str) and key.lower().replace("-", "_") in SECRET_KEYS


def _masked(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: MASK if _is_secret(k) and v is not None else _masked(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return type(value)(_masked(v) for v in value)
    return value


def mask_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Replace credential values in an event with a fixed mask."""
    for key, value in event_dict.items():
        if key == "event":
            continue
        if _is_secret(key):
            if value is not None:
                event_dict[key] = MASK
        else:
            event_dict[key] = _masked(value)
    return event_dict


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog and route stdlib logging through the same pipeline.

    Args:
        log_level: Standard Python log level string (DEBUG, INFO, WARNING, etc.)
        json_logs: If True, one JSON object per line. If False, console output.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        mask_secrets,
    ]

    if json_logs:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Third-party records (uvicorn, mcp) pass through the shared chain as well
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for noisy_logger in NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
