"""Run the reference backend with demo humans.

Run with:
    python -m humanpages.sandbox
"""

from __future__ import annotations

import uvicorn

from humanpages.config import get_settings
from humanpages.logging_config import get_logger, setup_logging
from humanpages.sandbox.app import create_sandbox_app
from humanpages.sandbox.demo import seed_demo
from humanpages.sandbox.store import SandboxStore


def main() -> None:
    settings = get_settings()
    setup_logging(log_level=settings.app_log_level, json_logs=not settings.is_development)
    logger = get_logger("humanpages.sandbox")

    store = SandboxStore()
    humans = seed_demo(store)
    logger.info(
        "sandbox.starting",
        host=settings.sandbox_host,
        port=settings.sandbox_port,
        humans=len(humans),
        platform_wallet=store.platform_wallet,
    )
    uvicorn.run(create_sandbox_app(store), host=settings.sandbox_host, port=settings.sandbox_port)


if __name__ == "__main__":
    main()
