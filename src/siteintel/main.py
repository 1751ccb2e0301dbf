"""Service entrypoint: wire the crawler, then serve the HTTP API with uvicorn."""

from __future__ import annotations

import asyncio
import sys

import uvicorn

from .config.settings import get_settings
from .http_app import app
from .lifespan import lifespan_manager
from .observability.logger import get_logger

logger = get_logger(__name__)


async def serve() -> None:
    settings = get_settings()
    async with lifespan_manager():
        if not settings.http_enable:
            logger.warning("http_disabled_nothing_to_serve")
            return
        server = uvicorn.Server(
            uvicorn.Config(
                app=app,
                host=settings.http_host,
                port=settings.http_port,
                log_level=settings.log_level.lower(),
                access_log=False,
                loop="asyncio",
            )
        )
        logger.info("http_server_started", address=f"http://{settings.http_host}:{settings.http_port}")
        await server.serve()


def run() -> None:
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
