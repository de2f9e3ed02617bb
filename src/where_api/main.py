"""Process entrypoint serving the REST API and the push channel."""

import asyncio
import logging

import uvicorn

from where_api.api.app import create_app
from where_api.api.push import create_push_app
from where_api.app_logging import configure_logging
from where_api.containers import AppContainer, bootstrap
from where_api.errors import FatalConfigError

logger = logging.getLogger(__name__)


def build_servers(container: AppContainer) -> list[uvicorn.Server]:
    """Create one uvicorn server per port, sharing a single container."""
    settings = container.settings
    return [
        uvicorn.Server(
            uvicorn.Config(
                create_app(container), host=settings.host, port=settings.port
            )
        ),
        uvicorn.Server(
            uvicorn.Config(
                create_push_app(container),
                host=settings.host,
                port=settings.push_port,
                lifespan="off",
            )
        ),
    ]


async def serve(container: AppContainer) -> None:
    """Run both servers in the current event loop until they exit."""
    settings = container.settings
    servers = build_servers(container)
    logger.info(
        "Where API listening",
        extra={"port": settings.port, "push_port": settings.push_port},
    )
    await asyncio.gather(*(server.serve() for server in servers))


def main() -> None:
    configure_logging()
    try:
        container = bootstrap()
    except FatalConfigError as exc:
        logger.critical("Refusing to start: %s", exc)
        raise SystemExit(1) from exc
    asyncio.run(serve(container))


if __name__ == "__main__":
    main()
