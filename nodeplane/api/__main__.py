"""Run the control plane HTTP server: ``python -m nodeplane.api``."""

from __future__ import annotations

from aiohttp import web
from loguru import logger

from nodeplane.config import load_settings
from nodeplane.module import Services, create_injector
from nodeplane.observability.logging import setup_logging, teardown_logging

from .server import create_app


def main() -> None:
    settings = load_settings()
    handler_ids = setup_logging(settings.logging)
    try:
        services = create_injector(settings).get(Services)
        logger.bind(component="api").info(
            "Listening on {host}:{port}", host=settings.server.host, port=settings.server.port
        )
        web.run_app(
            create_app(services),
            host=settings.server.host,
            port=settings.server.port,
            print=None,
        )
    finally:
        teardown_logging(handler_ids)


if __name__ == "__main__":
    main()
