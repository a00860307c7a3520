"""
Process wiring: storage, scheduler and HTTP API served by uvicorn.

uvicorn installs the SIGINT/SIGTERM handlers; on a signal it stops
accepting connections and runs the application lifespan shutdown, which
stops the scheduler.
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from delayhook.api.app import create_app
from delayhook.core.ids import create_id_generator
from delayhook.core.scheduler import Scheduler
from delayhook.core.storage import MemoryStorage
from delayhook.logging import setup_logging
from delayhook.settings import DelayHookSettings, get_settings

logger = logging.getLogger(__name__)


def create_service(settings: Optional[DelayHookSettings] = None) -> FastAPI:
    """Build the application with in-memory storage and a scheduler bound to it."""
    settings = settings or get_settings()
    storage = MemoryStorage(
        id_generator=create_id_generator(settings.id_strategy),
        buffer_size=settings.publish_buffer_size,
    )
    scheduler = Scheduler(storage, settings)
    return create_app(storage, settings=settings, scheduler=scheduler)


async def run_server(settings: Optional[DelayHookSettings] = None):
    """Serve DelayHook until interrupted."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.log_file)

    app = create_service(settings)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)

    logger.info(f"DelayHook listening on http://{settings.host}:{settings.port}")
    if settings.environment == "production" and settings.debug:
        logger.warning("Debug mode is enabled in a production environment")

    await server.serve()
    logger.info("DelayHook stopped")
