"""
FastAPI application exposing callback registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from delayhook import __version__
from delayhook.core.scheduler import Scheduler
from delayhook.core.storage import Storage
from delayhook.errors import DelayHookError, ValidationError
from delayhook.settings import DelayHookSettings, get_settings

from .validation import build_callback

logger = logging.getLogger(__name__)


class CreateCallbackRequest(BaseModel):
    """Body of POST /callback"""

    model_config = ConfigDict(populate_by_name=True)

    remote_url: str = ""
    in_: str = Field(default="", alias="in")


def bad_request(error: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": f"bad request: {error}"})


def internal_error(error: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"message": f"internal error: {error}"})


def create_app(
    storage: Storage,
    settings: Optional[DelayHookSettings] = None,
    scheduler: Optional[Scheduler] = None,
) -> FastAPI:
    """
    Create the DelayHook HTTP application.

    Args:
        storage: Where new callbacks are saved.
        settings: Settings to validate requests with (defaults to global settings).
        scheduler: Started and stopped with the application when given.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            await scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                logger.info("Shutting down, no longer accepting new callbacks")
                await scheduler.stop()

    app = FastAPI(
        title="DelayHook",
        description="One-shot, time-delayed HTTP callbacks",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(RequestValidationError)
    async def handle_malformed_body(request, exc: RequestValidationError):
        return bad_request(ValidationError("malformed request body"))

    @app.post("/callback")
    async def create_callback(payload: CreateCallbackRequest):
        """Register a callback to be POSTed after the requested delay"""
        try:
            callback = build_callback(
                payload.remote_url, payload.in_, min_delay=settings.min_delay
            )
        except ValidationError as e:
            return bad_request(e)

        try:
            callback_id = await storage.save(callback)
        except DelayHookError as e:
            logger.error(f"Failed to save callback for {callback.remote_url}: {e}")
            return internal_error(e)

        return {"message": "ok", "callback_id": callback_id}

    @app.get("/callback/{callback_id}")
    async def get_callback(callback_id: str):
        """Status of a callback that has not been finalized yet"""
        callback = await storage.get(callback_id)
        if callback is None:
            return JSONResponse(
                status_code=404,
                content={"message": f'not found: callback "{callback_id}"'},
            )
        return await callback.snapshot()

    return app
