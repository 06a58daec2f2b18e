"""Entry point for the realtime call bridge service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import router as api_router
from bridge.errors import VoiceBridgeError
from config.settings import get_settings
from db.base import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Realtime Call Bridge",
    description="Bridges Twilio phone calls to the OpenAI Realtime API and summarizes each call.",
    lifespan=lifespan,
)
app.include_router(api_router, prefix="/api")


@app.exception_handler(VoiceBridgeError)
async def voice_bridge_error_handler(request: Request, exc: VoiceBridgeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
