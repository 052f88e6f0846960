# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Slotify Server - Main FastAPI application."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from slotify_server.config import settings
from slotify_server.database import init_db
from slotify_server.rate_limit import limiter
from slotify_server.routers import admin, my_reservations, pending, reservations, slots

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _get_cors_origins() -> list[str]:
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    if not settings.smtp_host:
        logger.info("SMTP_HOST not set - emails will be logged instead of sent")

    async def rate_limit_sweep_loop():
        while True:
            await asyncio.sleep(settings.rate_limit_sweep_seconds)
            dropped = limiter.sweep()
            if dropped:
                logger.info("Rate limiter: dropped %d stale bucket(s)", dropped)

    sweep_task = asyncio.create_task(rate_limit_sweep_loop())
    yield
    sweep_task.cancel()


app = FastAPI(
    title="Slotify Server",
    description="Time-slot reservations for allow-listed emails",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request (no body or auth headers)."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response

# API v1
app.include_router(slots.router, prefix="/api/v1")
app.include_router(reservations.router, prefix="/api/v1")
app.include_router(my_reservations.router, prefix="/api/v1")
app.include_router(pending.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")


@app.get("/")
async def root():
    """API info."""
    return {
        "name": "Slotify Server",
        "version": VERSION,
        "api": "/api/v1",
        "docs": "/api/docs",
    }


@app.get("/api/v1/health")
async def health():
    """Health check for load balancers."""
    return {"status": "ok"}
