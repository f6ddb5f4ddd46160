"""hailview FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hailview import config
from hailview.observability import (
    initialize as initialize_observability,
    is_enabled as observability_enabled,
    shutdown as shutdown_observability,
)
from hailview.routers.timeline import timeline_router

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("hailview")


@asynccontextmanager
async def lifespan(app: FastAPI):
    initialize_observability(app)
    logger.info("hailview ready (native adapters: %s)", ", ".join(sorted(config.NATIVE_ADAPTERS)))
    try:
        yield
    finally:
        logger.info("hailview stopping")
        shutdown_observability(app)


app = FastAPI(
    title="hailview API",
    description="Timeline reconstruction for AI coding-assistant sessions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted({config.FRONTEND_ORIGIN, "http://localhost:3000", "http://127.0.0.1:3000"}),
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
)

app.include_router(timeline_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "telemetry": "enabled" if observability_enabled() else "disabled",
        "nativeAdapters": sorted(config.NATIVE_ADAPTERS),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("hailview.main:app", host=config.HOST, port=config.PORT)
